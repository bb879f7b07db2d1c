from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os

from app.api.ws_session import router as interview_ws_router
from app.company_modes import list_company_modes
from app.schemas import SessionSnapshotResponse
from app.session.registry import session_registry
from app.system_metrics import get_metrics_snapshot, set_metric
from core.config import (
    DIALOGUE_PROVIDER,
    QA_MODE,
    SESSION_CLEANUP_INTERVAL_SEC,
    SESSION_CLEANUP_TTL_SEC,
)

app = FastAPI(title="Mock Interview Backend")
logger = logging.getLogger("app.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(interview_ws_router)

_session_cleanup_task: asyncio.Task | None = None


@app.on_event("startup")
async def startup_banner():
    global _session_cleanup_task
    if QA_MODE:
        logger.info("[SYSTEM] QA_MODE ENABLED")
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    logger.info("[SYSTEM] dialogue provider=%s", DIALOGUE_PROVIDER)

    async def _session_cleanup_loop():
        while True:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
            removed = session_registry.cleanup_inactive(SESSION_CLEANUP_TTL_SEC)
            if removed > 0:
                logger.info("[SYSTEM] cleaned inactive sessions=%s", removed)

    _session_cleanup_task = asyncio.create_task(_session_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _session_cleanup_task
    if _session_cleanup_task is not None:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _session_cleanup_task = None
    logger.info("[SYSTEM] shutdown complete")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "backend"}


@app.get("/company-modes")
def company_modes_route():
    return {"modes": list_company_modes()}


@app.get("/sessions/{session_id}", response_model=SessionSnapshotResponse)
def session_snapshot_route(session_id: str):
    snapshot = session_registry.snapshot(session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return snapshot.to_dict()


@app.get("/metrics")
def system_metrics_route():
    set_metric("sessions_registered", float(session_registry.active_count()))
    return get_metrics_snapshot(extra={
        "session_cleanup_ttl_sec": SESSION_CLEANUP_TTL_SEC,
    })
