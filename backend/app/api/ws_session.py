from fastapi import APIRouter, WebSocket
import asyncio
import json
import logging
import os
import uuid

from pydantic import ValidationError
from starlette.websockets import WebSocketState

from app.interview.dialogue import DialogueProvider, build_dialogue_provider
from app.interview.models import SessionSnapshot
from app.schemas import SessionCommand
from app.session.registry import session_registry
from app.session_controller import SessionController, SessionControllerConfig
from app.system_metrics import decrement_metric, increment_metric, record_disconnect
from app.voice.bridge import (
    ClientDeviceBridge,
    ClientMediaDevice,
    ClientRecognizer,
    ClientSynthesizer,
)
from core.logger import session_event_logger
from core.state import SessionState

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger("ws_session")

MAX_WS_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "65536")))

DEVICE_REPLY_TYPES = {
    "media.ready",
    "media.denied",
    "speech.result",
    "speech.error",
    "speech.spoken",
    "speech.unsupported",
}

router = APIRouter()


class WsDependencyProvider:
    def create_dialogue(
        self,
        provider: str | None,
        role: str = "general",
        company_mode: str = "general",
        resume_context: str = "",
    ) -> DialogueProvider:
        return build_dialogue_provider(
            provider,
            role=role,
            resume_context=resume_context,
            company_mode=company_mode,
        )

    def create_controller(
        self,
        bridge: ClientDeviceBridge,
        dialogue: DialogueProvider,
        session_id: str,
    ) -> SessionController:
        return SessionController(
            dialogue=dialogue,
            media_device=ClientMediaDevice(bridge),
            recognizer_factory=lambda: ClientRecognizer(bridge),
            synthesizer=ClientSynthesizer(bridge),
            config=SessionControllerConfig(),
            session_id=session_id,
        )


dependency_provider = WsDependencyProvider()


def _dispatch_command(controller: SessionController, command: SessionCommand) -> bool:
    if command.action == "start":
        return controller.start(command.duration_minutes)
    if command.action == "begin":
        return controller.begin_questions()
    if command.action == "answer":
        return controller.trigger_answer()
    if command.action == "stop":
        return controller.stop()
    return controller.restart()


@router.websocket("/ws/interview")
async def interview_socket(websocket: WebSocket):
    session_id = str(uuid.uuid4())
    role = str(websocket.query_params.get("role") or "general").strip().lower()
    company_mode = str(websocket.query_params.get("company_mode") or "general").strip().lower()
    provider = websocket.query_params.get("provider")

    await websocket.accept()
    send_lock = asyncio.Lock()

    _log_event = session_event_logger("ws_session", session_id)

    async def _safe_send(payload: dict):
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            encoded = json.dumps(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("ws payload encode failed | session_id=%s err=%s", session_id, exc)
            return
        async with send_lock:
            await websocket.send_text(encoded)

    bridge = ClientDeviceBridge(send_fn=_safe_send)
    controller = dependency_provider.create_controller(
        bridge,
        dependency_provider.create_dialogue(provider, role=role, company_mode=company_mode),
        session_id,
    )
    session_registry.register(session_id, controller)
    increment_metric("ws_connections_active")
    _log_event("connect", role=role, company_mode=company_mode, provider=provider or "default")

    # snapshots leave in the order the controller produced them
    outbox: asyncio.Queue = asyncio.Queue()
    unsubscribe = controller.subscribe(outbox.put_nowait)

    async def _drain_outbox():
        while True:
            snapshot: SessionSnapshot = await outbox.get()
            try:
                await _safe_send({"type": "session.snapshot", "snapshot": snapshot.to_dict()})
            except Exception as exc:
                logger.warning("snapshot send failed | session_id=%s err=%s", session_id, exc)

    sender_task = asyncio.create_task(_drain_outbox())

    async def _handle_payload(payload: dict) -> None:
        payload_type = str(payload.get("type") or "").strip().lower()

        if payload_type == "ping":
            await _safe_send({"type": "pong", "session_id": session_id})
            return

        if payload_type == "capabilities":
            bridge.set_capabilities(payload)
            return

        if payload_type in DEVICE_REPLY_TYPES:
            bridge.resolve(payload)
            return

        if payload_type == "context":
            if controller.state != SessionState.IDLE:
                await _safe_send({"type": "error", "message": "context can only change before the interview starts"})
                return
            controller.dialogue = dependency_provider.create_dialogue(
                payload.get("provider") or provider,
                role=str(payload.get("role") or role),
                company_mode=str(payload.get("company_mode") or company_mode),
                resume_context=str(payload.get("resume_analysis") or ""),
            )
            _log_event("context_updated", provider=payload.get("provider") or provider or "default")
            return

        if payload_type == "command":
            try:
                command = SessionCommand.model_validate(payload)
            except ValidationError:
                await _safe_send({"type": "error", "message": "invalid command"})
                return
            accepted = _dispatch_command(controller, command)
            _log_event("command", action=command.action, accepted=accepted)
            await _safe_send({"type": "command.ack", "action": command.action, "accepted": accepted})
            return

        _log_event("unknown_message", message_type=payload_type or "unknown")

    close_reason = "server_error"
    await _safe_send({
        "type": "session.ready",
        "session_id": session_id,
        "snapshot": controller.snapshot().to_dict(),
    })

    try:
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                close_reason = "client_disconnect"
                _log_event("disconnect", reason=close_reason)
                break

            text_payload = msg.get("text")
            if not text_payload:
                continue
            if len(text_payload.encode("utf-8")) > MAX_WS_TEXT_BYTES:
                await _safe_send({"type": "error", "message": "message too large"})
                continue
            try:
                payload = json.loads(text_payload)
            except ValueError:
                await _safe_send({"type": "error", "message": "invalid json"})
                continue
            if not isinstance(payload, dict):
                continue
            session_registry.touch(session_id)
            await _handle_payload(payload)
    finally:
        unsubscribe()
        await controller.shutdown()
        bridge.close()
        sender_task.cancel()
        try:
            await sender_task
        except asyncio.CancelledError:
            pass
        session_registry.mark_inactive(session_id, reason=close_reason)
        decrement_metric("ws_connections_active")
        record_disconnect(close_reason)
        _log_event("closed", reason=close_reason)
