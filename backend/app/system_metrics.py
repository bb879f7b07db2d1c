import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "ws_connections_active": 0.0,
    "ws_disconnects_total": 0.0,
    "ws_disconnect_client_disconnect": 0.0,
    "ws_disconnect_server_error": 0.0,
    "sessions_active": 0.0,
    "sessions_started": 0.0,
    "sessions_completed": 0.0,
    "sessions_exhausted": 0.0,
    "preemptions_deadline": 0.0,
    "preemptions_user_stop": 0.0,
    "device_unavailable": 0.0,
    "capture_failures": 0.0,
    "generation_failures": 0.0,
    "media_release_failures": 0.0,
    "late_results_discarded": 0.0,
    "generation_latency_total_ms": 0.0,
    "generation_latency_samples": 0.0,
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def set_metric(name: str, value: float) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = max(0.0, float(value))


def record_disconnect(reason: str) -> None:
    key = str(reason or "other").strip().lower().replace(" ", "_") or "other"
    with _lock:
        _metrics["ws_disconnects_total"] = float(_metrics.get("ws_disconnects_total", 0.0)) + 1.0
        _metrics[f"ws_disconnect_{key}"] = float(_metrics.get(f"ws_disconnect_{key}", 0.0)) + 1.0


def get_metric(name: str) -> float:
    with _lock:
        return float(_metrics.get(str(name or "").strip(), 0.0))


def observe_generation_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["generation_latency_total_ms"] = float(_metrics.get("generation_latency_total_ms", 0.0)) + latency
        _metrics["generation_latency_samples"] = float(_metrics.get("generation_latency_samples", 0.0)) + 1.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("generation_latency_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for key, value in data.items():
        if key.startswith("generation_latency_"):
            continue
        payload[key] = int(value or 0.0)
    payload["generation_latency_samples"] = int(data.get("generation_latency_samples") or 0.0)
    payload["avg_generation_latency_ms"] = round(
        float(data.get("generation_latency_total_ms") or 0.0) / latency_samples, 2
    )

    if extra:
        payload.update(extra)
    return payload
