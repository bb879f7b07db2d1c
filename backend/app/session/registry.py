from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from threading import Lock
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from app.interview.models import SessionSnapshot
    from app.session_controller import SessionController


@dataclass
class RegisteredSession:
    controller: "SessionController"
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    connected: bool = True
    close_reason: Optional[str] = None


class SessionRegistry:
    """
    Interview sessions by id. Entries outlive their socket and are dropped
    by `cleanup_inactive` once they have been disconnected for the TTL.
    """

    def __init__(self):
        self._lock = Lock()
        self._sessions: dict[str, RegisteredSession] = {}

    def register(self, session_id: str, session_controller: "SessionController") -> None:
        with self._lock:
            self._sessions[session_id] = RegisteredSession(controller=session_controller)

    def touch(self, session_id: str) -> None:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is not None:
                entry.updated_at = time.time()

    def mark_inactive(self, session_id: str, reason: str = "disconnected") -> None:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is not None:
                entry.connected = False
                entry.close_reason = reason
                entry.updated_at = time.time()

    def get(self, session_id: str) -> RegisteredSession | None:
        with self._lock:
            entry = self._sessions.get(session_id)
            return replace(entry) if entry else None

    def get_controller(self, session_id: str) -> "SessionController | None":
        entry = self.get(session_id)
        return entry.controller if entry else None

    def snapshot(self, session_id: str) -> "SessionSnapshot | None":
        controller = self.get_controller(session_id)
        return controller.snapshot() if controller is not None else None

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for entry in self._sessions.values() if entry.connected)

    def cleanup_inactive(self, ttl_sec: float) -> int:
        cutoff = time.time() - max(30.0, float(ttl_sec or 1800.0))
        with self._lock:
            stale = [
                session_id
                for session_id, entry in self._sessions.items()
                if not entry.connected and entry.updated_at <= cutoff
            ]
            for session_id in stale:
                del self._sessions[session_id]
        return len(stale)


session_registry = SessionRegistry()
