from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.interview.errors import DeviceUnavailable
from app.system_metrics import increment_metric

logger = logging.getLogger("media_service")


class MediaDevice(Protocol):
    """Camera + microphone capability exposed by the host."""

    async def open(self) -> Any:
        ...

    def close(self, stream: Any) -> None:
        ...


@dataclass
class MediaHandle:
    stream: Any
    handle_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    released: bool = False


class MediaResourceManager:
    """
    Owns the single camera+microphone handle of a session.
    Release is idempotent and never raises.
    """

    def __init__(self, device: MediaDevice, acquire_timeout_sec: float | None = None):
        self.device = device
        self.acquire_timeout_sec = acquire_timeout_sec
        self._handle: MediaHandle | None = None
        self._lock = asyncio.Lock()

    @property
    def handle(self) -> MediaHandle | None:
        if self._handle is None or self._handle.released:
            return None
        return self._handle

    async def acquire(self) -> MediaHandle:
        async with self._lock:
            if self.handle is not None:
                logger.info("media already acquired | handle=%s", self._handle.handle_id)
                return self._handle

            opening = asyncio.ensure_future(self.device.open())
            try:
                if self.acquire_timeout_sec:
                    stream = await asyncio.wait_for(asyncio.shield(opening), timeout=self.acquire_timeout_sec)
                else:
                    stream = await asyncio.shield(opening)
            except asyncio.CancelledError:
                self._discard_open(opening)
                raise
            except DeviceUnavailable:
                raise
            except asyncio.TimeoutError as exc:
                self._discard_open(opening)
                raise DeviceUnavailable("camera/microphone did not respond in time") from exc
            except Exception as exc:
                raise DeviceUnavailable(f"could not open camera/microphone: {exc}") from exc

            if stream is None:
                raise DeviceUnavailable("no camera/microphone stream returned")

            self._handle = MediaHandle(stream=stream)
            logger.info("media acquired | handle=%s", self._handle.handle_id)
            return self._handle

    def _discard_open(self, opening: asyncio.Future) -> None:
        # a stream that opens after the caller gave up must still be closed
        def _close_late(fut: asyncio.Future) -> None:
            if fut.cancelled() or fut.exception() is not None:
                return
            stream = fut.result()
            if stream is None:
                return
            try:
                self.device.close(stream)
                logger.info("late media stream closed")
            except Exception as exc:
                increment_metric("media_release_failures")
                logger.warning("late media close failed | err=%s", exc)

        if opening.done():
            _close_late(opening)
        else:
            opening.add_done_callback(_close_late)
            opening.cancel()

    def release(self, handle: MediaHandle | None = None) -> bool:
        """Release `handle` (or the current one). Returns True if a live handle was closed."""
        target = handle or self._handle
        if target is None or target.released:
            return False

        target.released = True
        if target is self._handle:
            self._handle = None

        try:
            self.device.close(target.stream)
        except Exception as exc:
            increment_metric("media_release_failures")
            logger.warning("media release failed | handle=%s err=%s", target.handle_id, exc)
        else:
            logger.info("media released | handle=%s", target.handle_id)
        return True
