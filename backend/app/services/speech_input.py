from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from app.interview.errors import RecognitionError
from app.interview.models import (
    CaptureError,
    CaptureErrorKind,
    CaptureResult,
    CaptureSuccess,
)

logger = logging.getLogger("speech_input")


class Recognizer(Protocol):
    """One-shot speech-to-text capability of the host."""

    available: bool

    async def recognize(self) -> str:
        ...

    def abort(self) -> None:
        ...


class UnsupportedRecognizer:
    available = False

    async def recognize(self) -> str:
        raise RecognitionError("not_supported")

    def abort(self) -> None:
        return None


class SpeechInputAdapter:
    """
    Single-shot answer capture. Raw recognizer outcomes are folded into a
    CaptureResult; nothing but cancellation of the caller escapes.
    """

    def __init__(self, recognizer: Recognizer, timeout_sec: float | None = None):
        self.recognizer = recognizer
        self.timeout_sec = timeout_sec
        self._pending: asyncio.Future | None = None
        self._cancel_requested = False
        self._closed = False

    @property
    def supported(self) -> bool:
        return bool(getattr(self.recognizer, "available", False)) and not self._closed

    @property
    def active(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def capture_once(self) -> CaptureResult:
        if self.active:
            logger.info("capture rejected | reason=already_active")
            return CaptureError(CaptureErrorKind.BUSY, "a capture is already in progress")
        if not self.supported:
            return CaptureError(CaptureErrorKind.NOT_SUPPORTED, "speech recognition is not available")

        self._cancel_requested = False
        pending = asyncio.ensure_future(self.recognizer.recognize())
        self._pending = pending
        try:
            if self.timeout_sec:
                text = await asyncio.wait_for(pending, timeout=self.timeout_sec)
            else:
                text = await pending
        except asyncio.CancelledError:
            if self._cancel_requested:
                return CaptureError(CaptureErrorKind.CANCELLED, "capture cancelled")
            self._abort_recognizer()
            raise
        except asyncio.TimeoutError:
            self._abort_recognizer()
            return CaptureError(CaptureErrorKind.TIMEOUT, "no answer was heard in time")
        except RecognitionError as exc:
            return CaptureError(CaptureErrorKind.from_raw(exc.kind), str(exc))
        except Exception as exc:
            logger.warning("recognizer failure | err=%s", exc)
            return CaptureError(CaptureErrorKind.ERROR, str(exc))
        finally:
            if self._pending is pending:
                self._pending = None

        text = str(text or "").strip()
        if not text:
            return CaptureError(CaptureErrorKind.NO_SPEECH, "no speech detected")
        return CaptureSuccess(text=text)

    def cancel(self) -> bool:
        if not self.active:
            return False
        self._cancel_requested = True
        self._abort_recognizer()
        self._pending.cancel()
        return True

    def close(self) -> None:
        self.cancel()
        self._closed = True

    def _abort_recognizer(self) -> None:
        try:
            self.recognizer.abort()
        except Exception as exc:
            logger.warning("recognizer abort failed | err=%s", exc)
