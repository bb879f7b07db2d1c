from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from app.interview.errors import PlaybackUnsupported

logger = logging.getLogger("speech_output")


class Synthesizer(Protocol):
    """Text-to-speech playback capability of the host."""

    available: bool

    async def speak(self, text: str) -> None:
        ...

    def cancel(self) -> None:
        ...


class SilentSynthesizer:
    available = False

    async def speak(self, text: str) -> None:
        raise PlaybackUnsupported("speech synthesis is not available")

    def cancel(self) -> None:
        return None


class SpeechOutputAdapter:
    """
    Plays one utterance at a time. `speak` resolves when playback completes,
    is cancelled, or cannot happen at all; it never raises for playback problems.
    """

    def __init__(self, synthesizer: Synthesizer, timeout_sec: float | None = None):
        self.synthesizer = synthesizer
        self.timeout_sec = timeout_sec
        self._lock = asyncio.Lock()
        self._current: asyncio.Future | None = None
        self._cancel_requested = False

    @property
    def speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    async def speak(self, text: str) -> bool:
        """Returns True when the utterance played to completion."""
        text = str(text or "").strip()
        if not text:
            return True

        async with self._lock:
            if not getattr(self.synthesizer, "available", False):
                return False

            self._cancel_requested = False
            current = asyncio.ensure_future(self.synthesizer.speak(text))
            self._current = current
            try:
                if self.timeout_sec:
                    await asyncio.wait_for(current, timeout=self.timeout_sec)
                else:
                    await current
                return True
            except asyncio.CancelledError:
                if self._cancel_requested:
                    return False
                self._stop_synthesizer()
                raise
            except asyncio.TimeoutError:
                logger.warning("playback timed out; continuing without completion event")
                self._stop_synthesizer()
                return False
            except PlaybackUnsupported:
                logger.info("playback unsupported; continuing text-only")
                return False
            except Exception as exc:
                logger.warning("playback failed; continuing text-only | err=%s", exc)
                return False
            finally:
                if self._current is current:
                    self._current = None

    def cancel(self) -> bool:
        if not self.speaking:
            return False
        self._cancel_requested = True
        self._stop_synthesizer()
        self._current.cancel()
        return True

    def _stop_synthesizer(self) -> None:
        try:
            self.synthesizer.cancel()
        except Exception as exc:
            logger.warning("synthesizer cancel failed | err=%s", exc)
