import asyncio

import pytest

from app.interview.errors import NotSupported, PlaybackUnsupported, RecognitionError
from app.interview.models import CaptureError, CaptureErrorKind, CaptureSuccess
from app.services.speech_input import SpeechInputAdapter, UnsupportedRecognizer
from app.services.speech_output import SilentSynthesizer, SpeechOutputAdapter
from conftest import FakeRecognizer, FakeSynthesizer


# ---------- input ----------

@pytest.mark.asyncio
async def test_capture_returns_trimmed_transcript():
    recognizer = FakeRecognizer()
    adapter = SpeechInputAdapter(recognizer)
    recognizer.say("  I led the migration.  ")

    result = await adapter.capture_once()

    assert result == CaptureSuccess(text="I led the migration.")


@pytest.mark.asyncio
async def test_second_capture_is_rejected_without_disturbing_first():
    recognizer = FakeRecognizer()
    adapter = SpeechInputAdapter(recognizer)

    first = asyncio.create_task(adapter.capture_once())
    await asyncio.sleep(0)
    assert adapter.active is True

    second = await adapter.capture_once()
    assert isinstance(second, CaptureError)
    assert second.kind == CaptureErrorKind.BUSY

    recognizer.say("first answer")
    assert await first == CaptureSuccess(text="first answer")
    assert recognizer.aborted == 0


@pytest.mark.asyncio
async def test_empty_transcript_is_no_speech():
    recognizer = FakeRecognizer()
    adapter = SpeechInputAdapter(recognizer)
    recognizer.say("   ")

    result = await adapter.capture_once()

    assert result.kind == CaptureErrorKind.NO_SPEECH


@pytest.mark.asyncio
async def test_recognizer_errors_are_typed():
    recognizer = FakeRecognizer()
    adapter = SpeechInputAdapter(recognizer)

    recognizer.say(RecognitionError("not-allowed"))
    assert (await adapter.capture_once()).kind == CaptureErrorKind.DENIED

    recognizer.say(NotSupported())
    assert (await adapter.capture_once()).kind == CaptureErrorKind.NOT_SUPPORTED

    recognizer.say(RuntimeError("engine crashed"))
    assert (await adapter.capture_once()).kind == CaptureErrorKind.ERROR


@pytest.mark.asyncio
async def test_unsupported_recognizer_short_circuits():
    adapter = SpeechInputAdapter(UnsupportedRecognizer())

    assert adapter.supported is False
    result = await adapter.capture_once()
    assert result.kind == CaptureErrorKind.NOT_SUPPORTED


@pytest.mark.asyncio
async def test_cancel_resolves_capture_as_cancelled():
    recognizer = FakeRecognizer()
    adapter = SpeechInputAdapter(recognizer)

    task = asyncio.create_task(adapter.capture_once())
    await asyncio.sleep(0)
    assert adapter.cancel() is True

    result = await task
    assert result.kind == CaptureErrorKind.CANCELLED
    assert recognizer.aborted == 1
    assert adapter.active is False
    assert adapter.cancel() is False


@pytest.mark.asyncio
async def test_capture_timeout():
    recognizer = FakeRecognizer()
    adapter = SpeechInputAdapter(recognizer, timeout_sec=0.01)

    result = await adapter.capture_once()

    assert result.kind == CaptureErrorKind.TIMEOUT
    assert recognizer.aborted == 1


@pytest.mark.asyncio
async def test_closed_adapter_is_unsupported():
    adapter = SpeechInputAdapter(FakeRecognizer())
    adapter.close()

    assert adapter.supported is False


# ---------- output ----------

@pytest.mark.asyncio
async def test_speak_plays_utterances_one_at_a_time():
    synthesizer = FakeSynthesizer(delay=0.01)
    adapter = SpeechOutputAdapter(synthesizer)

    results = await asyncio.gather(adapter.speak("one"), adapter.speak("two"))

    assert results == [True, True]
    assert synthesizer.spoken == ["one", "two"]


@pytest.mark.asyncio
async def test_unavailable_synthesizer_resolves_without_raising():
    assert await SpeechOutputAdapter(SilentSynthesizer()).speak("hello") is False
    assert await SpeechOutputAdapter(FakeSynthesizer(available=False)).speak("hello") is False


@pytest.mark.asyncio
async def test_playback_unsupported_midway_resolves():
    class _Refusing(FakeSynthesizer):
        async def speak(self, text):
            raise PlaybackUnsupported("voice missing")

    assert await SpeechOutputAdapter(_Refusing()).speak("hello") is False


@pytest.mark.asyncio
async def test_cancel_stops_playback():
    synthesizer = FakeSynthesizer(delay=1.0)
    adapter = SpeechOutputAdapter(synthesizer)

    task = asyncio.create_task(adapter.speak("a long question"))
    await asyncio.sleep(0.01)
    assert adapter.cancel() is True

    assert await task is False
    assert synthesizer.cancelled == 1
    assert synthesizer.spoken == []
