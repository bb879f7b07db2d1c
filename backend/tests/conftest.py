import asyncio
import os
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("DIALOGUE_PROVIDER", "static")


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")


# ---------- fake host devices ----------

class FakeMediaDevice:
    def __init__(self, fail: Exception | None = None, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.opened = 0
        self.closed: list = []

    async def open(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        self.opened += 1
        return {"stream_id": f"stream-{self.opened}"}

    def close(self, stream):
        self.closed.append(stream)

    @property
    def live_streams(self) -> int:
        return self.opened - len(self.closed)


class FakeRecognizer:
    """Answers are queued by the test; `recognize` waits for the next one."""

    def __init__(self, available: bool = True):
        self.available = available
        self.aborted = 0
        self._answers: asyncio.Queue = asyncio.Queue()

    def say(self, answer) -> None:
        self._answers.put_nowait(answer)

    async def recognize(self) -> str:
        answer = await self._answers.get()
        if isinstance(answer, Exception):
            raise answer
        return answer

    def abort(self) -> None:
        self.aborted += 1


class FakeSynthesizer:
    def __init__(self, available: bool = True, delay: float = 0.0):
        self.available = available
        self.delay = delay
        self.spoken: list[str] = []
        self.cancelled = 0

    async def speak(self, text: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.spoken.append(text)

    def cancel(self) -> None:
        self.cancelled += 1


async def wait_for_state(controller, state, timeout: float = 2.0):
    async def _poll():
        while controller.state != state:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


async def wait_until(predicate, timeout: float = 2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def media_device() -> FakeMediaDevice:
    return FakeMediaDevice()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()
