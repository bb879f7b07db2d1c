from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from app.interview.models import Deadline

logger = logging.getLogger("session.timer")

TickFn = Callable[[int], None]
ExpiredFn = Callable[[], None]


class DeadlineTimer:
    """
    Countdown owned by one session.

    Remaining seconds drop by one per tick; each tick lasts `tick_seconds`
    of loop time. The expiry callback fires at most once per timer. Redraw
    concerns subscribe through `on_tick`; preemption goes through `on_expired`.
    """

    def __init__(
        self,
        total_seconds: int,
        on_expired: ExpiredFn,
        on_tick: Optional[TickFn] = None,
        tick_seconds: float = 1.0,
    ):
        self.total_seconds = max(1, int(total_seconds))
        self.remaining_seconds = self.total_seconds
        self.tick_seconds = max(0.001, float(tick_seconds))
        self._on_expired = on_expired
        self._on_tick = on_tick
        self._task: asyncio.Task | None = None
        self._deadline_at: float | None = None
        self._fired = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def expired(self) -> bool:
        if self.remaining_seconds <= 0:
            return True
        if self._deadline_at is None or self._stopped:
            return False
        return asyncio.get_running_loop().time() >= self._deadline_at

    def snapshot(self) -> Deadline:
        return Deadline(total_seconds=self.total_seconds, remaining_seconds=self.remaining_seconds)

    def start(self) -> None:
        if self._task is not None or self._stopped:
            return
        loop = asyncio.get_running_loop()
        self._deadline_at = loop.time() + self.total_seconds * self.tick_seconds
        self._task = loop.create_task(self._run())

    def stop(self) -> None:
        self._stopped = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        try:
            while self.remaining_seconds > 0 and not self._stopped:
                await asyncio.sleep(self.tick_seconds)
                if self._stopped:
                    return
                self.remaining_seconds = max(0, self.remaining_seconds - 1)
                if self._on_tick is not None:
                    try:
                        self._on_tick(self.remaining_seconds)
                    except Exception:
                        logger.exception("tick listener failed")
            if not self._stopped:
                self.fire()
        except asyncio.CancelledError:
            pass

    def fire(self) -> bool:
        """Raise the expiry signal now. Returns False if it already fired."""
        if self._fired:
            return False
        self._fired = True
        self.remaining_seconds = 0
        self._stopped = True
        logger.info("deadline expired | total_seconds=%s", self.total_seconds)
        self._on_expired()
        return True
