from __future__ import annotations

import asyncio
import logging

from customer_booking.application.utils.state_cell import StateCell
from customer_booking.domain.entities.otp_state import TimerState


class CountdownTimer:
    """
    Per-second countdown publishing TimerState.

    At most one countdown runs per instance; `start` replaces the running one.
    """

    def __init__(self, tick_seconds: float = 1.0, initial: TimerState | None = None) -> None:
        self.state: StateCell[TimerState] = StateCell(initial or TimerState())
        self._tick_seconds = tick_seconds
        self._task: asyncio.Task | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, duration_seconds: int) -> None:
        if duration_seconds < 0:
            raise ValueError("duration_seconds must be >= 0")
        self.stop()
        self.state.set(TimerState(seconds_remaining=duration_seconds, enabled=False))
        self._task = asyncio.get_running_loop().create_task(
            self._run(duration_seconds), name="countdown-timer"
        )
        self._logger.debug("Countdown started", extra={"reason": f"{duration_seconds}s"})

    async def _run(self, duration_seconds: int) -> None:
        loop = asyncio.get_running_loop()
        started_at = loop.time()
        for elapsed, seconds in enumerate(range(duration_seconds - 1, -1, -1), start=1):
            # Sleep to an absolute deadline so ticks do not drift.
            await asyncio.sleep(max(0.0, started_at + elapsed * self._tick_seconds - loop.time()))
            self.state.set(TimerState(seconds_remaining=seconds, enabled=False))
        self.state.set(TimerState(seconds_remaining=0, enabled=True))

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self._logger.debug("Countdown stopped")

    def reset(self, duration_seconds: int) -> None:
        """Stop and go back to the idle `(duration, disabled)` state."""
        if duration_seconds < 0:
            raise ValueError("duration_seconds must be >= 0")
        self.stop()
        self.state.set(TimerState(seconds_remaining=duration_seconds, enabled=False))

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
