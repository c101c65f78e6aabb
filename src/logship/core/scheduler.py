"""
Periodic flush timer owned by a transport instance.

The timer is an asyncio task on the transport's loop, so ticks are
cooperatively scheduled and never run inline with ``append``. Cancelling it
is deterministic: once ``cancel()`` returns no further tick can fire.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable

from . import diagnostics


class SchedulerState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


class FlushScheduler:
    """Calls ``on_tick`` every ``interval_seconds`` while armed."""

    def __init__(
        self,
        *,
        interval_seconds: float | None,
        on_tick: Callable[[], None],
    ) -> None:
        self._interval = interval_seconds
        self._on_tick = on_tick
        self._task: asyncio.Task[None] | None = None
        self._state = SchedulerState.IDLE

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def interval_seconds(self) -> float | None:
        return self._interval

    @property
    def enabled(self) -> bool:
        return self._interval is not None and self._interval > 0

    def arm(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start the timer on ``loop``; must be called from that loop's thread."""
        if not self.enabled or self._state is SchedulerState.ARMED:
            return
        self._task = loop.create_task(self._run())
        self._state = SchedulerState.ARMED

    async def cancel(self) -> None:
        task = self._task
        self._task = None
        self._state = SchedulerState.IDLE
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        assert self._interval is not None
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._on_tick()
            except Exception as exc:  # noqa: BLE001
                diagnostics.warn(
                    "scheduler",
                    "flush tick failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                    _rate_limit_key="scheduler-tick",
                )
