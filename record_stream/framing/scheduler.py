"""Restartable, destroyable periodic timer driving drain passes.

The scheduler runs on an asyncio event loop via ``loop.call_later``. Each tick
disarms the timer, runs the callback to completion and re-arms only if the
scheduler was neither stopped nor destroyed meanwhile, so at most one drain
pass is ever in flight.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Optional


class SchedulerState(str, Enum):
    ARMED = "armed"
    PAUSED = "paused"
    DESTROYED = "destroyed"


class DrainScheduler:
    """Periodic tick source with an absorbing ``destroyed`` state.

    Args:
        interval: Seconds between ticks.
        callback: Invoked synchronously on every tick.
        loop: Event loop to schedule on; defaults to the running loop.
        autostart: Arm immediately on construction.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        autostart: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._loop = loop or asyncio.get_running_loop()
        self._handle: Optional[asyncio.TimerHandle] = None
        self._state = SchedulerState.PAUSED
        self._ticking = False
        self._resume = False
        self.ticks = 0
        if autostart:
            self.start()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def destroyed(self) -> bool:
        return self._state is SchedulerState.DESTROYED

    @property
    def armed(self) -> bool:
        return self._state is SchedulerState.ARMED

    def start(self) -> None:
        """Arm the timer. No-op when destroyed or already armed."""
        if self._ticking:
            if not self.destroyed:
                self._resume = True
            return
        if self._state is not SchedulerState.PAUSED:
            return
        self._state = SchedulerState.ARMED
        self._schedule()

    def stop(self) -> None:
        """Pause the timer, cancelling any pending tick."""
        if self._ticking:
            self._resume = False
            return
        if self._state is not SchedulerState.ARMED:
            return
        self._state = SchedulerState.PAUSED
        self._cancel_pending()

    def destroy(self) -> None:
        """Stop permanently. Idempotent; a pending tick never fires afterwards."""
        if self._state is SchedulerState.DESTROYED:
            return
        self._state = SchedulerState.DESTROYED
        self._resume = False
        self._cancel_pending()

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._tick)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        if self._state is not SchedulerState.ARMED:
            return
        self._state = SchedulerState.PAUSED
        self._ticking = True
        self._resume = True
        self.ticks += 1
        try:
            self._callback()
        finally:
            self._ticking = False
            if self._resume and self._state is not SchedulerState.DESTROYED:
                self._state = SchedulerState.ARMED
                self._schedule()

    def __repr__(self) -> str:  # pragma: no cover - introspection aid
        return f"DrainScheduler(interval={self._interval}, state={self._state.value}, ticks={self.ticks})"


__all__ = ["DrainScheduler", "SchedulerState"]
