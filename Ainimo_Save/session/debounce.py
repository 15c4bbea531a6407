"""
Debounce timer with a single owned handle.

A DebounceTimer holds at most one pending callback. schedule() cancels the
pending one before arming a new one, and cancel() releases it, so repeated
scheduling never leaks timers.
"""

import asyncio
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules callbacks on the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class DebounceTimer:
    def __init__(self, scheduler: Scheduler, delay: float, callback: Callable[[], None]):
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self._scheduler = scheduler
        self._delay = delay
        self._callback = callback
        self._handle: Optional[TimerHandle] = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> bool:
        """Arm the timer. Returns True when a pending timer was replaced."""
        replaced = self.cancel()
        self._handle = self._scheduler.call_later(self._delay, self._fire)
        return replaced

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        self._handle = None
        self._callback()
