"""Interfaces (Protocols) at the seam between code under test and the scheduler.

Code that only depends on these abstractions can run against the real
runtime in production and against `FakeAsync` in tests, without changes:

- `TimerHost` is what the scheduler offers to whatever intercepts timer and
  microtask creation (the asyncio adapter, or a hand-written sandbox).
- `Scheduler` is the small millisecond-based timer API that simulation
  nodes are written against.
"""

from datetime import timedelta
from typing import Any, Callable, Protocol, runtime_checkable

from .timers import TimerHandle


@runtime_checkable
class TimerHost(Protocol):
    """Capabilities a sandbox needs to redirect timers into the scheduler."""

    @property
    def elapsed(self) -> timedelta:
        """Virtual time elapsed since the scheduler was created."""
        raise NotImplementedError

    def create_timer(self, delay: timedelta, callback: Callable[[], Any]) -> TimerHandle:
        """Register a one-shot `callback` due after `delay`."""
        raise NotImplementedError

    def create_periodic_timer(
        self, period: timedelta, callback: Callable[[TimerHandle], Any]
    ) -> TimerHandle:
        """Register `callback` to run every `period`.

        The callback receives the timer's own handle so it can cancel itself.
        """
        raise NotImplementedError

    def schedule_microtask(self, callback: Callable[[], Any]) -> None:
        """Queue `callback` to run before the next timer."""
        raise NotImplementedError


class SchedulerCancel(Protocol):
    """Callable returned by `Scheduler.call_later` to cancel a pending event."""

    def __call__(self) -> None:
        raise NotImplementedError


class Scheduler(Protocol):
    """Scheduler abstraction; used by nodes to schedule future work."""

    def call_later(self, ms: int, cb: Callable[[], None]) -> SchedulerCancel:
        """Schedule callback `cb` to run in `ms` milliseconds."""
        raise NotImplementedError

    def now_ms(self) -> int:
        """Return current time in milliseconds for this scheduler domain."""
        raise NotImplementedError
