"""Adapters that route timer requests from code under test into `FakeAsync`.

The asyncio adapter lives in `fake_async.loop`; this module covers code
written against the millisecond `fake_async.protocols.Scheduler` protocol,
such as the simulation nodes in ``simulations/``.
"""

from datetime import timedelta
from typing import Callable

from .protocols import SchedulerCancel, TimerHost

_MS = timedelta(milliseconds=1)


class MillisecondScheduler:
    """Tiny adapter exposing `now_ms` and `call_later` atop a `TimerHost`.

    Schedule callbacks using `call_later(ms, cb)`; get a cancel function back.
    Callbacks run when the owning scheduler elapses past their due time.
    """

    def __init__(self, fake_async: TimerHost) -> None:
        self.fake_async = fake_async

    def now_ms(self) -> int:
        """Return the virtual elapsed time in whole milliseconds."""
        return self.fake_async.elapsed // _MS

    def call_later(self, ms: int, cb: Callable[[], None]) -> SchedulerCancel:
        """Schedule `cb` to run after `ms` milliseconds of virtual time.

        Returns a zero-arg cancel function; if invoked before the callback is
        due, the callback will not run.
        """
        handle = self.fake_async.create_timer(ms * _MS, cb)
        return handle.cancel
