"""Fake timers and microtasks for testing time-dependent code deterministically."""

from .clock import FakeClock, Stopwatch
from .errors import ElapseInProgressError, FakeAsyncError, NegativeDurationError
from .loop import FakeEventLoop
from .sandbox import MillisecondScheduler
from .scheduler import FakeAsync
from .timers import TimerHandle

__all__ = [
    "ElapseInProgressError",
    "FakeAsync",
    "FakeAsyncError",
    "FakeClock",
    "FakeEventLoop",
    "MillisecondScheduler",
    "NegativeDurationError",
    "Stopwatch",
    "TimerHandle",
]
