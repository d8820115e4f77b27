"""Deterministic virtual clock and scheduler for tests.

Use `FakeAsync` to exercise timer-driven code without waiting on the wall
clock. Timers and microtasks created through it (directly, through the
asyncio adapter installed by `run`, or through a `MillisecondScheduler`) are
stored in memory and only run when the test moves virtual time forward:

- `elapse(duration)` simulates the asynchronous passage of time. Pending
  microtasks are drained first, then every timer due by the target instant
  fires in order, with the microtask queue drained again after each one.
- `elapse_blocking(duration)` simulates synchronous work that takes time.
  Nothing runs; the clock just moves. Called from inside a timer, it pushes
  the current `elapse` target forward so later timers become due.
- `flush_microtasks()` drains the microtask queue and nothing else.

Typical test:

    fake = FakeAsync()
    fired = []
    fake.create_timer(timedelta(hours=12), lambda: fired.append(fake.elapsed))
    fake.elapse(timedelta(days=1))
    assert fired == [timedelta(hours=12)]
    assert fake.elapsed == timedelta(days=1)

Everything runs synchronously on the caller's thread; there is no locking.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, TypeVar

from .clock import FakeClock
from .errors import ElapseInProgressError, NegativeDurationError
from .loop import FakeEventLoop
from .microtasks import MicrotaskQueue
from .timers import ZERO, Timer, TimerHandle, TimerRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Elapsing:
    """Marker for an `elapse` call in flight; ``deadline`` may move forward."""

    deadline: timedelta


def _check_non_negative(duration: timedelta, operation: str) -> None:
    if duration < ZERO:
        logger.debug("Rejected %s(%s): negative duration", operation, duration)
        raise NegativeDurationError(
            f"Cannot call {operation} with negative duration {duration}"
        )


class FakeAsync:
    """Virtual clock plus the timer registry and microtask queue it drives.

    Parameters:
    - initial_time: calendar time that `clock.now()` reports at elapsed zero.
      Defaults to the real current time when the instance is created.
    """

    def __init__(self, initial_time: Optional[datetime] = None) -> None:
        self._elapsed = ZERO
        self._elapsing: Optional[_Elapsing] = None
        self._timers = TimerRegistry()
        self._microtasks = MicrotaskQueue()
        self._loop: Optional[FakeEventLoop] = None
        self.clock = self.get_clock(initial_time)

    # Clock

    @property
    def elapsed(self) -> timedelta:
        """Total time moved by `elapse` and `elapse_blocking` so far."""
        return self._elapsed

    def get_clock(self, initial_time: Optional[datetime] = None) -> FakeClock:
        """Return a clock reading ``initial_time`` plus `elapsed`."""
        if initial_time is None:
            initial_time = datetime.now()
        return FakeClock(self, initial_time)

    def elapse(self, duration: timedelta) -> None:
        """Simulate the asynchronous passage of ``duration``.

        Raises `NegativeDurationError` for a negative duration and
        `ElapseInProgressError` when called before a previous `elapse`
        returned, e.g. from inside a timer callback. In both cases nothing
        changes. Exceptions raised by callbacks propagate to the caller.
        """
        _check_non_negative(duration, "elapse")
        if self._elapsing is not None:
            logger.debug("Rejected elapse(%s): elapse already in progress", duration)
            raise ElapseInProgressError(
                "Cannot elapse until previous elapse is complete."
            )
        self._elapsing = _Elapsing(self._elapsed + duration)
        logger.debug("Elapsing from %s to %s", self._elapsed, self._elapsing.deadline)
        try:
            self._microtasks.drain()
            while True:
                # The deadline is re-read each time; blocking calls move it.
                timer = self._timers.next_due(self._elapsing.deadline)
                if timer is None:
                    break
                self._run_timer(timer)
                self._microtasks.drain()
            self._elapse_to(self._elapsing.deadline)
        finally:
            self._elapsing = None
        logger.debug("Elapsed to %s", self._elapsed)

    def elapse_blocking(self, duration: timedelta) -> None:
        """Simulate synchronous work taking ``duration``; runs no callbacks."""
        _check_non_negative(duration, "elapse_blocking")
        self._elapsed += duration
        if self._elapsing is not None and self._elapsed > self._elapsing.deadline:
            self._elapsing.deadline = self._elapsed
        logger.debug("Blocking elapse of %s, now at %s", duration, self._elapsed)

    def flush_microtasks(self) -> None:
        """Run pending microtasks (and any they schedule); timers are untouched."""
        self._microtasks.drain()

    def _elapse_to(self, to: timedelta) -> None:
        if to > self._elapsed:
            self._elapsed = to

    def _run_timer(self, timer: Timer) -> None:
        self._elapse_to(timer.next_fire_at)
        self._timers.fire(timer)

    # Timers and microtasks

    def create_timer(self, delay: timedelta, callback: Callable[[], Any]) -> TimerHandle:
        """Schedule ``callback`` once, ``delay`` from now (negative means now)."""
        return self._timers.schedule(self._elapsed, delay, False, callback)

    def create_periodic_timer(
        self, period: timedelta, callback: Callable[[TimerHandle], Any]
    ) -> TimerHandle:
        """Schedule ``callback(handle)`` every ``period`` until cancelled."""
        return self._timers.schedule(self._elapsed, period, True, callback)

    def cancel_timer(self, handle: TimerHandle) -> None:
        self._timers.cancel(handle)

    def is_active(self, handle: TimerHandle) -> bool:
        return self._timers.is_active(handle)

    def schedule_microtask(self, callback: Callable[[], Any]) -> None:
        self._microtasks.enqueue(callback)

    @property
    def microtask_count(self) -> int:
        return self._microtasks.count

    @property
    def periodic_timer_count(self) -> int:
        return self._timers.periodic_count

    @property
    def non_periodic_timer_count(self) -> int:
        return self._timers.non_periodic_count

    # Sandbox

    @property
    def loop(self) -> FakeEventLoop:
        """The asyncio event loop backed by this scheduler."""
        if self._loop is None:
            self._loop = FakeEventLoop(self)
        return self._loop

    def run(self, callback: Callable[["FakeAsync"], T]) -> T:
        """Call ``callback(self)`` with `loop` installed as the running loop.

        asyncio code executed inside ``callback``, and inside any callback
        that `elapse` or `flush_microtasks` runs from it, schedules its
        timers and microtasks on this instance.
        """
        with self.loop.installed():
            return callback(self)

    def dump_state(self, n: int = 5) -> str:
        """Return a human-readable snapshot of clock, microtasks and timers.

        Args:
            n: Maximum number of pending timers to include (default: 5).

        Timers are listed in the order they would fire. Nothing is changed.
        """
        timers = self._timers.pending()
        deadline = self._elapsing.deadline if self._elapsing is not None else None
        lines = [
            f"FakeAsync @ elapsed = {self._elapsed}",
            f"elapsing_to = {deadline}",
            f"microtasks = {self.microtask_count}",
            f"timers = {len(timers)} (showing first {min(n, len(timers))})",
        ]
        for i, timer in enumerate(timers[:n]):
            cb_name = getattr(timer.callback, "__name__", None)
            cb_desc = cb_name if isinstance(cb_name, str) else repr(timer.callback)
            remaining = max(ZERO, timer.next_fire_at - self._elapsed)
            kind = f"periodic every {timer.period}" if timer.is_periodic else "one-shot"
            lines.append(
                f"#{i:02d} due @ {timer.next_fire_at} (in {remaining}) "
                f"id={timer.id} {kind} cb={cb_desc}"
            )
        return "\n".join(lines)
