"""Wall-clock view of virtual time.

`FakeClock` turns the scheduler's elapsed duration into calendar time by
adding it to a fixed starting instant. Code under test that takes a clock
object (instead of calling `datetime.now()` directly) sees time move only
when the test elapses it.
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .scheduler import FakeAsync


class FakeClock:
    """Clock whose ``now()`` is ``initial_time`` plus the virtual elapsed time."""

    def __init__(self, fake_async: "FakeAsync", initial_time: datetime) -> None:
        self._fake_async = fake_async
        self.initial_time = initial_time

    def now(self) -> datetime:
        """Return the current virtual date and time."""
        return self.initial_time + self._fake_async.elapsed

    def monotonic(self) -> float:
        """Return the virtual elapsed time in seconds."""
        return self._fake_async.elapsed.total_seconds()

    def stopwatch(self) -> "Stopwatch":
        """Return a stopped `Stopwatch` that measures virtual time."""
        return Stopwatch(self)


class Stopwatch:
    """Measures virtual time between `start` and `stop` calls.

    Like a physical stopwatch, stopping keeps the accumulated time and a
    later `start` resumes from it; `reset` clears it.
    """

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._accumulated = timedelta(0)
        self._started_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    @property
    def elapsed(self) -> timedelta:
        if self._started_at is None:
            return self._accumulated
        return self._accumulated + (self._clock.now() - self._started_at)

    def start(self) -> "Stopwatch":
        if self._started_at is None:
            self._started_at = self._clock.now()
        return self

    def stop(self) -> None:
        if self._started_at is not None:
            self._accumulated += self._clock.now() - self._started_at
            self._started_at = None

    def reset(self) -> None:
        self._accumulated = timedelta(0)
        if self._started_at is not None:
            self._started_at = self._clock.now()
