"""Timer records and the registry that owns them.

The registry keeps every pending timer in a dict keyed by id, plus a min-heap
of ``(next_fire_at, id)`` entries used to find the earliest due timer. Heap
entries are not removed eagerly: cancelling a timer only touches the dict,
and stale heap entries are skipped the next time the heap is read. Once
stale entries outnumber live timers (say, a far-future timeout re-armed and
cancelled over and over), `cancel` rebuilds the heap from the live timers.

The id is a creation counter, so timers due at the same instant fire in the
order they were created. A periodic timer keeps its id when it is re-armed.

Callers only ever see a `TimerHandle`: the registry plus the timer id. A
handle can ask whether its timer is still pending and can cancel it, but it
never keeps a timer alive on its own.
"""

import heapq
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

ZERO = timedelta(0)


@dataclass(eq=False)
class Timer:
    """A pending one-shot or periodic timer.

    ``next_fire_at`` is measured from the scheduler's epoch. One-shot
    callbacks take no arguments; periodic callbacks receive the timer's own
    `TimerHandle` so they can cancel themselves.
    """

    id: int
    period: timedelta
    is_periodic: bool
    next_fire_at: timedelta
    callback: Callable[..., Any]


@dataclass(frozen=True)
class TimerHandle:
    """Weak reference to a timer owned by a `TimerRegistry`."""

    registry: "TimerRegistry" = field(repr=False)
    id: int

    @property
    def is_active(self) -> bool:
        """True while the timer is registered (pending or periodic)."""
        return self.registry.is_active(self)

    @property
    def is_periodic(self) -> bool:
        timer = self.registry.get(self)
        return timer is not None and timer.is_periodic

    def cancel(self) -> None:
        """Cancel the timer; a no-op if it already fired or was cancelled."""
        self.registry.cancel(self)


class TimerRegistry:
    """Owns all pending timers and answers "what is due next?" queries."""

    def __init__(self) -> None:
        self._timers: Dict[int, Timer] = {}
        self._heap: List[Tuple[timedelta, int]] = []
        self._counter = 0  # tie-breaker for stable ordering

    def __len__(self) -> int:
        return len(self._timers)

    @property
    def periodic_count(self) -> int:
        return sum(1 for timer in self._timers.values() if timer.is_periodic)

    @property
    def non_periodic_count(self) -> int:
        return sum(1 for timer in self._timers.values() if not timer.is_periodic)

    def schedule(
        self,
        now: timedelta,
        period: timedelta,
        is_periodic: bool,
        callback: Callable[..., Any],
    ) -> TimerHandle:
        """Register a timer due at ``now + period`` and return its handle.

        A negative ``period`` is clamped to zero, so the timer is due
        immediately.
        """
        if period < ZERO:
            period = ZERO
        self._counter += 1
        timer = Timer(
            id=self._counter,
            period=period,
            is_periodic=is_periodic,
            next_fire_at=now + period,
            callback=callback,
        )
        self._timers[timer.id] = timer
        heapq.heappush(self._heap, (timer.next_fire_at, timer.id))
        logger.debug(
            "Scheduled %s timer #%d due at %s",
            "periodic" if is_periodic else "one-shot",
            timer.id,
            timer.next_fire_at,
        )
        return TimerHandle(self, timer.id)

    def get(self, handle: TimerHandle) -> Optional[Timer]:
        if handle.registry is not self:
            return None
        return self._timers.get(handle.id)

    def is_active(self, handle: TimerHandle) -> bool:
        return self.get(handle) is not None

    def cancel(self, handle: TimerHandle) -> None:
        """Unregister the timer behind ``handle`` if it is still pending."""
        if handle.registry is not self:
            return
        if self._timers.pop(handle.id, None) is not None:
            logger.debug("Cancelled timer #%d", handle.id)
            if len(self._heap) > 2 * len(self._timers):
                self._compact()

    def _compact(self) -> None:
        self._heap = [(t.next_fire_at, t.id) for t in self._timers.values()]
        heapq.heapify(self._heap)

    def next_due(self, deadline: timedelta) -> Optional[Timer]:
        """Return the earliest timer due at or before ``deadline``, if any."""
        while self._heap:
            when, timer_id = self._heap[0]
            timer = self._timers.get(timer_id)
            if timer is None or timer.next_fire_at != when:
                heapq.heappop(self._heap)
                continue
            return timer if when <= deadline else None
        return None

    def fire(self, timer: Timer) -> None:
        """Invoke ``timer``, which must be the timer `next_due` just returned.

        One-shot timers are unregistered before their callback runs. Periodic
        timers are re-armed one period later unless the callback cancelled
        them, even when the callback raises.
        """
        if not self._heap or self._heap[0] != (timer.next_fire_at, timer.id):
            raise ValueError(f"Timer #{timer.id} is not the next due timer")
        heapq.heappop(self._heap)
        handle = TimerHandle(self, timer.id)
        logger.debug("Firing timer #%d at %s", timer.id, timer.next_fire_at)
        if not timer.is_periodic:
            del self._timers[timer.id]
            timer.callback()
            return
        try:
            timer.callback(handle)
        finally:
            if self._timers.get(timer.id) is timer:
                timer.next_fire_at += timer.period
                heapq.heappush(self._heap, (timer.next_fire_at, timer.id))

    def pending(self, n: Optional[int] = None) -> List[Timer]:
        """Return up to ``n`` pending timers in the order they would fire."""
        timers = sorted(self._timers.values(), key=lambda t: (t.next_fire_at, t.id))
        return timers if n is None else timers[:n]
