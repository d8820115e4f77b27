"""FIFO queue of deferred zero-argument callbacks ("microtasks").

Microtasks model work that the host runtime runs before the next timer tick:
future callbacks, task steps, `call_soon` handles. The scheduler drains the
queue to exhaustion before it looks at any timer.
"""

import logging
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)

Microtask = Callable[[], None]


class MicrotaskQueue:
    """Strict first-in-first-out queue of microtasks."""

    def __init__(self) -> None:
        self._queue: Deque[Microtask] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def count(self) -> int:
        """Number of microtasks waiting to run."""
        return len(self._queue)

    def enqueue(self, callback: Microtask) -> None:
        """Append `callback` to the tail of the queue."""
        self._queue.append(callback)

    def drain(self) -> int:
        """Run microtasks until the queue is empty; return how many ran.

        Callbacks enqueued while draining are appended to the same queue and
        run in this call. A callback that raises stops the drain; the error
        propagates and the rest of the queue stays pending.
        """
        ran = 0
        while self._queue:
            callback = self._queue.popleft()
            callback()
            ran += 1
        if ran:
            logger.debug("Drained %d microtask(s)", ran)
        return ran
