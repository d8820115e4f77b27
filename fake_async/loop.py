"""asyncio event loop whose timers and callbacks live in a `FakeAsync`.

`FakeEventLoop` implements the part of `asyncio.AbstractEventLoop` that
futures, tasks, `asyncio.sleep`, `asyncio.timeout` and `asyncio.wait_for`
rely on:

- `time()` is the scheduler's elapsed time in seconds.
- `call_soon` queues a microtask.
- `call_later` / `call_at` create one-shot timers; cancelling the returned
  `asyncio.TimerHandle` cancels the timer.
- `create_future` / `create_task` bind futures and tasks to this loop.

The loop never runs on its own. Install it with `FakeAsync.run` (or
`installed()`), create tasks, then drive them with `FakeAsync.elapse`.
I/O, subprocess and `run_*` methods are not supported and raise
`NotImplementedError`.
"""

import asyncio
import contextvars
import functools
import logging
from asyncio import events
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Iterator, Optional

from .protocols import TimerHost
from .timers import TimerHandle

logger = logging.getLogger(__name__)


class _FakeTimerHandle(asyncio.TimerHandle):
    """asyncio timer handle that also cancels the scheduler's timer."""

    def __init__(self, when, callback, args, loop, context) -> None:
        super().__init__(when, callback, args, loop, context=context)
        self.timer: Optional[TimerHandle] = None

    def cancel(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
        super().cancel()


def _run_handle(
    handle: asyncio.Handle,
    context: contextvars.Context,
    callback: Callable[..., Any],
    args: tuple,
) -> None:
    # Unlike Handle._run, errors are not routed to the exception handler.
    if not handle.cancelled():
        context.run(callback, *args)


class FakeEventLoop(asyncio.AbstractEventLoop):
    """Event loop adapter over a `TimerHost` such as `FakeAsync`."""

    def __init__(self, fake_async: TimerHost) -> None:
        self._fake_async = fake_async
        self._installed = 0
        self._closed = False
        self._debug = False

    @contextmanager
    def installed(self) -> Iterator["FakeEventLoop"]:
        """Make this the running loop for the current thread, then restore."""
        previous = events._get_running_loop()
        events._set_running_loop(self)
        self._installed += 1
        try:
            yield self
        finally:
            self._installed -= 1
            events._set_running_loop(previous)

    def time(self) -> float:
        return self._fake_async.elapsed.total_seconds()

    def call_soon(self, callback, *args, context=None) -> asyncio.Handle:
        if context is None:
            context = contextvars.copy_context()
        handle = asyncio.Handle(callback, args, self, context)
        self._fake_async.schedule_microtask(
            functools.partial(_run_handle, handle, context, callback, args)
        )
        return handle

    def call_later(self, delay, callback, *args, context=None) -> asyncio.TimerHandle:
        return self.call_at(self.time() + delay, callback, *args, context=context)

    def call_at(self, when, callback, *args, context=None) -> asyncio.TimerHandle:
        if context is None:
            context = contextvars.copy_context()
        handle = _FakeTimerHandle(when, callback, args, self, context)
        delay = timedelta(seconds=when - self.time())
        handle.timer = self._fake_async.create_timer(
            delay, functools.partial(_run_handle, handle, context, callback, args)
        )
        return handle

    def _timer_handle_cancelled(self, handle: asyncio.TimerHandle) -> None:
        pass

    def create_future(self) -> asyncio.Future:
        return asyncio.Future(loop=self)

    def create_task(self, coro, *, name=None, context=None) -> asyncio.Task:
        if context is None:
            return asyncio.Task(coro, loop=self, name=name)
        return asyncio.Task(coro, loop=self, name=name, context=context)

    def is_running(self) -> bool:
        return self._installed > 0

    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def get_debug(self) -> bool:
        return self._debug

    def set_debug(self, enabled: bool) -> None:
        self._debug = enabled

    def default_exception_handler(self, context) -> None:
        message = context.get("message") or "Unhandled exception in fake event loop"
        exception = context.get("exception")
        if exception is not None:
            exc_info = (type(exception), exception, exception.__traceback__)
        else:
            exc_info = None
        logger.error(message, exc_info=exc_info)

    def call_exception_handler(self, context) -> None:
        self.default_exception_handler(context)
