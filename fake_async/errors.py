"""Exceptions raised by the fake scheduler.

Only two operations can fail: advancing the clock by a negative amount, and
starting an `elapse` while another one is still running. Everything else
(cancelling, scheduling, introspection) is total.
"""


class FakeAsyncError(Exception):
    """Base class for errors raised by `fake_async`."""


class NegativeDurationError(FakeAsyncError, ValueError):
    """Raised when `elapse` or `elapse_blocking` receives a negative duration."""


class ElapseInProgressError(FakeAsyncError, RuntimeError):
    """Raised when `elapse` is called before a previous `elapse` returned."""
