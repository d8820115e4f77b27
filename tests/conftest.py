"""Shared fixtures for the fake_async test suite."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, List, Tuple

import pytest

from fake_async import FakeAsync
from fake_async.timers import TimerHandle, TimerRegistry

ELAPSE_BY = timedelta(days=1)
INITIAL_TIME = datetime(2014, 3, 6)


@pytest.fixture
def fake() -> FakeAsync:
    """A fresh scheduler whose clock starts at ``INITIAL_TIME``."""
    return FakeAsync(initial_time=INITIAL_TIME)


@pytest.fixture
def elapse_by() -> timedelta:
    return ELAPSE_BY


class RecordingHost:
    """Minimal timer host that records requests instead of running them."""

    def __init__(self) -> None:
        self.elapsed = timedelta(seconds=3)
        self.registry = TimerRegistry()
        self.timers: List[Tuple[timedelta, Callable[..., Any]]] = []
        self.microtasks: List[Callable[[], Any]] = []

    def create_timer(self, delay, callback) -> TimerHandle:
        self.timers.append((delay, callback))
        return self.registry.schedule(self.elapsed, delay, False, callback)

    def create_periodic_timer(self, period, callback) -> TimerHandle:
        return self.registry.schedule(self.elapsed, period, True, callback)

    def schedule_microtask(self, callback) -> None:
        self.microtasks.append(callback)
