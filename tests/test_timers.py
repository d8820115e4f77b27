"""Unit tests for the timer registry and its weak handles."""

from datetime import timedelta

import pytest

from fake_async.timers import TimerRegistry

HOUR = timedelta(hours=1)
ZERO = timedelta(0)


def test_schedule_sets_next_fire_at_relative_to_now():
    reg = TimerRegistry()
    handle = reg.schedule(HOUR, 2 * HOUR, False, lambda: None)
    timer = reg.get(handle)
    assert timer.next_fire_at == 3 * HOUR
    assert handle.is_active
    assert not handle.is_periodic


def test_negative_period_is_clamped_to_zero():
    reg = TimerRegistry()
    handle = reg.schedule(HOUR, -HOUR, True, lambda h: None)
    timer = reg.get(handle)
    assert timer.period == ZERO
    assert timer.next_fire_at == HOUR


def test_next_due_returns_earliest_timer_within_deadline():
    reg = TimerRegistry()
    late = reg.schedule(ZERO, 5 * HOUR, False, lambda: None)
    early = reg.schedule(ZERO, 2 * HOUR, False, lambda: None)
    assert reg.next_due(HOUR) is None
    assert reg.next_due(3 * HOUR).id == early.id
    reg.cancel(early)
    assert reg.next_due(3 * HOUR) is None
    assert reg.next_due(5 * HOUR).id == late.id


def test_simultaneous_timers_fire_in_creation_order():
    reg = TimerRegistry()
    log = []
    for name in "abc":
        reg.schedule(ZERO, HOUR, False, lambda name=name: log.append(name))
    while True:
        timer = reg.next_due(HOUR)
        if timer is None:
            break
        reg.fire(timer)
    assert log == ["a", "b", "c"]


def test_one_shot_is_inactive_inside_its_own_callback():
    reg = TimerRegistry()
    seen = []
    handle = reg.schedule(ZERO, HOUR, False, lambda: seen.append(handle.is_active))
    reg.fire(reg.next_due(HOUR))
    assert seen == [False]
    assert not handle.is_active
    assert len(reg) == 0


def test_periodic_timer_is_rearmed_and_receives_its_handle():
    reg = TimerRegistry()
    received = []
    handle = reg.schedule(ZERO, HOUR, True, received.append)
    reg.fire(reg.next_due(HOUR))
    assert received == [handle]
    assert handle.is_active
    assert reg.get(handle).next_fire_at == 2 * HOUR
    assert reg.next_due(HOUR) is None


def test_periodic_timer_cancelled_from_its_callback_is_not_rearmed():
    reg = TimerRegistry()
    handle = reg.schedule(ZERO, HOUR, True, lambda h: h.cancel())
    reg.fire(reg.next_due(HOUR))
    assert not handle.is_active
    assert reg.next_due(10 * HOUR) is None


def test_cancel_is_idempotent_and_ignores_foreign_handles():
    reg = TimerRegistry()
    other = TimerRegistry()
    handle = reg.schedule(ZERO, HOUR, False, lambda: None)
    foreign = other.schedule(ZERO, HOUR, False, lambda: None)
    reg.cancel(foreign)
    assert foreign.is_active
    handle.cancel()
    handle.cancel()
    assert not handle.is_active
    assert not reg.is_active(foreign)


def test_counts_split_periodic_and_one_shot():
    reg = TimerRegistry()
    reg.schedule(ZERO, HOUR, True, lambda h: None)
    reg.schedule(ZERO, HOUR, False, lambda: None)
    reg.schedule(ZERO, HOUR, False, lambda: None)
    assert reg.periodic_count == 1
    assert reg.non_periodic_count == 2
    assert len(reg) == 3


def test_pending_lists_timers_in_firing_order():
    reg = TimerRegistry()
    b = reg.schedule(ZERO, 2 * HOUR, False, lambda: None)
    a = reg.schedule(ZERO, HOUR, False, lambda: None)
    assert [t.id for t in reg.pending()] == [a.id, b.id]
    assert [t.id for t in reg.pending(1)] == [a.id]


def test_fire_rejects_a_timer_that_is_not_next_due():
    reg = TimerRegistry()
    called = []
    first = reg.schedule(ZERO, HOUR, False, lambda: called.append("first"))
    second = reg.schedule(ZERO, 2 * HOUR, False, lambda: called.append("second"))
    with pytest.raises(ValueError):
        reg.fire(reg.get(second))
    assert called == []
    reg.fire(reg.next_due(2 * HOUR))
    reg.fire(reg.next_due(2 * HOUR))
    assert called == ["first", "second"]
    assert not first.is_active
    assert not second.is_active


def test_cancelled_entries_are_compacted_while_a_short_timer_holds_the_top():
    reg = TimerRegistry()
    ticks = []
    reg.schedule(ZERO, timedelta(seconds=1), True, ticks.append)
    timeout = reg.schedule(ZERO, 1000 * HOUR, False, lambda: None)
    for _ in range(100):
        timeout.cancel()
        timeout = reg.schedule(ZERO, 1000 * HOUR, False, lambda: None)
    assert len(reg) == 2
    assert len(reg._heap) <= 2 * len(reg) + 1
    reg.fire(reg.next_due(HOUR))
    assert len(ticks) == 1
    assert timeout.is_active
    assert reg.next_due(999 * HOUR).is_periodic
