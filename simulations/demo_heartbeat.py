"""Heartbeat failure-detector demo on virtual time.

A leader sends a heartbeat to every follower each `interval_ms`. Followers
arm a suspicion timer that every heartbeat resets; if it fires, the follower
records when it started suspecting the leader. Part-way through, the leader
crashes.

Instead of a step-and-poll loop (`run_due(); clock.advance(10)`), the whole
scenario runs inside one `FakeAsync.elapse` call: every timer fires at its
exact due time, so detection times are exact and reproducible.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from fake_async import FakeAsync, MillisecondScheduler
from fake_async.protocols import Scheduler, SchedulerCancel


class DelayedTransport:
    """Delivers messages after a fixed latency using the node scheduler."""

    def __init__(self, scheduler: Scheduler, latency_ms: int) -> None:
        self.scheduler = scheduler
        self.latency_ms = latency_ms
        self.handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {}

    def register(self, node_id: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        self.handlers[node_id] = handler

    def send(self, to: str, msg: Dict[str, Any]) -> None:
        def deliver(to=to, msg=msg):
            h = self.handlers.get(to)
            if h:
                h(msg)

        self.scheduler.call_later(self.latency_ms, deliver)


@dataclass
class Leader:
    node_id: str
    peers: List[str]
    transport: Any
    scheduler: Scheduler
    interval_ms: int
    crashed: bool = False
    sent: int = 0

    def start(self) -> None:
        self.scheduler.call_later(0, self.beat)

    def beat(self) -> None:
        if self.crashed:
            return
        for p in self.peers:
            self.transport.send(p, {"type": "heartbeat", "from": self.node_id})
        self.sent += 1
        self.scheduler.call_later(self.interval_ms, self.beat)

    def crash(self) -> None:
        self.crashed = True


@dataclass
class Follower:
    node_id: str
    scheduler: Scheduler
    timeout_ms: int
    received: int = 0
    suspected_at: Optional[int] = None
    _cancel_suspicion: Optional[SchedulerCancel] = field(default=None, repr=False)

    def start(self) -> None:
        self._arm()

    def _arm(self) -> None:
        if self._cancel_suspicion is not None:
            # Heartbeat arrived, so restart the suspicion window
            self._cancel_suspicion()
        self._cancel_suspicion = self.scheduler.call_later(self.timeout_ms, self.suspect)

    def suspect(self) -> None:
        self.suspected_at = self.scheduler.now_ms()

    def on_message(self, msg: Dict[str, Any]) -> None:
        if msg.get("type") != "heartbeat":
            raise ValueError(f"Unknown type in message {msg!r}")
        self.received += 1
        if self.suspected_at is None:
            self._arm()


def run_scenario(
    num_followers: int = 3,
    interval_ms: int = 100,
    timeout_ms: int = 300,
    latency_ms: int = 20,
    crash_at_ms: int = 1000,
    duration_ms: int = 2000,
) -> Dict[str, Any]:
    fake = FakeAsync()
    scheduler = MillisecondScheduler(fake)
    transport = DelayedTransport(scheduler, latency_ms)

    follower_ids = [f"n{i}" for i in range(1, num_followers + 1)]
    leader = Leader("n0", follower_ids, transport, scheduler, interval_ms)
    followers = {}
    for nid in follower_ids:
        node = Follower(nid, scheduler, timeout_ms)
        followers[nid] = node
        transport.register(nid, node.on_message)

    leader.start()
    for node in followers.values():
        node.start()
    scheduler.call_later(crash_at_ms, leader.crash)

    fake.elapse(timedelta(milliseconds=duration_ms))

    return {
        "elapsed_ms": scheduler.now_ms(),
        "heartbeats_sent": leader.sent,
        "suspected_at": {nid: n.suspected_at for nid, n in followers.items()},
    }


def main():
    print(run_scenario())


if __name__ == "__main__":
    main()
