from __future__ import annotations

import threading
import time

import pytest

from telemetry.queue import DeliveryQueue
from telemetry.scheduler import RetryScheduler, _PeriodicTimer
from telemetry.storage import InMemoryStorage
from transport.base import DeliveryResult

URL = "http://collector.local/ingest"


@pytest.fixture
def no_timer_threads(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep Armed/Idle bookkeeping but never start a real timer thread."""
    monkeypatch.setattr(_PeriodicTimer, "start", lambda self: None)


def _scheduler(transport, *, interval_ms: int = 2000, items: list[str] | None = None):
    queue = DeliveryQueue(storage=InMemoryStorage(), capacity=10)
    for item in items or []:
        queue.enqueue(item)
    scheduler = RetryScheduler(queue=queue, transport=transport, destination=URL, interval_ms=interval_ms)
    return scheduler, queue


def test_ensure_armed_and_disarm_are_idempotent(transport, no_timer_threads) -> None:
    scheduler, _ = _scheduler(transport)
    assert scheduler.armed is False

    scheduler.ensure_armed()
    timer = scheduler._timer
    scheduler.ensure_armed()
    assert scheduler.armed is True
    assert scheduler._timer is timer

    scheduler.disarm()
    scheduler.disarm()
    assert scheduler.armed is False


def test_drain_on_empty_queue_disarms(transport, no_timer_threads) -> None:
    scheduler, _ = _scheduler(transport)
    scheduler.ensure_armed()

    assert scheduler.drain_one_attempt() == "empty"
    assert scheduler.armed is False
    assert transport.calls == []


def test_drain_delivers_only_the_oldest_entry(transport, no_timer_threads) -> None:
    scheduler, queue = _scheduler(transport, items=["a", "b"])
    scheduler.ensure_armed()

    assert scheduler.drain_one_attempt() == "delivered"
    assert transport.calls == [(URL, "a")]
    assert queue.items() == ["b"]
    assert scheduler.armed is True


def test_failed_drain_leaves_queue_and_stays_armed(failing_transport, no_timer_threads) -> None:
    scheduler, queue = _scheduler(failing_transport, items=["a", "b"])
    scheduler.ensure_armed()

    assert scheduler.drain_one_attempt() == "failed"
    assert scheduler.drain_one_attempt() == "failed"
    assert queue.items() == ["a", "b"]
    assert failing_transport.payloads == ["a", "a"]
    assert scheduler.armed is True


def test_unreachable_then_recovered_drains_one_per_tick(failing_transport, no_timer_threads) -> None:
    scheduler, queue = _scheduler(failing_transport, interval_ms=2000, items=["e1", "e2", "e3"])
    scheduler.ensure_armed()

    assert scheduler.drain_one_attempt() == "failed"
    assert len(queue) == 3
    assert scheduler.armed is True

    failing_transport.ok = True
    for expected_len in [2, 1, 0]:
        assert scheduler.drain_one_attempt() == "delivered"
        assert len(queue) == expected_len

    assert scheduler.armed is False
    assert failing_transport.payloads == ["e1", "e1", "e2", "e3"]


def test_transport_exception_counts_as_failure(no_timer_threads) -> None:
    class ExplodingTransport:
        def deliver(self, destination: str, payload: str):
            raise RuntimeError("bug in transport")

    scheduler, queue = _scheduler(ExplodingTransport(), items=["a"])
    assert scheduler.drain_one_attempt() == "failed"
    assert queue.items() == ["a"]


def test_overlapping_drain_is_skipped(no_timer_threads) -> None:
    entered = threading.Event()
    release = threading.Event()

    class SlowTransport:
        def __init__(self) -> None:
            self.calls = 0

        def deliver(self, destination: str, payload: str):
            self.calls += 1
            entered.set()
            release.wait(timeout=5)
            return DeliveryResult(ok=True)

    slow = SlowTransport()
    scheduler, queue = _scheduler(slow, items=["a", "b"])

    outcomes: list[str] = []
    worker = threading.Thread(target=lambda: outcomes.append(scheduler.drain_one_attempt()))
    worker.start()
    assert entered.wait(timeout=5)

    assert scheduler.drain_one_attempt() == "busy"

    release.set()
    worker.join(timeout=5)
    assert outcomes == ["delivered"]
    assert slow.calls == 1
    assert queue.items() == ["b"]


def test_waiting_drain_runs_after_in_flight_drain(no_timer_threads) -> None:
    entered = threading.Event()
    release = threading.Event()
    delivered: list[str] = []

    class SlowTransport:
        def deliver(self, destination: str, payload: str):
            delivered.append(payload)
            if payload == "a":
                entered.set()
                release.wait(timeout=5)
            return DeliveryResult(ok=True)

    scheduler, queue = _scheduler(SlowTransport(), items=["a", "b"])

    worker = threading.Thread(target=scheduler.drain_one_attempt)
    worker.start()
    assert entered.wait(timeout=5)

    unblock = threading.Timer(0.1, release.set)
    unblock.start()
    try:
        assert scheduler.drain_one_attempt(wait=True) == "delivered"
    finally:
        release.set()
        unblock.cancel()
        worker.join(timeout=5)

    assert delivered == ["a", "b"]
    assert queue.items() == []


def test_real_timer_drains_queue_and_goes_idle(transport) -> None:
    scheduler, queue = _scheduler(transport, interval_ms=10, items=["a", "b", "c"])
    scheduler.ensure_armed()
    try:
        deadline = time.monotonic() + 5.0
        while scheduler.armed and time.monotonic() < deadline:
            time.sleep(0.01)

        assert scheduler.armed is False
        assert len(queue) == 0
        assert transport.payloads == ["a", "b", "c"]
    finally:
        scheduler.disarm()


def test_interval_must_be_positive(transport) -> None:
    queue = DeliveryQueue(storage=InMemoryStorage(), capacity=1)
    with pytest.raises(ValueError):
        RetryScheduler(queue=queue, transport=transport, destination=URL, interval_ms=0)
