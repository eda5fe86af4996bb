"""Timer-driven retry of queued payloads.

The scheduler is a two-state machine:

- Idle: no timer exists.
- Armed: a daemon timer thread fires every `interval_ms` and makes one drain
  attempt per firing.

A drain attempt delivers at most one entry (the oldest). On success that entry
is shifted off the queue; on failure the queue is left untouched and the next
firing retries the same entry. The timer is torn down as soon as the queue is
found (or left) empty. Drain attempts are single-flight: a firing that overlaps a running
attempt is skipped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Literal

from transport.base import Transport

from .queue import DeliveryQueue

logger = logging.getLogger(__name__)

DrainOutcome = Literal["empty", "delivered", "failed", "busy"]


class _PeriodicTimer(threading.Thread):
    """Daemon thread calling `callback` every `interval_s` until cancelled."""

    def __init__(self, interval_s: float, callback: Callable[[], object]) -> None:
        super().__init__(name="telemetry-retry-timer", daemon=True)
        self.interval_s = interval_s
        self._callback = callback
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def run(self) -> None:
        while not self._cancelled.wait(self.interval_s):
            try:
                self._callback()
            except Exception:  # noqa: BLE001 - keep the timer alive
                logger.exception("Retry timer callback failed")


class RetryScheduler:
    """Drains a `DeliveryQueue` through a `Transport` on a fixed interval."""

    def __init__(
        self,
        *,
        queue: DeliveryQueue,
        transport: Transport,
        destination: str,
        interval_ms: int,
        lock: threading.RLock | None = None,
    ) -> None:
        """Create an idle scheduler.

        Args:
            queue: Queue to drain.
            transport: Delivery capability.
            destination: Collector URL passed to the transport.
            interval_ms: Fixed retry interval.
            lock: Mutex serializing queue/scheduler transitions; share it with
                the dispatcher so both observe one order of events.
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0. Got: {interval_ms}")
        self._queue = queue
        self._transport = transport
        self.destination = destination
        self.interval_ms = interval_ms
        self._lock = lock if lock is not None else threading.RLock()
        self._in_flight = threading.Lock()
        self._timer: _PeriodicTimer | None = None

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def ensure_armed(self) -> None:
        """Idle -> Armed. No-op when already armed."""
        with self._lock:
            if self._timer is not None:
                return
            self._timer = _PeriodicTimer(self.interval_ms / 1000.0, self.drain_one_attempt)
            self._timer.start()
            logger.debug("Retry timer armed (every %d ms)", self.interval_ms)

    def disarm(self) -> None:
        """Armed -> Idle. No-op when already idle; safe from within a firing."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            # Never joined: disarm may run on the timer thread itself.
            timer.cancel()
            logger.debug("Retry timer disarmed")

    def drain_one_attempt(self, *, wait: bool = False) -> DrainOutcome:
        """Try to deliver the oldest queued entry (at most one per call).

        Timer firings pass `wait=False` and return "busy" while another drain is
        in flight. Callers that must not skip a round (flush) pass `wait=True`
        and block until the in-flight drain finishes.
        """
        if not self._in_flight.acquire(blocking=wait):
            return "busy"
        try:
            with self._lock:
                payload = self._queue.peek_oldest()
                if payload is None:
                    self.disarm()
                    return "empty"

            if not self._attempt(payload):
                return "failed"

            with self._lock:
                self._queue.shift(1)
                if self._queue.peek_oldest() is None:
                    self.disarm()
            return "delivered"
        finally:
            self._in_flight.release()

    def _attempt(self, payload: str) -> bool:
        try:
            result = self._transport.deliver(self.destination, payload)
        except Exception:  # noqa: BLE001 - treat a misbehaving transport as a failed delivery
            logger.exception("Transport raised during retry")
            return False
        return result.ok
