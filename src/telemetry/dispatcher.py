"""Event dispatcher: buffer, display, deliver, and fall back to the queue."""

from __future__ import annotations

import logging
import threading
from typing import Any

from config import AgentConfig
from transport.base import Transport

from .buffer import MemoryBuffer
from .display import DisplaySink
from .models import Event, serialize_payload
from .queue import DeliveryQueue
from .scheduler import RetryScheduler

logger = logging.getLogger(__name__)


class Dispatcher:
    """Routes every captured event through the pipeline.

    For each event:
    - Appends it to the memory buffer (if enabled).
    - Renders the payload once; the same string is displayed, delivered and queued.
    - Attempts an immediate delivery (if a collector is configured).
    - On delivery failure, queues the payload and makes sure the retry timer runs.

    `handle` never raises: a capture agent that crashes its host defeats its purpose.
    """

    def __init__(
        self,
        *,
        config: AgentConfig,
        queue: DeliveryQueue,
        scheduler: RetryScheduler,
        transport: Transport,
        memory: MemoryBuffer | None = None,
        display: DisplaySink | None = None,
        lock: threading.RLock | None = None,
    ) -> None:
        self._config = config
        self._queue = queue
        self._scheduler = scheduler
        self._transport = transport
        self._memory = memory
        self._display = display
        self._lock = lock if lock is not None else threading.RLock()

    def handle(self, event: Event) -> None:
        """Process one captured event."""
        try:
            if self._memory is not None and self._config.memory.enabled:
                self._memory.append(event)

            payload = serialize_payload(event.payload)

            if self._display is not None and self._config.display.output:
                self._display.write(payload)

            if self._config.delivery_enabled:
                self._deliver(payload)
        except Exception:  # noqa: BLE001 - capture path must not raise
            logger.exception("Failed to dispatch %s event", event.kind)

    def send(self, *args: Any) -> bool:
        """Deliver arbitrary data to the collector (queued on failure).

        Returns True only if the data was delivered immediately.
        """
        if not self._config.delivery_enabled:
            return False
        try:
            return self._deliver(serialize_payload(args))
        except Exception:  # noqa: BLE001 - capture path must not raise
            logger.exception("Failed to send data")
            return False

    def store_locally(self, payload: str) -> bool:
        """Queue a payload for later delivery; returns False on overflow."""
        with self._lock:
            if not self._queue.enqueue(payload):
                return False
            if self._config.delivery_enabled:
                self._scheduler.ensure_armed()
            return True

    def _deliver(self, payload: str) -> bool:
        try:
            result = self._transport.deliver(self._config.server.url, payload)
            delivered = result.ok
        except Exception:  # noqa: BLE001 - treat a misbehaving transport as a failed delivery
            logger.exception("Transport raised during delivery")
            delivered = False

        if delivered:
            return True
        if self._config.queue.save_on_failure:
            self.store_locally(payload)
        return False
