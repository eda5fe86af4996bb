"""Telemetry capture agent.

Wires the capture side (`capture`) to the buffering/delivery side
(`telemetry`) from a single `AgentConfig`:

    agent = TelemetryAgent(load_config())
    agent.install()
    logging.info("hello")        # buffered, delivered or queued for retry
    ...
    agent.close()

Everything the agent installs is process-wide (diagnostic entry points and
exception hooks), and `uninstall()` restores it.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, TextIO

from capture import ErrorCapture, EventInterceptor
from config import AgentConfig
from telemetry import (
    DeliveryQueue,
    Dispatcher,
    DisplaySink,
    DuckDBStorage,
    Event,
    InMemoryStorage,
    MemoryBuffer,
    QueueStorage,
    RetryScheduler,
)
from telemetry.models import to_string
from transport import HttpTransport, Transport

logger = logging.getLogger(__name__)


def _default_storage(config: AgentConfig) -> QueueStorage:
    if config.queue.path:
        return DuckDBStorage(path=config.queue.path, namespace=config.queue.namespace)
    return InMemoryStorage()


class TelemetryAgent:
    """Captures diagnostic output and faults and forwards them to a collector.

    Members:
    - Memory buffer: `memory` (recent events, drop-new when full)
    - Delivery queue: `queue` (durable when `queue.path` is set)
    - Retry scheduler: `scheduler`
    - Dispatcher: `dispatcher`
    - Interceptor / fault capture: `interceptor`, `errors`
    """

    def __init__(
        self,
        config: AgentConfig | None = None,
        *,
        transport: Transport | None = None,
        storage: QueueStorage | None = None,
        display_stream: TextIO | None = None,
        target: Any = logging,
        on_queue_full: Callable[[str], None] | None = None,
    ) -> None:
        """Build every component from `config` (nothing is installed yet).

        Args:
            config: Agent options; defaults for everything when omitted.
            transport: Delivery capability; an `HttpTransport` when omitted.
            storage: Queue backend; DuckDB at `queue.path`, else in-memory.
            display_stream: Text stream for the display side channel.
            target: Namespace whose entry points are intercepted.
            on_queue_full: Called with each payload dropped on queue overflow.
        """
        self.config = config if config is not None else AgentConfig()
        self._lock = threading.RLock()

        self.storage = storage if storage is not None else _default_storage(self.config)
        self.transport = transport if transport is not None else HttpTransport(timeout_s=self.config.server.timeout_s)

        self.memory = MemoryBuffer(self.config.memory.max)
        self.queue = DeliveryQueue(storage=self.storage, capacity=self.config.queue.max, on_overflow=on_queue_full)
        self.scheduler = RetryScheduler(
            queue=self.queue,
            transport=self.transport,
            destination=self.config.server.url,
            interval_ms=self.config.server.retry_rate,
            lock=self._lock,
        )
        self.display = (
            DisplaySink(display_stream, max_lines=self.config.display.max) if display_stream is not None else None
        )
        self.dispatcher = Dispatcher(
            config=self.config,
            queue=self.queue,
            scheduler=self.scheduler,
            transport=self.transport,
            memory=self.memory,
            display=self.display,
            lock=self._lock,
        )
        self.interceptor = EventInterceptor(self.dispatcher, target=target, output=self.config.console.output)
        self.errors = ErrorCapture(
            self.dispatcher,
            catch_errors=self.config.error.catch_errors,
            catch_uncaught_rejections=self.config.error.catch_uncaught_rejections,
        )

    @property
    def on_queue_full(self) -> Callable[[str], None] | None:
        return self.queue.on_overflow

    @on_queue_full.setter
    def on_queue_full(self, callback: Callable[[str], None] | None) -> None:
        self.queue.on_overflow = callback

    @property
    def console(self) -> Mapping[str, Callable[..., Any]]:
        """Original (uncaptured) entry points, by name."""
        return self.interceptor.originals

    @property
    def events(self) -> tuple[Event, ...]:
        """Events held in the memory buffer, oldest first."""
        return self.memory.all()

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> TelemetryAgent:
        """Start capturing.

        Entries left in a durable queue by a previous run are retried right away.
        """
        wrapped = self.interceptor.install(self.config.console.handle_names)
        self.errors.install(loop)
        logger.debug("Telemetry agent installed (intercepting %s)", ", ".join(sorted(wrapped)))

        if self.config.delivery_enabled and len(self.queue) > 0:
            self.scheduler.ensure_armed()
        return self

    def uninstall(self) -> None:
        """Stop capturing and restore the original entry points and hooks."""
        self.interceptor.uninstall()
        self.errors.uninstall()

    def send(self, *args: Any) -> bool:
        """Send arbitrary data to the collector (queued for retry on failure)."""
        return self.dispatcher.send(*args)

    def store_locally(self, data: Any) -> bool:
        """Queue data for later delivery; returns False when the queue is full."""
        payload = data if isinstance(data, str) else to_string(data)
        return self.dispatcher.store_locally(payload)

    def flush(self) -> int:
        """Drain the queue now until it is empty or a delivery fails.

        Waits for a drain already in flight (e.g. a timer firing) instead of
        giving up on it.

        Returns the number of entries delivered.
        """
        if not self.config.delivery_enabled:
            return 0
        delivered = 0
        while self.scheduler.drain_one_attempt(wait=True) == "delivered":
            delivered += 1
        return delivered

    def close(self) -> None:
        """Uninstall, stop the retry timer and close the queue storage.

        Safe to call multiple times.
        """
        self.uninstall()
        self.scheduler.disarm()
        self.storage.close()

    def __enter__(self) -> TelemetryAgent:
        return self.install()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
