"""Telemetry pipeline primitives.

This package provides the buffering and delivery half of the agent:
- Immutable captured events and their stable string rendering.
- A capped in-memory history of recent events.
- A durable (DuckDB-backed) FIFO for payloads whose delivery failed.
- A fixed-interval retry scheduler draining that FIFO one entry per tick.
- The dispatcher tying them together.
"""

from .buffer import MemoryBuffer
from .dispatcher import Dispatcher
from .display import DisplaySink
from .models import ErrorDetails, Event, EventKind, NormalizedErrorEvent, SourceLocation, serialize_payload
from .queue import DeliveryQueue
from .scheduler import RetryScheduler
from .storage import DuckDBStorage, InMemoryStorage, QueueStorage

__all__ = [
    "DeliveryQueue",
    "Dispatcher",
    "DisplaySink",
    "DuckDBStorage",
    "ErrorDetails",
    "Event",
    "EventKind",
    "InMemoryStorage",
    "MemoryBuffer",
    "NormalizedErrorEvent",
    "QueueStorage",
    "RetryScheduler",
    "SourceLocation",
    "serialize_payload",
]
