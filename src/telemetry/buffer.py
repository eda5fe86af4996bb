"""Bounded in-memory history of captured events."""

from __future__ import annotations

import threading

from .models import Event


class MemoryBuffer:
    """A capped, insertion-ordered window of recently captured events.

    Once `capacity` is reached further events are not appended (drop-new).
    There is no removal: this is recent history, not a work queue.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0. Got: {capacity}")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._events: list[Event] = []

    def append(self, event: Event) -> bool:
        """Append an event; returns False when the buffer is full."""
        with self._lock:
            if len(self._events) >= self.capacity:
                return False
            self._events.append(event)
            return True

    def all(self) -> tuple[Event, ...]:
        """Return the buffered events in insertion order (read-only)."""
        with self._lock:
            return tuple(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
