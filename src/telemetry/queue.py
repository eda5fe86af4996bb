"""Durable FIFO of serialized payloads awaiting delivery.

Entries are addressed by position: indices in use always form a contiguous
run starting at 0, index 0 being the oldest entry. `shift(n)` drops the n
oldest entries and moves the rest down in one storage step, so that stays
true. A store left with gaps (written by something else) is compacted when
the queue is opened.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from .storage import QueueStorage

logger = logging.getLogger(__name__)

OverflowCallback = Callable[[str], None]


class DeliveryQueue:
    """Bounded, storage-backed queue of undelivered payloads."""

    def __init__(
        self,
        *,
        storage: QueueStorage,
        capacity: int,
        on_overflow: OverflowCallback | None = None,
    ) -> None:
        """Create a queue over `storage` holding at most `capacity` entries.

        Args:
            storage: Backend holding the entries (durable or not).
            capacity: Max entries; indices in use are `0..capacity-1`.
            on_overflow: Called with each payload that could not be enqueued.
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0. Got: {capacity}")
        self._storage = storage
        self.capacity = capacity
        self.on_overflow = on_overflow
        self._lock = threading.RLock()
        keys = self._storage.keys()
        if keys != list(range(len(keys))):
            logger.warning("Delivery queue indices %s are not contiguous; compacting", keys)
            self._storage.reindex(0)

    def enqueue(self, payload: str) -> bool:
        """Store `payload` at the smallest free index.

        Returns False (after notifying `on_overflow`) when the queue is full.
        """
        with self._lock:
            used = set(self._storage.keys())
            index = 0
            while index in used and index < self.capacity:
                index += 1
            if index >= self.capacity:
                self._handle_overflow(payload)
                return False
            self._storage.set(index, payload)
            return True

    def _handle_overflow(self, payload: str) -> None:
        """Notify about a dropped payload; callback errors never propagate."""
        if self.on_overflow is None:
            logger.warning("Delivery queue full (%d entries); dropping payload", self.capacity)
            return
        try:
            self.on_overflow(payload)
        except Exception:  # noqa: BLE001 - capture path must not raise
            logger.exception("Overflow callback failed")

    def peek_oldest(self) -> str | None:
        """Return the oldest entry, or None when empty."""
        with self._lock:
            keys = self._storage.keys()
            return self._storage.get(keys[0]) if keys else None

    def shift(self, count: int = 1) -> None:
        """Remove the `count` oldest entries and re-index the rest from 0."""
        if count < 0:
            raise ValueError(f"count must be >= 0. Got: {count}")
        if count == 0:
            return
        with self._lock:
            self._storage.reindex(count)

    def items(self) -> list[str]:
        """Return a point-in-time copy of all entries, oldest first."""
        with self._lock:
            data: list[str] = []
            for index in self._storage.keys():
                payload = self._storage.get(index)
                if payload is not None:
                    data.append(payload)
            return data

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            for index in self._storage.keys():
                self._storage.remove(index)

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage.keys())
