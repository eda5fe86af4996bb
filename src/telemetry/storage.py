"""Queue storage backends (key-indexed string stores)."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import duckdb


class QueueStorage(Protocol):
    """A synchronous mapping from small integer indices to strings.

    Writes are synchronous so that a successful `set`/`remove` is durable by the
    time it returns (for backends that persist at all).
    """

    def get(self, index: int) -> str | None:
        """Return the value stored at `index`, or None."""

    def set(self, index: int, value: str) -> None:
        """Store `value` at `index`, replacing any previous value."""

    def remove(self, index: int) -> None:
        """Remove the value at `index` (no-op if absent)."""

    def keys(self) -> list[int]:
        """Return all indices in use, ascending."""

    def reindex(self, drop: int) -> None:
        """Drop the `drop` lowest-indexed entries and renumber the rest from 0.

        Either the whole change is applied or none of it is.
        """

    def close(self) -> None:
        """Close any underlying resources."""


class InMemoryStorage:
    """In-memory storage for tests and local debugging (not durable)."""

    def __init__(self) -> None:
        """Create an empty in-memory store."""
        self._lock = threading.Lock()
        self._items: dict[int, str] = {}

    def get(self, index: int) -> str | None:
        with self._lock:
            return self._items.get(index)

    def set(self, index: int, value: str) -> None:
        with self._lock:
            self._items[index] = value

    def remove(self, index: int) -> None:
        with self._lock:
            self._items.pop(index, None)

    def keys(self) -> list[int]:
        with self._lock:
            return sorted(self._items)

    def reindex(self, drop: int) -> None:
        with self._lock:
            ordered = [self._items[index] for index in sorted(self._items)][drop:]
            self._items = dict(enumerate(ordered))

    def close(self) -> None:  # noqa: D401 - keep interface consistent
        """No-op."""


@dataclass(frozen=True)
class DuckDBOptions:
    path: Path
    namespace: str = "telemetry"
    table: str = "delivery_queue"


class DuckDBStorage:
    """DuckDB storage for durable local persistence.

    Every agent namespace gets its own rows in a shared table, so several agents
    can point at the same file without seeing each other's entries.
    """

    def __init__(self, *, path: str | Path, namespace: str = "telemetry", table: str = "delivery_queue") -> None:
        """Create (or open) a DuckDB-backed store at the given path."""
        self._opts = DuckDBOptions(path=Path(path), namespace=namespace, table=table)
        self._lock = threading.Lock()
        self._conn = duckdb.connect(str(self._opts.path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Create the backing table if it does not exist yet."""
        create_sql = f"""
        create table if not exists {self._opts.table} (
          namespace varchar not null,
          idx integer not null,
          payload varchar not null
        )
        """
        with self._lock:
            self._conn.execute(create_sql)

    def get(self, index: int) -> str | None:
        select_sql = f"select payload from {self._opts.table} where namespace = ? and idx = ?"
        with self._lock:
            row = self._conn.execute(select_sql, [self._opts.namespace, index]).fetchone()
        return None if row is None else row[0]

    def set(self, index: int, value: str) -> None:
        """Insert or replace a single entry in one transaction."""
        delete_sql = f"delete from {self._opts.table} where namespace = ? and idx = ?"
        insert_sql = f"insert into {self._opts.table} (namespace, idx, payload) values (?, ?, ?)"
        with self._lock:
            self._conn.begin()
            try:
                self._conn.execute(delete_sql, [self._opts.namespace, index])
                self._conn.execute(insert_sql, [self._opts.namespace, index, value])
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
    def remove(self, index: int) -> None:
        delete_sql = f"delete from {self._opts.table} where namespace = ? and idx = ?"
        with self._lock:
            self._conn.execute(delete_sql, [self._opts.namespace, index])

    def keys(self) -> list[int]:
        select_sql = f"select idx from {self._opts.table} where namespace = ? order by idx"
        with self._lock:
            rows = self._conn.execute(select_sql, [self._opts.namespace]).fetchall()
        return [row[0] for row in rows]

    def reindex(self, drop: int) -> None:
        """Drop the oldest entries and renumber the rest inside one transaction."""
        select_sql = f"select payload from {self._opts.table} where namespace = ? order by idx"
        delete_sql = f"delete from {self._opts.table} where namespace = ?"
        insert_sql = f"insert into {self._opts.table} (namespace, idx, payload) values (?, ?, ?)"
        with self._lock:
            self._conn.begin()
            try:
                rows = self._conn.execute(select_sql, [self._opts.namespace]).fetchall()
                remaining = [row[0] for row in rows][drop:]
                self._conn.execute(delete_sql, [self._opts.namespace])
                if remaining:
                    self._conn.executemany(
                        insert_sql,
                        [[self._opts.namespace, index, payload] for index, payload in enumerate(remaining)],
                    )
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()
