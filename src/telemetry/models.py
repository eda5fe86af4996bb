"""Captured event models.

Events are designed to be:
- Immutable once created (frozen models).
- Fully serializable: payloads hold plain values, never live runtime objects
  captured from a fault (exceptions, tracebacks, frames).
- Cheap to render into the stable string form that is delivered/queued.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

EventKind = Literal["log", "info", "warn", "error", "debug"]

# Handle name -> event kind. Unknown handle names are captured as "log".
_KIND_BY_HANDLE_NAME: dict[str, EventKind] = {
    "debug": "debug",
    "info": "info",
    "warn": "warn",
    "warning": "warn",
    "error": "error",
    "exception": "error",
    "critical": "error",
    "fatal": "error",
    "log": "log",
    "print": "log",
}


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


def kind_for_handle(name: str) -> EventKind:
    """Map an intercepted entry point name onto an event kind."""
    return _KIND_BY_HANDLE_NAME.get(name, "log")


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Event(_Model):
    """A single captured unit of diagnostic output or fault."""

    kind: EventKind
    # Whatever was passed to the intercepted call; only ever serialized.
    payload: tuple[Any, ...] = ()
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_call(cls, handle_name: str, args: tuple[Any, ...]) -> Event:
        """Build an event for a call to an intercepted entry point."""
        return cls(kind=kind_for_handle(handle_name), payload=tuple(args))


class SourceLocation(_Model):
    file: str | None = None
    line: int | None = None
    col: int | None = None


class ErrorDetails(_Model):
    """Plain-data fields extracted from an exception object."""

    name: str
    description: str
    code: int | None = None
    stack: str | None = None


class NormalizedErrorEvent(_Model):
    """A runtime fault normalized into plain, serializable data."""

    title: str
    message: str
    source_location: SourceLocation | None = None
    error_details: ErrorDetails | None = None

    def to_event(self) -> Event:
        """Wrap this fault as the single payload element of an `error` event."""
        return Event(kind="error", payload=(self.model_dump(),))


def format_payload(payload: tuple[Any, ...]) -> Any:
    """Collapse a payload for storage and transfer.

    A single-argument payload stands for itself; anything else stays an
    ordered sequence.
    """
    if len(payload) == 1:
        return payload[0]
    return list(payload)


def to_string(data: Any) -> str:
    """Serialize data into its stable string form (JSON, falling back to `str`)."""
    try:
        return json.dumps(data, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        # Circular references and similar; still produce something deliverable.
        return str(data)


def serialize_payload(payload: tuple[Any, ...]) -> str:
    """Render an event payload into the string that is displayed/delivered/queued."""
    return to_string(format_payload(payload))
