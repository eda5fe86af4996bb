"""Capture of diagnostic output and runtime faults.

- `EventInterceptor` wraps diagnostic entry points (e.g. `logging.info`).
- `ErrorCapture` subscribes to uncaught-exception and asyncio failure hooks.

Both turn what they observe into `telemetry.models.Event` objects and hand them
to a handler (normally the dispatcher).
"""

from .faults import (
    ErrorCapture,
    PositionalFault,
    StructuredFault,
    UnknownFault,
    classify_fault,
    normalize_fault,
)
from .interceptor import EventHandler, EventInterceptor

__all__ = [
    "ErrorCapture",
    "EventHandler",
    "EventInterceptor",
    "PositionalFault",
    "StructuredFault",
    "UnknownFault",
    "classify_fault",
    "normalize_fault",
]
