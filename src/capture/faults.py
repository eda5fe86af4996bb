"""Capture of uncaught exceptions and unhandled asyncio failures.

Fault notifications arrive in different shapes depending on the channel:

- `sys.excepthook(exc_type, exc_value, traceback)`: positional arguments.
- `threading.excepthook(args)` and asyncio loop exception handlers
  (`handler(loop, context)`): a single structured object.

`classify_fault` is the one place that decides which shape a notification has.
Everything downstream works on the resulting tagged union and only ever copies
plain data (strings, ints) out of exception objects, so captured events never
hold on to live exceptions, tracebacks or frames.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from telemetry.models import ErrorDetails, NormalizedErrorEvent, SourceLocation

from .interceptor import EventHandler

logger = logging.getLogger(__name__)

GLOBAL_ERROR_TITLE = "global error handling"
UNHANDLED_REJECTION_TITLE = "unhandled rejection"
UNRECOGNIZED_FAULT_TITLE = "unrecognized fault notification"
CAPTURE_FAILED_TITLE = "fault capture failed"


@dataclass(frozen=True)
class PositionalFault:
    exc_type: type[BaseException] | None
    exc_value: BaseException | None
    exc_traceback: TracebackType | None


@dataclass(frozen=True)
class StructuredFault:
    message: str | None
    exception: BaseException | None
    exc_traceback: TracebackType | None
    stack: str | None = None


@dataclass(frozen=True)
class UnknownFault:
    args: tuple[Any, ...]


Fault = PositionalFault | StructuredFault | UnknownFault


def classify_fault(*args: Any) -> Fault:
    """Decide which recognized shape a fault notification has."""
    if len(args) == 3 and _is_exc_type(args[0]) and _is_exc_value(args[1]) and _is_traceback(args[2]):
        return PositionalFault(exc_type=args[0], exc_value=args[1], exc_traceback=args[2])

    if len(args) == 1:
        obj = args[0]
        if isinstance(obj, Mapping) and ("message" in obj or "exception" in obj):
            # asyncio exception-handler context (or any mapping shaped like it).
            exc = obj.get("exception")
            exc = exc if isinstance(exc, BaseException) else None
            message = obj.get("message")
            stack = obj.get("stack")
            return StructuredFault(
                message=message if isinstance(message, str) else None,
                exception=exc,
                exc_traceback=exc.__traceback__ if exc is not None else None,
                stack=stack if isinstance(stack, str) else None,
            )
        if isinstance(obj, threading.ExceptHookArgs):
            return StructuredFault(
                message=f"Exception in thread {obj.thread.name}" if obj.thread is not None else None,
                exception=obj.exc_value,
                exc_traceback=obj.exc_traceback,
            )

    return UnknownFault(args=args)


def _is_exc_type(value: Any) -> bool:
    return value is None or (isinstance(value, type) and issubclass(value, BaseException))


def _is_exc_value(value: Any) -> bool:
    return value is None or isinstance(value, BaseException)


def _is_traceback(value: Any) -> bool:
    return value is None or isinstance(value, TracebackType)


def _error_code(exc: BaseException) -> int | None:
    for attr in ("errno", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _error_details(exc: BaseException, tb: TracebackType | None, stack: str | None = None) -> ErrorDetails:
    if stack is None:
        stack = "".join(traceback.format_exception(type(exc), exc, tb))
    return ErrorDetails(
        name=type(exc).__name__,
        description=str(exc),
        code=_error_code(exc),
        stack=stack,
    )


def _source_location(tb: TracebackType | None) -> SourceLocation | None:
    """Location of the innermost frame of a traceback."""
    if tb is None:
        return None
    frames = traceback.extract_tb(tb)
    if not frames:
        return None
    frame = frames[-1]
    colno = getattr(frame, "colno", None)
    return SourceLocation(
        file=frame.filename,
        line=frame.lineno,
        # 1-based, like line numbers.
        col=colno + 1 if colno is not None else None,
    )


def normalize_fault(fault: Fault, *, title: str) -> NormalizedErrorEvent:
    """Turn a classified fault into plain, serializable data."""
    if isinstance(fault, PositionalFault):
        exc = fault.exc_value
        if exc is None:
            name = fault.exc_type.__name__ if fault.exc_type is not None else "UnknownError"
            return NormalizedErrorEvent(title=title, message=name)
        return NormalizedErrorEvent(
            title=title,
            message=str(exc) or type(exc).__name__,
            source_location=_source_location(fault.exc_traceback),
            error_details=_error_details(exc, fault.exc_traceback),
        )

    if isinstance(fault, StructuredFault):
        exc = fault.exception
        if exc is None:
            details = None
            if fault.stack is not None:
                details = ErrorDetails(name="Error", description=fault.message or "", stack=fault.stack)
            return NormalizedErrorEvent(title=title, message=fault.message or "", error_details=details)
        return NormalizedErrorEvent(
            title=title,
            message=fault.message or str(exc) or type(exc).__name__,
            source_location=_source_location(fault.exc_traceback),
            error_details=_error_details(exc, fault.exc_traceback, fault.stack),
        )

    return NormalizedErrorEvent(
        title=UNRECOGNIZED_FAULT_TITLE,
        message=", ".join(_safe_repr(arg) for arg in fault.args),
    )


def _safe_repr(value: Any) -> str:
    try:
        return repr(value)
    except Exception:  # noqa: BLE001 - arbitrary objects may have broken __repr__
        return f"<unrepresentable {type(value).__name__}>"


class ErrorCapture:
    """Subscribes to process-wide fault channels and emits `error` events.

    Previously installed hooks keep running after capture, so the host's own
    reporting is unchanged.
    """

    def __init__(
        self,
        handler: EventHandler,
        *,
        catch_errors: bool = True,
        catch_uncaught_rejections: bool = True,
    ) -> None:
        self._handler = handler
        self.catch_errors = catch_errors
        self.catch_uncaught_rejections = catch_uncaught_rejections

        # Bound once so uninstall can tell whether the hook is still ours.
        self._sys_hook = self._excepthook
        self._thread_hook = self._threading_excepthook
        self._loop_hook = self._loop_exception_handler

        self._prev_sys_hook: Any = None
        self._prev_thread_hook: Any = None
        self._prev_loop_hook: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Subscribe to the enabled fault channels.

        The asyncio channel needs a loop: the given one, else the running one.
        Without either it is skipped.
        """
        if self.catch_errors and self._prev_sys_hook is None:
            self._prev_sys_hook = sys.excepthook
            sys.excepthook = self._sys_hook
            self._prev_thread_hook = threading.excepthook
            threading.excepthook = self._thread_hook

        if self.catch_uncaught_rejections and self._loop is None:
            if loop is None:
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    loop = None
            if loop is not None:
                self._loop = loop
                self._prev_loop_hook = loop.get_exception_handler()
                loop.set_exception_handler(self._loop_hook)

    def uninstall(self) -> None:
        """Restore every hook replaced by `install`."""
        if self._prev_sys_hook is not None:
            if sys.excepthook is self._sys_hook:
                sys.excepthook = self._prev_sys_hook
            if threading.excepthook is self._thread_hook:
                threading.excepthook = self._prev_thread_hook
            self._prev_sys_hook = None
            self._prev_thread_hook = None

        if self._loop is not None:
            if self._loop.get_exception_handler() is self._loop_hook:
                self._loop.set_exception_handler(self._prev_loop_hook)
            self._loop = None
            self._prev_loop_hook = None

    def capture(self, *args: Any, title: str = GLOBAL_ERROR_TITLE) -> None:
        """Normalize a fault notification and hand it to the handler. Never raises."""
        try:
            normalized = normalize_fault(classify_fault(*args), title=title)
        except Exception:  # noqa: BLE001 - degrade to a minimal event
            logger.exception("Fault normalization failed")
            normalized = NormalizedErrorEvent(title=CAPTURE_FAILED_TITLE, message=title)

        try:
            self._handler.handle(normalized.to_event())
        except Exception:  # noqa: BLE001 - fault handler must not raise
            logger.exception("Fault capture failed")

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: TracebackType | None,
    ) -> None:
        self.capture(exc_type, exc_value, exc_traceback, title=GLOBAL_ERROR_TITLE)
        if self._prev_sys_hook is not None:
            self._prev_sys_hook(exc_type, exc_value, exc_traceback)

    def _threading_excepthook(self, args: Any) -> None:
        self.capture(args, title=GLOBAL_ERROR_TITLE)
        if self._prev_thread_hook is not None:
            self._prev_thread_hook(args)

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        self.capture(context, title=UNHANDLED_REJECTION_TITLE)
        if self._prev_loop_hook is not None:
            self._prev_loop_hook(loop, context)
        else:
            loop.default_exception_handler(context)
