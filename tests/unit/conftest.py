from __future__ import annotations

import logging
import sys
import threading

import pytest

from transport.base import DeliveryResult

_LOGGING_NAMES = ("debug", "info", "warning", "warn", "error", "exception", "critical", "log")


class FakeTransport:
    """Records deliveries; succeeds or fails according to `ok`."""

    def __init__(self, *, ok: bool = True) -> None:
        self.ok = ok
        self.calls: list[tuple[str, str]] = []

    def deliver(self, destination: str, payload: str) -> DeliveryResult:
        self.calls.append((destination, payload))
        if self.ok:
            return DeliveryResult(ok=True, status_code=200)
        return DeliveryResult(ok=False, error="collector unreachable")

    @property
    def payloads(self) -> list[str]:
        return [payload for _, payload in self.calls]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def failing_transport() -> FakeTransport:
    return FakeTransport(ok=False)


@pytest.fixture(autouse=True)
def _restore_process_hooks():
    """Undo any process-wide patching a test leaves behind.

    Agents replace `logging` module functions and exception hooks; a failing
    test must not leak those into the rest of the session.
    """
    saved_logging = {name: getattr(logging, name) for name in _LOGGING_NAMES if hasattr(logging, name)}
    saved_sys_hook = sys.excepthook
    saved_thread_hook = threading.excepthook
    yield
    for name, func in saved_logging.items():
        setattr(logging, name, func)
    sys.excepthook = saved_sys_hook
    threading.excepthook = saved_thread_hook
