"""Interception of diagnostic output entry points.

`EventInterceptor` swaps named callables on a target namespace (the stdlib
`logging` module by default, `builtins` for `print`, or any object) for
wrappers that hand each call to the dispatcher and then, optionally, to the
original callable.

This is a deliberate process-wide mutation. The original callable per name is
captured exactly once, before wrapping, so `uninstall()` restores it exactly
and repeated `install()` calls never wrap a wrapper of our own.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any, Protocol

from telemetry.models import Event

logger = logging.getLogger(__name__)


class EventHandler(Protocol):
    def handle(self, event: Event) -> None:
        """Process one captured event."""


class EventInterceptor:
    """Wraps diagnostic entry points so every call is captured."""

    def __init__(self, handler: EventHandler, *, target: Any = logging, output: bool = True) -> None:
        """Create an interceptor (nothing is wrapped until `install`).

        Args:
            handler: Receives every captured event (normally the dispatcher).
            target: Namespace whose callables are replaced.
            output: Also invoke the original callable after capture.
        """
        self._handler = handler
        self.target = target
        self.output = output
        self._originals: dict[str, Callable[..., Any]] = {}
        self._wrappers: dict[str, Callable[..., Any]] = {}
        self._local = threading.local()

    @property
    def originals(self) -> Mapping[str, Callable[..., Any]]:
        """Read-only view of the captured original callables, by name."""
        return MappingProxyType(self._originals)

    @property
    def installed(self) -> frozenset[str]:
        return frozenset(self._wrappers)

    def install(self, names: Iterable[str]) -> frozenset[str]:
        """Wrap each named callable on the target.

        Names that are missing (or not callable) are skipped. Returns the set of
        names that are wrapped after the call.
        """
        for name in sorted(set(names)):
            if name in self._wrappers:
                continue
            original = getattr(self.target, name, None)
            if not callable(original):
                logger.debug("Skipping %r: not a callable on %r", name, self.target)
                continue
            self._originals[name] = original
            wrapper = self._make_wrapper(name, original)
            self._wrappers[name] = wrapper
            setattr(self.target, name, wrapper)
        return self.installed

    def uninstall(self) -> None:
        """Restore every original callable replaced by `install`."""
        for name, wrapper in list(self._wrappers.items()):
            if getattr(self.target, name, None) is wrapper:
                setattr(self.target, name, self._originals[name])
            else:
                # Someone wrapped on top of us; restoring would drop their wrapper.
                logger.warning("Not restoring %r: replaced after install", name)
            del self._wrappers[name]
        self._originals.clear()

    def _make_wrapper(self, name: str, original: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(original)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if getattr(self._local, "active", False):
                # Re-entrant call from inside dispatch: native behavior only.
                return original(*args, **kwargs)

            # The guard stays set while the original runs: some originals call
            # other intercepted names (logging.exception calls logging.error).
            self._local.active = True
            try:
                try:
                    self._handler.handle(Event.from_call(name, args))
                except Exception:  # noqa: BLE001 - capture must not break the caller
                    logger.exception("Capture of %r call failed", name)

                if self.output:
                    return original(*args, **kwargs)
                return None
            finally:
                self._local.active = False

        return wrapper
