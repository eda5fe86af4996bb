"""HTTP transport posting serialized payloads to a collector.

Any 2xx response counts as delivered. Non-2xx responses and network/transport
errors are classified here and reported as a failed `DeliveryResult`; they are
never raised to the caller, which recovers by queueing the payload.
"""

from __future__ import annotations

import logging
from typing import Final

import requests

from .base import DELIVERED, DeliveryResult

logger = logging.getLogger(__name__)

_HEADERS: Final[dict[str, str]] = {"Content-Type": "text/plain; charset=utf-8"}


class DeliveryError(RuntimeError):
    """Non-2xx response returned by the collector."""

    def __init__(self, *, status_code: int, body: str | None):
        """Create an error capturing HTTP status code and response body (if any)."""
        self.status_code = status_code
        self.body = body
        super().__init__(f"Collector HTTP {status_code}: {body}")


class HttpTransport:
    """Synchronous `requests`-based transport (one POST per payload)."""

    def __init__(self, *, timeout_s: float = 5.0, session: requests.Session | None = None) -> None:
        """Create a transport.

        Args:
            timeout_s: Per-request timeout.
            session: Optional session for connection reuse; module-level
                `requests.request` is used when omitted.
        """
        if timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0. Got: {timeout_s}")
        self.timeout_s = timeout_s
        self._session = session

    def _post(self, destination: str, payload: str) -> None:
        """POST the payload, raising on any non-2xx response.

        Raises:
        - `DeliveryError` for non-2xx responses
        - `requests.RequestException` for transport errors
        """
        request = self._session.request if self._session is not None else requests.request
        resp = request(
            "POST",
            destination,
            data=payload.encode("utf-8"),
            headers=_HEADERS,
            timeout=self.timeout_s,
        )
        if 200 <= resp.status_code < 300:
            return

        body: str | None
        try:
            body = resp.text
        except Exception:  # noqa: BLE001 - best-effort decoding
            body = None
        raise DeliveryError(status_code=resp.status_code, body=body)

    def deliver(self, destination: str, payload: str) -> DeliveryResult:
        """Deliver a payload, converting every failure into a failed result."""
        try:
            self._post(destination, payload)
        except DeliveryError as exc:
            logger.debug("Delivery rejected by %s: HTTP %d", destination, exc.status_code)
            return DeliveryResult(ok=False, status_code=exc.status_code, error=str(exc))
        except requests.RequestException as exc:
            logger.debug("Delivery to %s failed: %s", destination, exc)
            return DeliveryResult(ok=False, error=f"{type(exc).__name__}: {exc}")
        return DELIVERED
