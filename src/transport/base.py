"""Transport interface.

The dispatcher and retry scheduler depend on this small interface so the
delivery mechanism can be swapped (or faked in tests) without touching them.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict


class DeliveryResult(BaseModel):
    """Outcome of a single delivery attempt."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    ok: bool
    status_code: int | None = None
    error: str | None = None


DELIVERED = DeliveryResult(ok=True)


class Transport(Protocol):
    def deliver(self, destination: str, payload: str) -> DeliveryResult:
        """Send `payload` to `destination`; never raises."""
