"""Delivery transports for captured telemetry."""

from .base import DELIVERED, DeliveryResult, Transport
from .client import DeliveryError, HttpTransport

__all__ = [
    "DELIVERED",
    "DeliveryError",
    "DeliveryResult",
    "HttpTransport",
    "Transport",
]
