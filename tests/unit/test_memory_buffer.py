from __future__ import annotations

import pytest

from telemetry.buffer import MemoryBuffer
from telemetry.models import Event


def _event(text: str) -> Event:
    return Event(kind="info", payload=(text,))


def test_capacity_two_keeps_first_two_and_drops_new() -> None:
    buffer = MemoryBuffer(2)
    a, b, c = _event("A"), _event("B"), _event("C")

    assert buffer.append(a) is True
    assert buffer.append(b) is True
    assert buffer.append(c) is False

    assert buffer.all() == (a, b)
    assert len(buffer) == 2


def test_all_is_a_snapshot() -> None:
    buffer = MemoryBuffer(5)
    buffer.append(_event("A"))
    snapshot = buffer.all()
    buffer.append(_event("B"))

    assert len(snapshot) == 1
    assert len(buffer.all()) == 2


def test_zero_capacity_buffers_nothing() -> None:
    buffer = MemoryBuffer(0)
    assert buffer.append(_event("A")) is False
    assert buffer.all() == ()


def test_negative_capacity_rejected() -> None:
    with pytest.raises(ValueError):
        MemoryBuffer(-1)
