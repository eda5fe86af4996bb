"""Pytest configuration.

Puts `src/` on `sys.path` so tests import `agent`, `config`, `capture`,
`telemetry` and `transport` the same way whether or not the project is
installed, and registers the `integration` marker (tests that open local
sockets).
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest before collecting/running tests."""
    config.addinivalue_line("markers", "integration: talks to a local HTTP collector")

    src_dir = str(Path(__file__).resolve().parents[1] / "src")
    if src_dir not in sys.path:
        sys.path.insert(0, src_dir)
