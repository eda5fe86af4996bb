from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace

import pytest

from agent import TelemetryAgent
from config import AgentConfig
from transport.client import HttpTransport

pytestmark = pytest.mark.integration


class _Collector:
    """Accepts POSTs and appends their bodies, unless told to be unavailable."""

    def __init__(self) -> None:
        self.bodies: list[str] = []
        self.available = True
        self._lock = threading.Lock()

        collector = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self) -> None:  # noqa: N802 - stdlib naming
                length = int(self.headers.get("Content-Length", "0"))
                body = self.rfile.read(length).decode("utf-8")
                if not collector.available:
                    self.send_response(503)
                    self.end_headers()
                    return
                with collector._lock:
                    collector.bodies.append(body)
                self.send_response(204)
                self.end_headers()

            def log_message(self, format: str, *args) -> None:  # noqa: A002 - stdlib signature
                return

        self.server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.url = f"http://127.0.0.1:{self.server.server_address[1]}/ingest"
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def collector() -> Iterator[_Collector]:
    server = _Collector()
    server.start()
    try:
        yield server
    finally:
        server.stop()


def _wait_for(predicate, timeout_s: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_http_transport_delivers_to_collector(collector: _Collector) -> None:
    transport = HttpTransport(timeout_s=2.0)

    assert transport.deliver(collector.url, '["a", 1]').ok is True
    collector.available = False
    result = transport.deliver(collector.url, '"b"')

    assert result.ok is False
    assert result.status_code == 503
    assert collector.bodies == ['["a", 1]']


def test_unreachable_collector_is_a_failed_delivery() -> None:
    result = HttpTransport(timeout_s=0.5).deliver("http://127.0.0.1:9/ingest", "payload")
    assert result.ok is False
    assert result.error


def test_agent_retries_until_collector_recovers(collector: _Collector) -> None:
    console = SimpleNamespace(error=lambda *args: None)
    config = AgentConfig(
        console={"handle_names": ["error"], "output": False},
        error={"catch_errors": False, "catch_uncaught_rejections": False},
        server={"url": collector.url, "retry_rate": 50, "timeout_s": 2.0},
    )
    collector.available = False

    with TelemetryAgent(config, target=console) as agent:
        for i in range(3):
            console.error("outage", i)

        assert len(agent.queue) == 3
        assert agent.scheduler.armed is True

        collector.available = True
        assert _wait_for(lambda: not agent.scheduler.armed)

        assert len(agent.queue) == 0
        assert collector.bodies == [json.dumps(["outage", i]) for i in range(3)]
