"""Demo entrypoint wiring a telemetry agent into a small script.

This module intentionally contains a small, end-to-end "smoke test" that:

- Loads configuration from environment (`TELEMETRY_*`, `.env` supported).
- Installs the agent over the stdlib `logging` module functions.
- Emits a few log lines, a failing asyncio task and an uncaught thread error.
- Flushes whatever could not be delivered and prints a short summary.

It is **not** intended to be production wiring; it is a convenient manual
harness (point `TELEMETRY_SERVER_URL` at a collector, or leave it unset to only
buffer in memory).
"""

from __future__ import annotations

import asyncio
import gc
import logging
import sys
import threading

from agent import TelemetryAgent
from config import load_config


def _on_queue_full(payload: str) -> None:
    print(f"[telemetry] queue full, dropped: {payload}", file=sys.stderr)


async def _failing_task() -> None:
    raise RuntimeError("demo task failure")


async def run_demo() -> None:
    """Capture a handful of events and faults, then report what happened."""
    cfg = load_config()
    agent = TelemetryAgent(cfg, display_stream=sys.stdout, on_queue_full=_on_queue_full)
    agent.install(asyncio.get_running_loop())
    try:
        logging.info("demo started")
        logging.warning("disk usage at %d%%", 91)
        logging.error("could not reach %s", cfg.server.url or "<no collector configured>")

        # A task whose exception is never retrieved reports through the loop handler
        # once it is garbage collected.
        task = asyncio.create_task(_failing_task())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        del task
        gc.collect()

        worker = threading.Thread(target=lambda: 1 / 0, name="demo-worker")
        worker.start()
        worker.join()

        delivered = agent.flush()
        print(
            f"[telemetry] captured={len(agent.events)} delivered_from_queue={delivered} "
            f"still_queued={len(agent.queue)}",
            file=sys.stderr,
        )
    finally:
        agent.close()


def main() -> None:
    """CLI entrypoint for running the demo with `python src/main.py`."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_demo())


if __name__ == "__main__":
    main()
