"""Plain-text side channel for rendered events.

Useful where developer tooling is not available (e.g. a remote box where only
a log file or a terminal pane can be watched).
"""

from __future__ import annotations

import threading
from typing import TextIO


class DisplaySink:
    """Writes one line per rendered event, up to `max_lines` lines."""

    def __init__(self, stream: TextIO, *, max_lines: int) -> None:
        self._stream = stream
        self.max_lines = max_lines
        self._written = 0
        self._lock = threading.Lock()

    @property
    def lines_written(self) -> int:
        return self._written

    def write(self, text: str) -> bool:
        """Write `text` as one line; returns False once the cap is reached."""
        with self._lock:
            if self._written >= self.max_lines:
                return False
            self._stream.write(text + "\n")
            self._stream.flush()
            self._written += 1
            return True
