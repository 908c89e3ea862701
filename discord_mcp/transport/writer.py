from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from typing import Any, TextIO

__all__ = ["LineWriter"]

LOGGER = logging.getLogger(__name__)


class LineWriter:
    """Write JSON envelopes to a text stream, one line per envelope.

    Serialising, writing and flushing happen under one lock so responses from
    the dispatch loop and notifications from event callbacks never interleave.
    Write failures mark the writer closed and propagate as :class:`OSError`.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._lock = threading.Lock()
        self._closed = False
        self._lines_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def lines_written(self) -> int:
        return self._lines_written

    def write(self, envelope: Mapping[str, Any]) -> int:
        """Serialise ``envelope`` as one line and return the number of characters written."""

        with self._lock:
            if self._closed:
                raise BrokenPipeError("output stream is closed")
            line = json.dumps(envelope, ensure_ascii=False, separators=(",", ":")) + "\n"
            try:
                self._stream.write(line)
                self._stream.flush()
            except (OSError, ValueError) as exc:
                self._closed = True
                LOGGER.error("Output stream write failed: %s", exc)
                if isinstance(exc, OSError):
                    raise
                raise BrokenPipeError(str(exc)) from exc
            self._lines_written += 1
            return len(line)

    def close(self) -> None:
        with self._lock:
            self._closed = True
