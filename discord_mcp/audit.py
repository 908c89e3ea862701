"""Append-only JSONL audit trail of tool invocations."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO
from uuid import uuid4

__all__ = ["JsonLogWriter", "ToolCallLogEvent"]

LOGGER = logging.getLogger(__name__)


@dataclass
class ToolCallLogEvent:
    """One completed ``tools/call`` as recorded in the audit trail."""

    ts: datetime
    trace_id: str
    request_id: str | int | None
    tool: str
    status: str
    duration_ms: float
    input_bytes: int
    output_bytes: int
    metadata: Mapping[str, Any] = field(default_factory=dict)
    error: Mapping[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        ts = self.ts
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        else:
            ts = ts.astimezone(UTC)
        return {
            "ts": ts.isoformat().replace("+00:00", "Z"),
            "trace_id": str(self.trace_id),
            "request_id": self.request_id,
            "tool": self.tool,
            "status": self.status,
            "duration_ms": float(self.duration_ms),
            "input_bytes": int(self.input_bytes),
            "output_bytes": int(self.output_bytes),
            "metadata": dict(self.metadata or {}),
            "error": dict(self.error) if self.error is not None else None,
        }


class JsonLogWriter:
    """JSONL sink for :class:`ToolCallLogEvent` records.

    The log file is opened on construction, so an unwritable location fails
    server start-up instead of every later tool call.  Each record is tagged
    with the writer's ``run_id`` and a monotonically increasing ``sequence``.
    Older ``*.jsonl`` files beside the log are pruned down to ``retention``.
    """

    def __init__(self, path: str | Path, *, retention: int = 5) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle: TextIO | None = self.path.open("a", encoding="utf-8")
        self._lock = threading.Lock()
        self._run_id = uuid4().hex
        self._sequence = 0
        self.dropped = 0
        _prune_logs(self.path, keep=max(retention, 1))

    @classmethod
    def in_directory(cls, directory: str | Path, *, retention: int = 5) -> JsonLogWriter:
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        return cls(Path(directory) / f"discord-mcp-{stamp}-{uuid4().hex[:8]}.jsonl", retention=retention)

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def closed(self) -> bool:
        return self._handle is None

    def write(self, event: ToolCallLogEvent) -> None:
        """Append ``event``; a record that cannot be written is counted and dropped."""

        with self._lock:
            record = event.to_payload()
            record["run_id"] = self._run_id
            record["sequence"] = self._sequence
            self._sequence += 1
            if self._handle is None:
                self._drop(record, "audit log is closed")
                return
            line = json.dumps(record, sort_keys=True, ensure_ascii=False, default=str)
            try:
                self._handle.write(line + "\n")
                self._handle.flush()
            except OSError as exc:
                self._drop(record, str(exc))

    def close(self) -> None:
        with self._lock:
            if self._handle is None:
                return
            handle, self._handle = self._handle, None
            handle.close()

    def __enter__(self) -> JsonLogWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _drop(self, record: Mapping[str, Any], reason: str) -> None:
        self.dropped += 1
        LOGGER.warning(
            "Dropping audit record %s for tool %s: %s",
            record["sequence"],
            record["tool"],
            reason,
        )


def _prune_logs(current: Path, *, keep: int) -> None:
    try:
        older = [entry for entry in current.parent.glob("*.jsonl") if entry.is_file() and entry != current]
        older.sort(key=lambda entry: entry.stat().st_mtime, reverse=True)
    except OSError as exc:
        LOGGER.warning("Could not list audit logs in %s: %s", current.parent, exc)
        return
    for stale in older[keep - 1 :]:
        try:
            stale.unlink()
        except OSError as exc:
            LOGGER.warning("Could not remove old audit log %s: %s", stale, exc)
