"""One structured log line per JSON-RPC request handled by the session."""

from __future__ import annotations

import json
import logging
from typing import Any

LOGGER_NAME = "discord_mcp.requests"

logger = logging.getLogger(LOGGER_NAME)


def log_event(
    *,
    trace_id: str,
    transport: str,
    method: str,
    request_id: str | int | None,
    duration_ms: float,
    error_code: int | None = None,
    tool: str | None = None,
) -> None:
    """Log ``method`` as ``ok`` or ``error`` (when ``error_code`` is set).

    ``tool`` names the invoked tool for ``tools/call``.
    """

    record: dict[str, Any] = {
        "trace_id": trace_id,
        "transport": transport,
        "method": method,
        "request_id": request_id,
        "status": "ok" if error_code is None else "error",
        "duration_ms": duration_ms,
    }
    if error_code is not None:
        record["error_code"] = error_code
    if tool is not None:
        record["tool"] = tool
    logger.info(json.dumps(record, sort_keys=True, default=str))
