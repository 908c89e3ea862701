from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from discord_mcp.protocol.envelope import ToolResult
from discord_mcp.registry import ToolDefinition
from discord_mcp.remote.client import EntityKind
from discord_mcp.tools.base import ToolContext, success

__all__ = ["PING_TOOL"]

PING_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}, "required": []}


def ping(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    started = time.perf_counter()
    bot = ctx.client.fetch_entity(EntityKind.USER, ctx.actor_id)
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    now = datetime.now(UTC)
    text = (
        "Discord MCP Server is healthy!\n\n"
        f"Bot: {bot.get('username', '')} (ID: {bot['id']})\n"
        "Connected: true\n"
        f"Response time: {elapsed_ms:.2f}ms\n"
        f"Timestamp: {now.strftime('%Y-%m-%d %H:%M:%S')} UTC"
    )
    return success(
        text,
        {
            "bot": {"id": bot["id"], "username": bot.get("username")},
            "connected": True,
            "response_time_ms": round(elapsed_ms, 3),
        },
    )


PING_TOOL = ToolDefinition(
    "ping",
    "Ping the Discord connection to verify server health and bot status",
    PING_SCHEMA,
    ping,
)
