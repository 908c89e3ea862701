"""Tool definitions exposed through ``tools/list`` and ``tools/call``."""

from __future__ import annotations

from collections.abc import Iterable

from discord_mcp.registry import ToolDefinition, ToolRegistry
from discord_mcp.tools.base import ContentTooLongError, ToolContext
from discord_mcp.tools.channels import CHANNEL_TOOLS
from discord_mcp.tools.guilds import GUILD_TOOLS
from discord_mcp.tools.messages import MESSAGE_TOOLS
from discord_mcp.tools.ping import PING_TOOL
from discord_mcp.tools.roles import ROLE_TOOLS

__all__ = ["ALL_TOOLS", "ContentTooLongError", "ToolContext", "build_registry"]

ALL_TOOLS: tuple[ToolDefinition, ...] = (
    PING_TOOL,
    *MESSAGE_TOOLS,
    *CHANNEL_TOOLS,
    *GUILD_TOOLS,
    *ROLE_TOOLS,
)


def build_registry(definitions: Iterable[ToolDefinition] = ALL_TOOLS) -> ToolRegistry:
    """Register ``definitions`` and return the frozen registry."""

    registry = ToolRegistry()
    for definition in definitions:
        registry.register(definition)
    return registry.freeze()
