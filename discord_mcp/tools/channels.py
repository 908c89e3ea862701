from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from discord_mcp.permissions.gate import AuthorizationRequest, PermissionDenied
from discord_mcp.permissions.scope import Scope
from discord_mcp.protocol.envelope import ToolResult
from discord_mcp.registry import ToolDefinition
from discord_mcp.remote.client import EntityKind, RemoteError
from discord_mcp.remote.state import CHANNEL_TYPES
from discord_mcp.tools.base import ToolContext, success
from discord_mcp.tools.schemas import object_schema, snowflake

__all__ = ["CHANNEL_TOOLS"]

LIST_CHANNELS_SCHEMA = object_schema(
    {
        "guild_id": snowflake("Guild (server) ID to list channels from"),
        "type_filter": {
            "type": "array",
            "description": "Filter channels by type",
            "items": {"type": "string", "enum": list(CHANNEL_TYPES)},
            "uniqueItems": True,
        },
        "include_permissions": {
            "type": "boolean",
            "default": False,
            "description": "Include bot permissions for each channel",
        },
    },
    ["guild_id"],
)

GET_CHANNEL_INFO_SCHEMA = object_schema(
    {
        "channel_id": snowflake("Discord channel ID (snowflake)"),
        "include_permissions": {
            "type": "boolean",
            "default": True,
            "description": "Include bot permissions for this channel",
        },
    },
    ["channel_id"],
)


def _format_channel(ctx: ToolContext, channel: Mapping[str, Any], include_permissions: bool) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": channel["id"],
        "name": channel.get("name", ""),
        "type": channel.get("type", "text"),
        "position": channel.get("position", 0),
        "nsfw": bool(channel.get("nsfw", False)),
        "parent_id": channel.get("parent_id"),
        "guild_id": channel.get("guild_id"),
        "topic": channel.get("topic", ""),
    }
    if include_permissions:
        try:
            data["permissions"] = ctx.gate.capability_summary(ctx.actor_id, Scope.channel(channel["id"]))
        except (PermissionDenied, RemoteError) as exc:
            ctx.logger.warning("Could not get permissions for channel %s: %s", channel["id"], exc)
            data["permissions"] = "error"
    return data


def _guild_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    return [AuthorizationRequest("view_guild", Scope.guild(arguments["guild_id"]))]


def list_channels(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    guild_id = arguments["guild_id"]
    type_filter = set(arguments.get("type_filter", ()))
    include_permissions = bool(arguments.get("include_permissions", False))
    channels = ctx.client.list_entities(EntityKind.CHANNEL, guild_id)
    if type_filter:
        channels = [channel for channel in channels if channel.get("type") in type_filter]
    formatted = [_format_channel(ctx, channel, include_permissions) for channel in channels]
    return success(
        f"Found {len(formatted)} channels in guild {guild_id}",
        {"guild_id": guild_id, "channel_count": len(formatted), "channels": formatted},
    )


def _channel_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    return [AuthorizationRequest("view_channel", Scope.channel(arguments["channel_id"]))]


def get_channel_info(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    channel = ctx.client.fetch_entity(EntityKind.CHANNEL, arguments["channel_id"])
    include_permissions = bool(arguments.get("include_permissions", True))
    return success(f"Channel: {channel.get('name', '')}", _format_channel(ctx, channel, include_permissions))


CHANNEL_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        "list_channels",
        "List channels in a Discord server (guild)",
        LIST_CHANNELS_SCHEMA,
        list_channels,
        _guild_auth,
    ),
    ToolDefinition(
        "get_channel_info",
        "Get information about a specific Discord channel",
        GET_CHANNEL_INFO_SCHEMA,
        get_channel_info,
        _channel_auth,
    ),
)
