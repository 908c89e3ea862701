from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from discord_mcp.permissions.gate import AuthorizationRequest
from discord_mcp.permissions.scope import Scope
from discord_mcp.protocol.envelope import ToolResult
from discord_mcp.registry import ToolDefinition
from discord_mcp.remote.client import EntityKind
from discord_mcp.tools.base import ToolContext, success
from discord_mcp.tools.schemas import object_schema, snowflake

__all__ = ["GUILD_TOOLS"]

GET_GUILD_INFO_SCHEMA = object_schema(
    {
        "guild_id": snowflake("Guild (server) ID"),
        "include_counts": {
            "type": "boolean",
            "default": True,
            "description": "Include member and channel counts",
        },
    },
    ["guild_id"],
)

LIST_GUILD_MEMBERS_SCHEMA = object_schema(
    {"guild_id": snowflake("Guild (server) ID")},
    ["guild_id"],
)


def _guild_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    return [AuthorizationRequest("view_guild", Scope.guild(arguments["guild_id"]))]


def get_guild_info(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    guild_id = arguments["guild_id"]
    guild = ctx.client.fetch_entity(EntityKind.GUILD, guild_id)
    data: dict[str, Any] = {
        "id": guild["id"],
        "name": guild.get("name", ""),
        "description": guild.get("description", ""),
        "icon": guild.get("icon"),
        "owner_id": guild.get("owner_id"),
    }
    if arguments.get("include_counts", True):
        data["member_count"] = len(ctx.client.list_entities(EntityKind.MEMBER, guild_id))
        data["channel_count"] = len(ctx.client.list_entities(EntityKind.CHANNEL, guild_id))
        data["role_count"] = len(ctx.client.list_entities(EntityKind.ROLE, guild_id))
    return success(f"Guild: {data['name']}", data)


def _format_member(member: Mapping[str, Any]) -> dict[str, Any]:
    user = member.get("user", {})
    return {
        "id": user.get("id"),
        "username": user.get("username"),
        "bot": bool(user.get("bot", False)),
        "nick": member.get("nick"),
        "roles": list(member.get("roles", ())),
        "joined_at": member.get("joined_at"),
        "deaf": bool(member.get("deaf", False)),
        "mute": bool(member.get("mute", False)),
    }


def list_guild_members(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    guild_id = arguments["guild_id"]
    members = [_format_member(member) for member in ctx.client.list_entities(EntityKind.MEMBER, guild_id)]
    return success(
        f"Found {len(members)} members in guild {guild_id}",
        {"guild_id": guild_id, "member_count": len(members), "members": members},
    )


GUILD_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        "get_guild_info",
        "Get information about a Discord server (guild)",
        GET_GUILD_INFO_SCHEMA,
        get_guild_info,
        _guild_auth,
    ),
    ToolDefinition(
        "list_guild_members",
        "List members of a Discord server (guild)",
        LIST_GUILD_MEMBERS_SCHEMA,
        list_guild_members,
        _guild_auth,
    ),
)
