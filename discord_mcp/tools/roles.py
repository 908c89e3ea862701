from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from discord_mcp.permissions.bits import permission_names
from discord_mcp.permissions.gate import AuthorizationRequest
from discord_mcp.permissions.scope import Scope
from discord_mcp.protocol.envelope import ToolResult
from discord_mcp.registry import ToolDefinition
from discord_mcp.remote.client import EntityKind, RemoteNotFound
from discord_mcp.tools.base import ToolContext, success
from discord_mcp.tools.schemas import object_schema, snowflake

__all__ = ["ROLE_TOOLS"]

LIST_ROLES_SCHEMA = object_schema({"guild_id": snowflake("Guild (server) ID")}, ["guild_id"])

GET_ROLE_INFO_SCHEMA = object_schema(
    {"guild_id": snowflake("Guild (server) ID"), "role_id": snowflake("Role ID")},
    ["guild_id", "role_id"],
)

CREATE_ROLE_SCHEMA = object_schema(
    {
        "guild_id": snowflake("Guild (server) ID"),
        "name": {"type": "string", "minLength": 1, "maxLength": 100, "description": "Name of the new role"},
    },
    ["guild_id", "name"],
)

DELETE_ROLE_SCHEMA = object_schema(
    {"guild_id": snowflake("Guild (server) ID"), "role_id": snowflake("Role ID to delete")},
    ["guild_id", "role_id"],
)

ASSIGN_ROLE_SCHEMA = object_schema(
    {
        "guild_id": snowflake("Guild (server) ID"),
        "role_id": snowflake("Role ID to assign"),
        "user_id": snowflake("User ID to assign the role to"),
    },
    ["guild_id", "role_id", "user_id"],
)

UNASSIGN_ROLE_SCHEMA = object_schema(
    {
        "guild_id": snowflake("Guild (server) ID"),
        "role_id": snowflake("Role ID to unassign"),
        "user_id": snowflake("User ID to unassign the role from"),
    },
    ["guild_id", "role_id", "user_id"],
)


def _manage_roles_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    return [AuthorizationRequest("manage_roles", Scope.guild(arguments["guild_id"]))]


def _format_role(role: Mapping[str, Any]) -> dict[str, Any]:
    permissions = int(role.get("permissions", 0))
    return {
        "id": role["id"],
        "name": role.get("name", ""),
        "color": role.get("color", 0),
        "hoist": bool(role.get("hoist", False)),
        "position": role.get("position", 0),
        "permissions": permissions,
        "permission_names": permission_names(permissions),
        "managed": bool(role.get("managed", False)),
        "mentionable": bool(role.get("mentionable", False)),
    }


def _role_in_guild(ctx: ToolContext, guild_id: str, role_id: str) -> dict[str, Any]:
    role = ctx.client.fetch_entity(EntityKind.ROLE, role_id)
    if role.get("guild_id") != guild_id:
        raise RemoteNotFound(f"role {role_id} not found in guild {guild_id}")
    return role


def list_roles(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    guild_id = arguments["guild_id"]
    roles = [_format_role(role) for role in ctx.client.list_entities(EntityKind.ROLE, guild_id)]
    return success(
        f"Found {len(roles)} roles in guild {guild_id}",
        {"guild_id": guild_id, "role_count": len(roles), "roles": roles},
    )


def get_role_info(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    role = _role_in_guild(ctx, arguments["guild_id"], arguments["role_id"])
    return success(f"Role: {role.get('name', '')}", _format_role(role))


def create_role(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    guild_id = arguments["guild_id"]
    role = ctx.client.mutate_entity(EntityKind.GUILD, guild_id, "create_role", {"name": arguments["name"]})
    return success(f"Created role: {role.get('name', '')}", _format_role(role))


def delete_role(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    guild_id = arguments["guild_id"]
    role_id = arguments["role_id"]
    _role_in_guild(ctx, guild_id, role_id)
    role = ctx.client.mutate_entity(EntityKind.ROLE, role_id, "delete", {})
    return success(
        f"Deleted role: {role.get('name', '')}",
        {"guild_id": guild_id, "deleted_role_id": role_id, "name": role.get("name", "")},
    )


def _change_membership(ctx: ToolContext, arguments: Mapping[str, Any], operation: str) -> dict[str, Any]:
    guild_id = arguments["guild_id"]
    role_id = arguments["role_id"]
    _role_in_guild(ctx, guild_id, role_id)
    return ctx.client.mutate_entity(
        EntityKind.MEMBER,
        f"{guild_id}/{arguments['user_id']}",
        operation,
        {"role_id": role_id},
    )


def assign_role(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    member = _change_membership(ctx, arguments, "add_role")
    return success(
        f"Assigned role {arguments['role_id']} to user {arguments['user_id']}",
        {
            "guild_id": arguments["guild_id"],
            "role_id": arguments["role_id"],
            "user_id": arguments["user_id"],
            "roles": list(member.get("roles", ())),
        },
    )


def unassign_role(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    member = _change_membership(ctx, arguments, "remove_role")
    return success(
        f"Unassigned role {arguments['role_id']} from user {arguments['user_id']}",
        {
            "guild_id": arguments["guild_id"],
            "role_id": arguments["role_id"],
            "user_id": arguments["user_id"],
            "roles": list(member.get("roles", ())),
        },
    )


ROLE_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition("list_roles", "List roles in a Discord server (guild)", LIST_ROLES_SCHEMA, list_roles, _manage_roles_auth),
    ToolDefinition("get_role_info", "Get information about a role", GET_ROLE_INFO_SCHEMA, get_role_info, _manage_roles_auth),
    ToolDefinition("create_role", "Create a new role in a guild", CREATE_ROLE_SCHEMA, create_role, _manage_roles_auth),
    ToolDefinition("delete_role", "Delete a role from a guild", DELETE_ROLE_SCHEMA, delete_role, _manage_roles_auth),
    ToolDefinition("assign_role", "Assign a role to a guild member", ASSIGN_ROLE_SCHEMA, assign_role, _manage_roles_auth),
    ToolDefinition(
        "unassign_role",
        "Remove a role from a guild member",
        UNASSIGN_ROLE_SCHEMA,
        unassign_role,
        _manage_roles_auth,
    ),
)
