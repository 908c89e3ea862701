from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from discord_mcp.permissions.gate import AuthorizationContext, AuthorizationRequest
from discord_mcp.permissions.scope import Scope
from discord_mcp.protocol.envelope import ToolResult
from discord_mcp.registry import ToolDefinition
from discord_mcp.remote.client import EntityKind, RemoteNotFound
from discord_mcp.tools.base import ToolContext, channel_url, ensure_content_length, success
from discord_mcp.tools.schemas import EMBED_SCHEMA, object_schema, snowflake
from discord_mcp.validation.validator import FailureKind, ParameterValidationError, ValidationFailure

__all__ = ["MESSAGE_TOOLS", "parse_emoji"]

_CUSTOM_EMOJI = re.compile(r"^<(?P<animated>a?):(?P<name>[A-Za-z0-9_~]{2,32}):(?P<id>[0-9]+)>$")

SEND_MESSAGE_SCHEMA = object_schema(
    {
        "channel_id": {**snowflake("Discord channel ID (snowflake)"), "minLength": 1},
        "content": {
            "type": "string",
            "minLength": 1,
            "maxLength": 2000,
            "description": "Message content (Discord markdown supported)",
        },
        "tts": {"type": "boolean", "default": False, "description": "Whether message should be read aloud using TTS"},
        "reply_to": snowflake("Message ID to reply to"),
        "embeds": {"type": "array", "maxItems": 10, "description": "Array of embed objects", "items": EMBED_SCHEMA},
    },
    ["channel_id", "content"],
)

GET_CHANNEL_MESSAGES_SCHEMA = object_schema(
    {
        "channel_id": snowflake("Discord channel ID (snowflake)"),
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": 100,
            "default": 50,
            "description": "Number of messages to retrieve (1-100)",
        },
        "before": snowflake("Get messages before this message ID"),
        "after": snowflake("Get messages after this message ID"),
        "around": snowflake("Get messages around this message ID"),
    },
    ["channel_id"],
    **{
        "not": {
            "anyOf": [
                {"allOf": [{"required": ["before"]}, {"required": ["after"]}]},
                {"allOf": [{"required": ["before"]}, {"required": ["around"]}]},
                {"allOf": [{"required": ["after"]}, {"required": ["around"]}]},
            ]
        }
    },
)

EDIT_MESSAGE_SCHEMA = object_schema(
    {
        "channel_id": snowflake("Discord channel ID (snowflake)"),
        "message_id": snowflake("Message ID to edit"),
        "content": {"type": "string", "maxLength": 2000, "description": "New message content"},
        "embeds": {"type": "array", "maxItems": 10, "description": "New embed objects", "items": EMBED_SCHEMA},
    },
    ["channel_id", "message_id"],
    anyOf=[{"required": ["content"]}, {"required": ["embeds"]}],
)

DELETE_MESSAGE_SCHEMA = object_schema(
    {
        "channel_id": snowflake("Discord channel ID (snowflake)"),
        "message_id": snowflake("Message ID to delete"),
        "reason": {"type": "string", "maxLength": 512, "description": "Reason for deletion (appears in audit log)"},
    },
    ["channel_id", "message_id"],
)

ADD_REACTION_SCHEMA = object_schema(
    {
        "channel_id": snowflake("Discord channel ID (snowflake)"),
        "message_id": snowflake("Message ID to react to"),
        "emoji": {
            "type": "string",
            "minLength": 1,
            "description": "Emoji to add (Unicode emoji or custom emoji format)",
        },
    },
    ["channel_id", "message_id", "emoji"],
)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def is_custom_emoji(emoji: str) -> bool:
    return len(emoji) > 2 and emoji.startswith("<") and emoji.endswith(">")


def parse_emoji(emoji: str) -> dict[str, Any]:
    """Return ``{id, name, animated}`` for a Unicode or ``<:name:id>`` emoji."""

    if not is_custom_emoji(emoji):
        return {"id": None, "name": emoji, "animated": False}
    match = _CUSTOM_EMOJI.match(emoji)
    if match is None:
        raise ParameterValidationError(
            ValidationFailure(FailureKind.PATTERN_MISMATCH, f"invalid emoji format: {emoji}", "emoji")
        )
    return {"id": match["id"], "name": match["name"], "animated": bool(match["animated"])}


def _guild_of(ctx: ToolContext, channel_id: str) -> str | None:
    return ctx.client.fetch_entity(EntityKind.CHANNEL, channel_id).get("guild_id")


def _message_in_channel(ctx: ToolContext, channel_id: str, message_id: str) -> dict[str, Any]:
    message = ctx.client.fetch_entity(EntityKind.MESSAGE, message_id)
    if message["channel_id"] != channel_id:
        raise RemoteNotFound(f"message {message_id} not found in channel {channel_id}")
    return message


def _author(ctx: ToolContext, author_id: str) -> dict[str, Any]:
    try:
        user = ctx.client.fetch_entity(EntityKind.USER, author_id)
    except RemoteNotFound:
        return {"id": author_id, "username": None, "bot": False}
    return {"id": user["id"], "username": user.get("username"), "bot": bool(user.get("bot", False))}


def _format_message(ctx: ToolContext, message: Mapping[str, Any], guild_id: str | None) -> dict[str, Any]:
    return {
        "id": message["id"],
        "content": message.get("content", ""),
        "author": _author(ctx, message["author_id"]),
        "timestamp": message.get("timestamp"),
        "edited": message.get("edited_timestamp") is not None,
        "tts": bool(message.get("tts", False)),
        "embeds": list(message.get("embeds", ())),
        "reactions": [
            {
                "emoji": {"id": reaction["emoji"].get("id"), "name": reaction["emoji"].get("name")},
                "count": reaction.get("count", 0),
                "me": ctx.actor_id in reaction.get("users", ()),
            }
            for reaction in message.get("reactions", ())
        ],
        "pinned": bool(message.get("pinned", False)),
        "reply_to": message.get("reply_to"),
        "message_url": channel_url(guild_id, message["channel_id"], message["id"]),
    }


# send_message -----------------------------------------------------------------------


def _send_message_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    flags = ["tts"] if arguments.get("tts") else []
    return [
        AuthorizationRequest(
            "send_message",
            Scope.channel(arguments["channel_id"]),
            AuthorizationContext.build(flags=flags),
        )
    ]


def send_message(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    channel_id = arguments["channel_id"]
    content = arguments["content"]
    ensure_content_length(content, ctx.max_message_length)
    reply_to = arguments.get("reply_to")
    payload = {
        "content": content,
        "tts": bool(arguments.get("tts", False)),
        "embeds": list(arguments.get("embeds", ())),
        "reply_to": reply_to,
    }
    message = ctx.client.mutate_entity(EntityKind.CHANNEL, channel_id, "send_message", payload)
    guild_id = _guild_of(ctx, channel_id)
    return success(
        f"Message sent successfully to <#{channel_id}>",
        {
            "message_id": message["id"],
            "channel_id": channel_id,
            "content": message["content"],
            "timestamp": message.get("timestamp"),
            "tts": bool(message.get("tts", False)),
            "embed_count": len(message.get("embeds", ())),
            "has_reply": bool(reply_to),
            "message_url": channel_url(guild_id, channel_id, message["id"]),
        },
    )


# get_channel_messages ---------------------------------------------------------------


def _read_messages_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    return [AuthorizationRequest("read_messages", Scope.channel(arguments["channel_id"]))]


def get_channel_messages(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    channel_id = arguments["channel_id"]
    query = {
        "limit": min(int(arguments.get("limit", 50)), 100),
        "before": arguments.get("before", ""),
        "after": arguments.get("after", ""),
        "around": arguments.get("around", ""),
    }
    messages = ctx.client.list_entities(EntityKind.MESSAGE, channel_id, query)
    guild_id = _guild_of(ctx, channel_id)
    formatted = [_format_message(ctx, message, guild_id) for message in messages]
    return success(
        f"Retrieved {len(formatted)} messages from <#{channel_id}>",
        {
            "channel_id": channel_id,
            "message_count": len(formatted),
            "messages": formatted,
            "query": query,
        },
    )


# edit_message -----------------------------------------------------------------------


def _edit_message_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    return [
        AuthorizationRequest(
            "edit_message",
            Scope.channel(arguments["channel_id"]),
            AuthorizationContext.build(target_id=arguments["message_id"]),
        )
    ]


def edit_message(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    channel_id = arguments["channel_id"]
    message_id = arguments["message_id"]
    ensure_content_length(arguments.get("content"), ctx.max_message_length)
    _message_in_channel(ctx, channel_id, message_id)
    payload = {key: arguments[key] for key in ("content", "embeds") if key in arguments}
    message = ctx.client.mutate_entity(EntityKind.MESSAGE, message_id, "edit", payload)
    guild_id = _guild_of(ctx, channel_id)
    return success(
        f"Message edited successfully in <#{channel_id}>",
        {
            "message_id": message["id"],
            "channel_id": channel_id,
            "new_content": message.get("content", ""),
            "edited_timestamp": message.get("edited_timestamp"),
            "embed_count": len(message.get("embeds", ())),
            "message_url": channel_url(guild_id, channel_id, message["id"]),
        },
    )


# delete_message ---------------------------------------------------------------------


def _delete_message_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    return [
        AuthorizationRequest(
            "delete_message",
            Scope.channel(arguments["channel_id"]),
            AuthorizationContext.build(target_id=arguments["message_id"]),
        )
    ]


def delete_message(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    channel_id = arguments["channel_id"]
    message_id = arguments["message_id"]
    reason = arguments.get("reason", "")
    _message_in_channel(ctx, channel_id, message_id)
    message = ctx.client.mutate_entity(EntityKind.MESSAGE, message_id, "delete", {"reason": reason})
    author = _author(ctx, message["author_id"])
    return success(
        f"Message deleted successfully from <#{channel_id}>",
        {
            "deleted_message_id": message_id,
            "channel_id": channel_id,
            "deleted_content": message.get("content", ""),
            "author_id": author["id"],
            "author_username": author["username"],
            "deletion_reason": reason,
            "deleted_at": _timestamp(),
        },
    )


# add_reaction -----------------------------------------------------------------------


def _add_reaction_auth(arguments: Mapping[str, Any]) -> list[AuthorizationRequest]:
    flags = ["external_emoji"] if is_custom_emoji(arguments["emoji"]) else []
    return [
        AuthorizationRequest(
            "add_reaction",
            Scope.channel(arguments["channel_id"]),
            AuthorizationContext.build(flags=flags),
        )
    ]


def add_reaction(ctx: ToolContext, arguments: Mapping[str, Any]) -> ToolResult:
    channel_id = arguments["channel_id"]
    message_id = arguments["message_id"]
    emoji_text = arguments["emoji"]
    emoji = parse_emoji(emoji_text)
    _message_in_channel(ctx, channel_id, message_id)
    ctx.client.mutate_entity(
        EntityKind.MESSAGE,
        message_id,
        "add_reaction",
        {"emoji": {"id": emoji["id"], "name": emoji["name"]}},
    )
    guild_id = _guild_of(ctx, channel_id)
    formatted = f"{emoji['name']}:{emoji['id']}" if emoji["id"] else emoji["name"]
    return success(
        f"Added reaction {emoji_text} to message in <#{channel_id}>",
        {
            "message_id": message_id,
            "channel_id": channel_id,
            "emoji": emoji_text,
            "formatted_emoji": formatted,
            "is_custom_emoji": emoji["id"] is not None,
            "added_at": _timestamp(),
            "message_url": channel_url(guild_id, channel_id, message_id),
        },
    )


MESSAGE_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        "send_message",
        "Send a message to a Discord channel with support for embeds, replies, and TTS",
        SEND_MESSAGE_SCHEMA,
        send_message,
        _send_message_auth,
    ),
    ToolDefinition(
        "get_channel_messages",
        "Retrieve message history from a Discord channel with pagination support",
        GET_CHANNEL_MESSAGES_SCHEMA,
        get_channel_messages,
        _read_messages_auth,
    ),
    ToolDefinition(
        "edit_message",
        "Edit a Discord message's content or embeds",
        EDIT_MESSAGE_SCHEMA,
        edit_message,
        _edit_message_auth,
    ),
    ToolDefinition(
        "delete_message",
        "Delete a Discord message",
        DELETE_MESSAGE_SCHEMA,
        delete_message,
        _delete_message_auth,
    ),
    ToolDefinition(
        "add_reaction",
        "Add an emoji reaction to a Discord message",
        ADD_REACTION_SCHEMA,
        add_reaction,
        _add_reaction_auth,
    ),
)
