"""Guild state used across the test suite.

Guild ``200`` is owned by ``999``.  The bot (``100``) holds only ``@everyone``
unless ``bot_roles`` says otherwise, which grants view, send, read history and
add reactions.  Channel ``301`` denies sending to ``@everyone``, ``302`` hides
itself from ``@everyone`` and ``310`` is a direct message channel.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from discord_mcp.permissions.bits import Permission

EVERYONE_PERMISSIONS = int(
    Permission.VIEW_CHANNEL
    | Permission.SEND_MESSAGES
    | Permission.READ_MESSAGE_HISTORY
    | Permission.ADD_REACTIONS
)
MODERATOR_PERMISSIONS = int(Permission.MANAGE_MESSAGES | Permission.MANAGE_ROLES)

BOT_ID = "100"
GUILD_ID = "200"
OWNER_ID = "999"


def build_snapshot(*, bot_roles: Iterable[str] = ()) -> dict[str, Any]:
    return {
        "bot": {"id": BOT_ID, "username": "mcp-bot", "bot": True},
        "users": [
            {"id": "101", "username": "alice"},
            {"id": "102", "username": "bob"},
            {"id": OWNER_ID, "username": "owner"},
        ],
        "guilds": [
            {"id": GUILD_ID, "name": "Test Guild", "owner_id": OWNER_ID, "description": "guild for tests"},
            {"id": "250", "name": "Other Guild", "owner_id": "101"},
        ],
        "roles": [
            {"id": GUILD_ID, "guild_id": GUILD_ID, "name": "@everyone", "permissions": EVERYONE_PERMISSIONS},
            {"id": "201", "guild_id": GUILD_ID, "name": "Moderator", "permissions": MODERATOR_PERMISSIONS, "position": 2},
            {"id": "202", "guild_id": GUILD_ID, "name": "Member", "permissions": 0, "position": 1},
            {"id": "203", "guild_id": GUILD_ID, "name": "Admin", "permissions": int(Permission.ADMINISTRATOR), "position": 3},
        ],
        "members": [
            {"guild_id": GUILD_ID, "user": {"id": BOT_ID, "username": "mcp-bot", "bot": True}, "roles": list(bot_roles)},
            {"guild_id": GUILD_ID, "user": {"id": "101", "username": "alice"}, "roles": ["201"], "nick": "Al"},
            {"guild_id": GUILD_ID, "user": {"id": "102", "username": "bob"}, "roles": ["203"]},
            {"guild_id": "250", "user": {"id": "101", "username": "alice"}, "roles": []},
        ],
        "channels": [
            {"id": "300", "guild_id": GUILD_ID, "name": "general", "type": "text", "position": 0},
            {
                "id": "301",
                "guild_id": GUILD_ID,
                "name": "announcements",
                "type": "announcement",
                "position": 1,
                "overwrites": [{"id": GUILD_ID, "type": "role", "deny": int(Permission.SEND_MESSAGES)}],
            },
            {
                "id": "302",
                "guild_id": GUILD_ID,
                "name": "secret",
                "type": "text",
                "position": 2,
                "overwrites": [{"id": GUILD_ID, "type": "role", "deny": int(Permission.VIEW_CHANNEL)}],
            },
            {"id": "303", "guild_id": GUILD_ID, "name": "Voice", "type": "voice", "position": 3},
            {"id": "350", "guild_id": "250", "name": "elsewhere", "type": "text"},
            {"id": "310", "type": "dm", "name": "dm-alice"},
        ],
        "messages": [
            {"id": "400", "channel_id": "300", "author_id": "101", "content": "hello", "timestamp": "2024-01-01T00:00:00Z"},
            {"id": "401", "channel_id": "300", "author_id": BOT_ID, "content": "bot says hi", "timestamp": "2024-01-01T00:01:00Z"},
            {"id": "402", "channel_id": "300", "author_id": "101", "content": "third", "timestamp": "2024-01-01T00:02:00Z"},
            {"id": "410", "channel_id": "310", "author_id": "101", "content": "dm", "timestamp": "2024-01-01T00:03:00Z"},
        ],
    }
