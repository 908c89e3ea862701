from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from discord_mcp.notifications.channel import NotificationChannel

__all__ = [
    "GUILD_MEMBER_ADDED",
    "KNOWN_EVENTS",
    "MESSAGE_CREATED",
    "MESSAGE_REACTION_ADDED",
    "EventDispatcher",
]

LOGGER = logging.getLogger(__name__)

MESSAGE_CREATED = "discord/messageCreated"
GUILD_MEMBER_ADDED = "discord/guildMemberAdded"
MESSAGE_REACTION_ADDED = "discord/messageReactionAdded"

KNOWN_EVENTS: tuple[str, ...] = (MESSAGE_CREATED, GUILD_MEMBER_ADDED, MESSAGE_REACTION_ADDED)


def _message_created(data: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "guild_id": data.get("guild_id"),
        "channel_id": data["channel_id"],
        "message_id": data["id"],
        "author_id": data["author_id"],
        "content": data.get("content", ""),
    }


def _member_added(data: Mapping[str, Any]) -> dict[str, Any]:
    user = data.get("user") or {}
    return {
        "guild_id": data["guild_id"],
        "user": {"id": user.get("id"), "username": user.get("username")},
    }


def _reaction_added(data: Mapping[str, Any]) -> dict[str, Any]:
    emoji = data.get("emoji") or {}
    return {
        "guild_id": data.get("guild_id"),
        "channel_id": data["channel_id"],
        "message_id": data["message_id"],
        "user_id": data["user_id"],
        "emoji": {"id": emoji.get("id"), "name": emoji.get("name")},
    }


_BUILDERS: dict[str, tuple[str, Callable[[Mapping[str, Any]], dict[str, Any]]]] = {
    "message_create": (MESSAGE_CREATED, _message_created),
    "member_add": (GUILD_MEMBER_ADDED, _member_added),
    "reaction_add": (MESSAGE_REACTION_ADDED, _reaction_added),
}


class EventDispatcher:
    """Translate remote service events into notifications.

    Handlers run on whichever thread the remote client raises events from.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._channel = channel
        self._logger = logger or LOGGER

    def __call__(self, event_type: str, data: Mapping[str, Any]) -> bool:
        return self.handle(event_type, data)

    def handle(self, event_type: str, data: Mapping[str, Any]) -> bool:
        entry = _BUILDERS.get(event_type)
        if entry is None:
            self._logger.debug("Ignoring unsupported event type %s", event_type)
            return False
        event_name, builder = entry
        if not self._channel.accepts(event_name):
            return False
        try:
            payload = builder(data)
        except KeyError as exc:
            self._logger.warning("Malformed %s event, missing %s", event_type, exc)
            return False
        return self._channel.emit(event_name, payload)
