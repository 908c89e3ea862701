from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import IntFlag
from types import MappingProxyType
from typing import Any

__all__ = [
    "ALL_PERMISSIONS",
    "DIRECT_MESSAGE_BASELINE",
    "SUMMARY_CAPABILITIES",
    "Permission",
    "apply_overwrites",
    "describe",
    "permission_names",
]


class Permission(IntFlag):
    """Capability bits using the chat service's wire assignments."""

    CREATE_INSTANT_INVITE = 1 << 0
    KICK_MEMBERS = 1 << 1
    BAN_MEMBERS = 1 << 2
    ADMINISTRATOR = 1 << 3
    MANAGE_CHANNELS = 1 << 4
    MANAGE_GUILD = 1 << 5
    ADD_REACTIONS = 1 << 6
    VIEW_AUDIT_LOG = 1 << 7
    PRIORITY_SPEAKER = 1 << 8
    STREAM = 1 << 9
    VIEW_CHANNEL = 1 << 10
    SEND_MESSAGES = 1 << 11
    SEND_TTS_MESSAGES = 1 << 12
    MANAGE_MESSAGES = 1 << 13
    EMBED_LINKS = 1 << 14
    ATTACH_FILES = 1 << 15
    READ_MESSAGE_HISTORY = 1 << 16
    MENTION_EVERYONE = 1 << 17
    USE_EXTERNAL_EMOJIS = 1 << 18
    VIEW_GUILD_INSIGHTS = 1 << 19
    CONNECT = 1 << 20
    SPEAK = 1 << 21
    MUTE_MEMBERS = 1 << 22
    DEAFEN_MEMBERS = 1 << 23
    MOVE_MEMBERS = 1 << 24
    USE_VAD = 1 << 25
    CHANGE_NICKNAME = 1 << 26
    MANAGE_NICKNAMES = 1 << 27
    MANAGE_ROLES = 1 << 28
    MANAGE_WEBHOOKS = 1 << 29
    MANAGE_EMOJIS = 1 << 30


ALL_PERMISSIONS = Permission((1 << 31) - 1)

DIRECT_MESSAGE_BASELINE = (
    Permission.VIEW_CHANNEL
    | Permission.SEND_MESSAGES
    | Permission.READ_MESSAGE_HISTORY
    | Permission.ADD_REACTIONS
)

SUMMARY_CAPABILITIES: tuple[tuple[str, Permission], ...] = (
    ("view_channel", Permission.VIEW_CHANNEL),
    ("send_messages", Permission.SEND_MESSAGES),
    ("send_tts_messages", Permission.SEND_TTS_MESSAGES),
    ("manage_messages", Permission.MANAGE_MESSAGES),
    ("read_message_history", Permission.READ_MESSAGE_HISTORY),
    ("add_reactions", Permission.ADD_REACTIONS),
    ("use_external_emojis", Permission.USE_EXTERNAL_EMOJIS),
    ("attach_files", Permission.ATTACH_FILES),
    ("embed_links", Permission.EMBED_LINKS),
    ("mention_everyone", Permission.MENTION_EVERYONE),
)

_DESCRIPTIONS: Mapping[Permission, str] = MappingProxyType(
    {
        Permission.VIEW_CHANNEL: "view this channel",
        Permission.SEND_MESSAGES: "send messages",
        Permission.SEND_TTS_MESSAGES: "send text-to-speech messages",
        Permission.MANAGE_MESSAGES: "manage messages of other members",
        Permission.READ_MESSAGE_HISTORY: "read message history",
        Permission.ADD_REACTIONS: "add reactions",
        Permission.USE_EXTERNAL_EMOJIS: "use external emojis",
        Permission.MANAGE_ROLES: "manage roles",
        Permission.ADMINISTRATOR: "administer the guild",
    }
)


def permission_names(mask: int) -> list[str]:
    """Return the names of the bits set in ``mask`` in ascending bit order."""

    return [member.name for member in Permission if member.name and mask & member.value]


def describe(bit: Permission) -> str:
    return _DESCRIPTIONS.get(bit, (bit.name or str(int(bit))).lower().replace("_", " "))


def apply_overwrites(
    base: int,
    *,
    everyone: Mapping[str, Any] | None = None,
    roles: Iterable[Mapping[str, Any]] = (),
    member: Mapping[str, Any] | None = None,
) -> int:
    """Apply channel overwrites on top of a guild-level mask.

    Overwrites are applied as ``@everyone``, then the union of the actor's role
    overwrites, then the actor's own overwrite; within each layer ``deny`` is
    cleared before ``allow`` is set.  Administrators bypass overwrites.
    """

    if base & Permission.ADMINISTRATOR:
        return int(ALL_PERMISSIONS)
    mask = int(base)
    if everyone is not None:
        mask &= ~int(everyone.get("deny", 0))
        mask |= int(everyone.get("allow", 0))
    role_deny = 0
    role_allow = 0
    for overwrite in roles:
        role_deny |= int(overwrite.get("deny", 0))
        role_allow |= int(overwrite.get("allow", 0))
    mask &= ~role_deny
    mask |= role_allow
    if member is not None:
        mask &= ~int(member.get("deny", 0))
        mask |= int(member.get("allow", 0))
    return mask
