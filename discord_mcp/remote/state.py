"""Remote client backed by an in-memory snapshot of guild state.

The snapshot is a YAML (or already-parsed) mapping with ``bot``, ``guilds``,
``roles``, ``members``, ``channels``, ``messages`` and ``users`` sections.  The
``@everyone`` role of a guild shares the guild's id.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from discord_mcp.permissions.bits import (
    ALL_PERMISSIONS,
    DIRECT_MESSAGE_BASELINE,
    Permission,
    apply_overwrites,
)
from discord_mcp.permissions.scope import Scope, ScopeKind
from discord_mcp.remote.client import (
    EntityKind,
    NotConnected,
    RateLimited,
    RemoteError,
    RemoteForbidden,
    RemoteNotFound,
)
from discord_mcp.remote.ratelimit import SlidingWindowLimiter

__all__ = ["CHANNEL_TYPES", "EventListener", "StateClient", "load_snapshot"]

LOGGER = logging.getLogger(__name__)

CHANNEL_TYPES = ("text", "voice", "category", "announcement", "stage", "forum", "media")

_SNOWFLAKE_EPOCH_MS = 1420070400000

EventListener = Callable[[str, Mapping[str, Any]], Any]


def load_snapshot(path: str | Path) -> dict[str, Any]:
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"State snapshot not found: {source}")
    with source.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"State snapshot {source} must contain a mapping")
    return dict(data)


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _ids(values: Iterable[Any]) -> list[str]:
    return [str(value) for value in values]


class StateClient:
    """Serve guild, channel, message, role and member entities from memory."""

    def __init__(
        self,
        snapshot: Mapping[str, Any] | None = None,
        *,
        allowed_guilds: Iterable[str] = (),
        rate_limit_per_minute: int = 30,
        clock: Callable[[], float] = time.monotonic,
        connected: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        snapshot = snapshot or {}
        self._logger = logger or LOGGER
        self._lock = threading.RLock()
        self._listeners: list[EventListener] = []
        self._allowed_guilds = frozenset(_ids(allowed_guilds))
        self._limiter = SlidingWindowLimiter(rate_limit_per_minute, window=60.0, clock=clock)
        self._connected = connected

        bot = dict(snapshot.get("bot") or {"id": "1", "username": "discord-mcp", "bot": True})
        bot["id"] = str(bot["id"])
        bot.setdefault("bot", True)
        self._bot = bot

        self._users: dict[str, dict[str, Any]] = {bot["id"]: bot}
        for user in snapshot.get("users", ()):
            self._users[str(user["id"])] = {**user, "id": str(user["id"])}

        self._guilds = {str(item["id"]): self._normalise_guild(item) for item in snapshot.get("guilds", ())}
        self._roles = {str(item["id"]): self._normalise_role(item) for item in snapshot.get("roles", ())}
        for guild_id in self._guilds:
            self._roles.setdefault(
                guild_id,
                {"id": guild_id, "guild_id": guild_id, "name": "@everyone", "permissions": 0,
                 "color": 0, "hoist": False, "position": 0, "managed": False, "mentionable": False},
            )
        self._members: dict[str, dict[str, Any]] = {}
        for item in snapshot.get("members", ()):
            member = self._normalise_member(item)
            self._members[f"{member['guild_id']}/{member['user']['id']}"] = member
        self._channels = {str(item["id"]): self._normalise_channel(item) for item in snapshot.get("channels", ())}
        self._messages = {str(item["id"]): self._normalise_message(item) for item in snapshot.get("messages", ())}

        known = [int(key) for key in (*self._guilds, *self._roles, *self._channels, *self._messages) if key.isdigit()]
        self._last_id = max(known, default=0)

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> StateClient:
        return cls(load_snapshot(path), **kwargs)

    # Connection -----------------------------------------------------------------------

    @property
    def actor_id(self) -> str:
        return self._bot["id"]

    @property
    def bot_user(self) -> dict[str, Any]:
        return dict(self._bot)

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        with self._lock:
            if not self._connected:
                self._connected = True
                self._logger.info("State client connected as %s", self._bot.get("username"))

    def disconnect(self) -> None:
        with self._lock:
            if self._connected:
                self._connected = False
                self._logger.info("State client disconnected")

    def subscribe(self, listener: EventListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    # Remote client contract -----------------------------------------------------------

    def fetch_entity(self, kind: str, entity_id: str) -> dict[str, Any]:
        with self._lock:
            self._ensure_connected()
            entity = self._lookup(kind, str(entity_id))
            return copy.deepcopy(entity)

    def list_entities(
        self,
        kind: str,
        parent_id: str,
        query: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return child entities of ``parent_id`` (a guild, or a channel for messages)."""

        query = query or {}
        with self._lock:
            self._ensure_connected()
            parent_id = str(parent_id)
            if kind == EntityKind.MESSAGE:
                self._lookup(EntityKind.CHANNEL, parent_id)
                items = [m for m in self._messages.values() if m["channel_id"] == parent_id]
                items = self._page_messages(items, query)
            else:
                self._lookup(EntityKind.GUILD, parent_id)
                if kind == EntityKind.CHANNEL:
                    items = sorted(
                        (c for c in self._channels.values() if c["guild_id"] == parent_id),
                        key=lambda c: (c.get("position", 0), int(c["id"]) if c["id"].isdigit() else 0),
                    )
                elif kind == EntityKind.ROLE:
                    items = sorted(
                        (r for r in self._roles.values() if r["guild_id"] == parent_id),
                        key=lambda r: r.get("position", 0),
                        reverse=True,
                    )
                elif kind == EntityKind.MEMBER:
                    items = [m for m in self._members.values() if m["guild_id"] == parent_id]
                else:
                    raise RemoteError(f"Cannot list {kind} entities")
            return copy.deepcopy(items)

    def mutate_entity(
        self,
        kind: str,
        entity_id: str,
        operation: str,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        events: list[tuple[str, dict[str, Any]]] = []
        with self._lock:
            self._ensure_connected()
            retry_after = self._limiter.try_acquire()
            if retry_after > 0:
                raise RateLimited("rate limit exceeded", retry_after=retry_after)
            handler = self._MUTATIONS.get((kind, operation))
            if handler is None:
                raise RemoteError(f"Unsupported operation {operation!r} on {kind}")
            result = handler(self, str(entity_id), dict(payload), events)
            result = copy.deepcopy(result)
        for event_type, data in events:
            self._publish(event_type, data)
        return result

    def get_capability_bitmask(self, actor_id: str, scope: Scope) -> int:
        with self._lock:
            self._ensure_connected()
            actor_id = str(actor_id)
            if scope.kind is ScopeKind.GUILD:
                self._lookup(EntityKind.GUILD, scope.id)
                return self._base_mask(scope.id, actor_id)
            channel = self._lookup(EntityKind.CHANNEL, scope.id)
            guild_id = channel.get("guild_id")
            if not guild_id:
                return int(DIRECT_MESSAGE_BASELINE)
            base = self._base_mask(guild_id, actor_id)
            member = self._members.get(f"{guild_id}/{actor_id}")
            member_roles = set(member["roles"]) if member else set()
            everyone = None
            role_overwrites = []
            member_overwrite = None
            for overwrite in channel.get("overwrites", ()):
                target = overwrite["id"]
                if overwrite.get("type", "role") == "member":
                    if target == actor_id:
                        member_overwrite = overwrite
                elif target == guild_id:
                    everyone = overwrite
                elif target in member_roles:
                    role_overwrites.append(overwrite)
            return apply_overwrites(base, everyone=everyone, roles=role_overwrites, member=member_overwrite)

    # Internals ------------------------------------------------------------------------

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise NotConnected("not connected to Discord")

    def _check_guild(self, guild_id: str | None) -> None:
        if guild_id and self._allowed_guilds and guild_id not in self._allowed_guilds:
            raise RemoteForbidden(f"access to guild {guild_id} is not allowed", details={"guild_id": guild_id})

    def _lookup(self, kind: str, entity_id: str) -> dict[str, Any]:
        if kind == EntityKind.USER:
            user = self._users.get(entity_id)
            if user is None:
                raise RemoteNotFound(f"user {entity_id} not found")
            return user
        if kind == EntityKind.MEMBER:
            guild_id, _, user_id = entity_id.partition("/")
            self._check_guild(guild_id)
            member = self._members.get(f"{guild_id}/{user_id}")
            if member is None:
                raise RemoteNotFound(f"member {user_id} not found in guild {guild_id}")
            return member
        table = {
            EntityKind.GUILD: self._guilds,
            EntityKind.CHANNEL: self._channels,
            EntityKind.ROLE: self._roles,
            EntityKind.MESSAGE: self._messages,
        }.get(kind)
        if table is None:
            raise RemoteNotFound(f"unknown entity kind {kind!r}")
        entity = table.get(entity_id)
        if entity is None:
            raise RemoteNotFound(f"{kind} {entity_id} not found")
        if kind == EntityKind.GUILD:
            self._check_guild(entity_id)
        elif kind == EntityKind.MESSAGE:
            self._check_guild(self._channels.get(entity["channel_id"], {}).get("guild_id"))
        else:
            self._check_guild(entity.get("guild_id"))
        return entity

    def _base_mask(self, guild_id: str, actor_id: str) -> int:
        guild = self._guilds[guild_id]
        if guild.get("owner_id") == actor_id:
            return int(ALL_PERMISSIONS)
        mask = int(self._roles.get(guild_id, {}).get("permissions", 0))
        member = self._members.get(f"{guild_id}/{actor_id}")
        for role_id in member["roles"] if member else ():
            role = self._roles.get(role_id)
            if role is not None:
                mask |= int(role.get("permissions", 0))
        if mask & Permission.ADMINISTRATOR:
            return int(ALL_PERMISSIONS)
        return mask

    def _next_id(self) -> str:
        candidate = (int(time.time() * 1000) - _SNOWFLAKE_EPOCH_MS) << 22
        self._last_id = max(candidate, self._last_id + 1)
        return str(self._last_id)

    @staticmethod
    def _page_messages(items: list[dict[str, Any]], query: Mapping[str, Any]) -> list[dict[str, Any]]:
        limit = min(int(query.get("limit", 50)), 100)
        ordered = sorted(items, key=lambda m: int(m["id"]), reverse=True)
        if query.get("before"):
            pivot = int(query["before"])
            return [m for m in ordered if int(m["id"]) < pivot][:limit]
        if query.get("after"):
            pivot = int(query["after"])
            newer = [m for m in ordered if int(m["id"]) > pivot]
            return newer[-limit:]
        if query.get("around"):
            pivot = int(query["around"])
            nearest = sorted(ordered, key=lambda m: abs(int(m["id"]) - pivot))[:limit]
            return sorted(nearest, key=lambda m: int(m["id"]), reverse=True)
        return ordered[:limit]

    def _publish(self, event_type: str, data: Mapping[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event_type, data)
            except Exception:  # noqa: BLE001
                self._logger.exception("Event listener failed for %s", event_type)

    # Mutations ------------------------------------------------------------------------

    def _send_message(self, channel_id: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        channel = self._lookup(EntityKind.CHANNEL, channel_id)
        reply_to = payload.get("reply_to")
        if reply_to and reply_to not in self._messages:
            raise RemoteNotFound(f"message {reply_to} not found")
        author_id = str(payload.get("author_id") or self._bot["id"])
        message = self._normalise_message(
            {
                "id": self._next_id(),
                "channel_id": channel_id,
                "author_id": author_id,
                "content": payload.get("content", ""),
                "tts": bool(payload.get("tts", False)),
                "embeds": payload.get("embeds", []),
                "reply_to": reply_to,
                "timestamp": _now(),
            }
        )
        self._messages[message["id"]] = message
        events.append(("message_create", {**message, "guild_id": channel.get("guild_id")}))
        return message

    def _edit_message(self, message_id: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        message = self._lookup(EntityKind.MESSAGE, message_id)
        if message["author_id"] != self._bot["id"]:
            raise RemoteForbidden("cannot edit a message authored by another user", details={"message_id": message_id})
        if "content" in payload:
            message["content"] = payload["content"]
        if "embeds" in payload:
            message["embeds"] = list(payload["embeds"])
        message["edited_timestamp"] = _now()
        return message

    def _delete_message(self, message_id: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        message = self._lookup(EntityKind.MESSAGE, message_id)
        del self._messages[message_id]
        if payload.get("reason"):
            self._logger.info("Deleted message %s in channel %s. Reason: %s", message_id, message["channel_id"], payload["reason"])
        return message

    def _add_reaction(self, message_id: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        message = self._lookup(EntityKind.MESSAGE, message_id)
        emoji = dict(payload["emoji"])
        user_id = str(payload.get("user_id") or self._bot["id"])
        for reaction in message["reactions"]:
            if reaction["emoji"] == emoji:
                if user_id not in reaction["users"]:
                    reaction["users"].append(user_id)
                    reaction["count"] += 1
                break
        else:
            message["reactions"].append({"emoji": emoji, "count": 1, "users": [user_id]})
        channel = self._channels.get(message["channel_id"], {})
        events.append(
            (
                "reaction_add",
                {
                    "guild_id": channel.get("guild_id"),
                    "channel_id": message["channel_id"],
                    "message_id": message_id,
                    "user_id": user_id,
                    "emoji": emoji,
                },
            )
        )
        return message

    def _create_role(self, guild_id: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        self._lookup(EntityKind.GUILD, guild_id)
        positions = [r.get("position", 0) for r in self._roles.values() if r["guild_id"] == guild_id]
        role = self._normalise_role(
            {
                "id": self._next_id(),
                "guild_id": guild_id,
                "name": payload["name"],
                "permissions": int(payload.get("permissions", 0)),
                "position": max(positions, default=0) + 1,
            }
        )
        self._roles[role["id"]] = role
        return role

    def _delete_role(self, role_id: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        role = self._lookup(EntityKind.ROLE, role_id)
        if role_id == role["guild_id"]:
            raise RemoteForbidden("the @everyone role cannot be deleted")
        if role.get("managed"):
            raise RemoteForbidden(f"role {role_id} is managed by an integration")
        del self._roles[role_id]
        for member in self._members.values():
            if role_id in member["roles"]:
                member["roles"].remove(role_id)
        return role

    def _add_member_role(self, member_key: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        member = self._lookup(EntityKind.MEMBER, member_key)
        role = self._lookup(EntityKind.ROLE, str(payload["role_id"]))
        if role["guild_id"] != member["guild_id"]:
            raise RemoteNotFound(f"role {role['id']} not found in guild {member['guild_id']}")
        if role["id"] not in member["roles"]:
            member["roles"].append(role["id"])
        return member

    def _remove_member_role(self, member_key: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        member = self._lookup(EntityKind.MEMBER, member_key)
        role_id = str(payload["role_id"])
        self._lookup(EntityKind.ROLE, role_id)
        if role_id in member["roles"]:
            member["roles"].remove(role_id)
        return member

    def _add_member(self, guild_id: str, payload: dict[str, Any], events: list) -> dict[str, Any]:
        self._lookup(EntityKind.GUILD, guild_id)
        member = self._normalise_member({**payload, "guild_id": guild_id, "joined_at": payload.get("joined_at") or _now()})
        user = member["user"]
        self._users.setdefault(user["id"], dict(user))
        self._members[f"{guild_id}/{user['id']}"] = member
        events.append(("member_add", {"guild_id": guild_id, "user": dict(user)}))
        return member

    _MUTATIONS: dict[tuple[str, str], Callable[..., dict[str, Any]]] = {
        (EntityKind.CHANNEL, "send_message"): _send_message,
        (EntityKind.MESSAGE, "edit"): _edit_message,
        (EntityKind.MESSAGE, "delete"): _delete_message,
        (EntityKind.MESSAGE, "add_reaction"): _add_reaction,
        (EntityKind.GUILD, "create_role"): _create_role,
        (EntityKind.GUILD, "add_member"): _add_member,
        (EntityKind.ROLE, "delete"): _delete_role,
        (EntityKind.MEMBER, "add_role"): _add_member_role,
        (EntityKind.MEMBER, "remove_role"): _remove_member_role,
    }

    # Normalisation --------------------------------------------------------------------

    @staticmethod
    def _normalise_guild(item: Mapping[str, Any]) -> dict[str, Any]:
        guild = dict(item)
        guild["id"] = str(guild["id"])
        guild["owner_id"] = str(guild.get("owner_id", ""))
        guild.setdefault("name", "")
        guild.setdefault("description", "")
        return guild

    @staticmethod
    def _normalise_role(item: Mapping[str, Any]) -> dict[str, Any]:
        role = {
            "color": 0,
            "hoist": False,
            "position": 0,
            "managed": False,
            "mentionable": False,
            "permissions": 0,
            **item,
        }
        role["id"] = str(role["id"])
        role["guild_id"] = str(role["guild_id"])
        role["permissions"] = int(role["permissions"])
        return role

    def _normalise_member(self, item: Mapping[str, Any]) -> dict[str, Any]:
        user = dict(item["user"])
        user["id"] = str(user["id"])
        user.setdefault("username", "")
        user.setdefault("bot", False)
        self._users.setdefault(user["id"], user)
        return {
            "guild_id": str(item["guild_id"]),
            "user": user,
            "roles": _ids(item.get("roles", ())),
            "nick": item.get("nick"),
            "joined_at": item.get("joined_at"),
            "deaf": bool(item.get("deaf", False)),
            "mute": bool(item.get("mute", False)),
        }

    @staticmethod
    def _normalise_channel(item: Mapping[str, Any]) -> dict[str, Any]:
        channel = {"type": "text", "position": 0, "nsfw": False, "topic": "", "parent_id": None, **item}
        channel["id"] = str(channel["id"])
        guild_id = channel.get("guild_id")
        channel["guild_id"] = str(guild_id) if guild_id else None
        if channel["type"] not in CHANNEL_TYPES and channel["type"] != "dm":
            raise ValueError(f"Unknown channel type {channel['type']!r} for channel {channel['id']}")
        channel["overwrites"] = [
            {
                "id": str(overwrite["id"]),
                "type": overwrite.get("type", "role"),
                "allow": int(overwrite.get("allow", 0)),
                "deny": int(overwrite.get("deny", 0)),
            }
            for overwrite in channel.get("overwrites", ())
        ]
        return channel

    @staticmethod
    def _normalise_message(item: Mapping[str, Any]) -> dict[str, Any]:
        message = {
            "content": "",
            "tts": False,
            "embeds": [],
            "reactions": [],
            "reply_to": None,
            "pinned": False,
            "timestamp": None,
            "edited_timestamp": None,
            **item,
        }
        message["id"] = str(message["id"])
        message["channel_id"] = str(message["channel_id"])
        message["author_id"] = str(message["author_id"])
        return message
