"""Capability gate evaluated before every tool call reaches the remote service."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from discord_mcp.permissions.bits import (
    ALL_PERMISSIONS,
    DIRECT_MESSAGE_BASELINE,
    SUMMARY_CAPABILITIES,
    Permission,
    describe,
    permission_names,
)
from discord_mcp.permissions.scope import Scope, ScopeKind
from discord_mcp.remote.client import EntityKind, RemoteClient, RemoteForbidden, RemoteNotFound

__all__ = [
    "DEFAULT_RULES",
    "AuthorizationContext",
    "AuthorizationRequest",
    "PermissionDenied",
    "PermissionGate",
    "PermissionRule",
    "check_mask",
]

LOGGER = logging.getLogger(__name__)

GUILD_ACCESS = "GUILD_ACCESS"


@dataclass(frozen=True, slots=True)
class PermissionRule:
    """Requirement for one gated operation.

    ``owner_required`` replaces ``required`` when the actor owns the target
    resource.  ``flag_requirements`` adds bits when the call context raises the
    named flag.
    """

    operation: str
    scope_kind: ScopeKind
    required: Permission
    owner_required: Permission | None = None
    target_kind: str = EntityKind.MESSAGE
    owner_field: str = "author_id"
    flag_requirements: Mapping[str, Permission] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "flag_requirements", MappingProxyType(dict(self.flag_requirements)))


@dataclass(frozen=True, slots=True)
class AuthorizationContext:
    target_id: str | None = None
    flags: frozenset[str] = frozenset()

    @classmethod
    def build(cls, *, target_id: str | None = None, flags: Iterable[str] = ()) -> AuthorizationContext:
        return cls(target_id=target_id, flags=frozenset(flags))


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    """One gate check a tool needs before it may run."""

    operation: str
    scope: Scope
    context: AuthorizationContext = AuthorizationContext()


class PermissionDenied(Exception):
    """Raised when the actor lacks a capability required by an operation."""

    error_type = "permission"

    def __init__(
        self,
        *,
        operation: str,
        missing_capability: str,
        scope: Scope,
        description: str,
        missing_mask: int = 0,
    ) -> None:
        super().__init__(description)
        self.operation = operation
        self.missing_capability = missing_capability
        self.scope = scope
        self.description = description
        self.missing_mask = missing_mask

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.error_type,
            "operation": self.operation,
            "missing_capability": self.missing_capability,
            "scope": self.scope.to_dict(),
            "resource": f"{self.scope.kind.value}:{self.scope.id}",
            "description": self.description,
        }


DEFAULT_RULES: Mapping[str, PermissionRule] = MappingProxyType(
    {
        rule.operation: rule
        for rule in (
            PermissionRule(
                "send_message",
                ScopeKind.CHANNEL,
                Permission.VIEW_CHANNEL | Permission.SEND_MESSAGES,
                flag_requirements={"tts": Permission.SEND_TTS_MESSAGES},
                description="send messages in this channel",
            ),
            PermissionRule(
                "read_messages",
                ScopeKind.CHANNEL,
                Permission.VIEW_CHANNEL | Permission.READ_MESSAGE_HISTORY,
                description="read message history in this channel",
            ),
            PermissionRule(
                "edit_message",
                ScopeKind.CHANNEL,
                Permission.VIEW_CHANNEL | Permission.MANAGE_MESSAGES,
                owner_required=Permission.VIEW_CHANNEL | Permission.SEND_MESSAGES,
                description="edit this message",
            ),
            PermissionRule(
                "delete_message",
                ScopeKind.CHANNEL,
                Permission.VIEW_CHANNEL | Permission.MANAGE_MESSAGES,
                owner_required=Permission.VIEW_CHANNEL,
                description="delete this message",
            ),
            PermissionRule(
                "add_reaction",
                ScopeKind.CHANNEL,
                Permission.VIEW_CHANNEL | Permission.ADD_REACTIONS,
                flag_requirements={"external_emoji": Permission.USE_EXTERNAL_EMOJIS},
                description="add reactions in this channel",
            ),
            PermissionRule(
                "view_channel",
                ScopeKind.CHANNEL,
                Permission.VIEW_CHANNEL,
                description="view this channel",
            ),
            PermissionRule(
                "view_guild",
                ScopeKind.GUILD,
                Permission(0),
                description="access this guild",
            ),
            PermissionRule(
                "manage_roles",
                ScopeKind.GUILD,
                Permission.MANAGE_ROLES,
                description="manage roles in this guild",
            ),
        )
    }
)


def check_mask(
    mask: int,
    required: int,
    *,
    operation: str,
    scope: Scope,
    description: str = "",
) -> None:
    """Raise :class:`PermissionDenied` when ``mask`` lacks any bit of ``required``."""

    missing = int(required) & ~int(mask)
    if not missing:
        return
    names = permission_names(missing)
    lowest = Permission(missing & -missing)
    action = describe(lowest) if lowest == Permission.VIEW_CHANNEL or not description else description
    raise PermissionDenied(
        operation=operation,
        missing_capability="|".join(names) if names else str(missing),
        scope=scope,
        description=f"Missing permission to {action}: requires {', '.join(names) or missing} in {scope.kind.value} {scope.id}",
        missing_mask=missing,
    )


class PermissionGate:
    """Resolve capability masks and evaluate them against the rule table."""

    def __init__(
        self,
        client: RemoteClient,
        *,
        rules: Mapping[str, PermissionRule] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._rules = MappingProxyType(dict(rules if rules is not None else DEFAULT_RULES))
        self._logger = logger or LOGGER

    @property
    def rules(self) -> Mapping[str, PermissionRule]:
        return self._rules

    def authorize(
        self,
        actor_id: str,
        scope: Scope,
        operation: str,
        context: AuthorizationContext | None = None,
    ) -> int:
        """Return the actor's mask for ``scope`` or raise :class:`PermissionDenied`."""

        rule = self._rules.get(operation)
        if rule is None:
            raise KeyError(f"No permission rule registered for operation '{operation}'")
        if rule.scope_kind is not scope.kind:
            raise ValueError(
                f"Operation '{operation}' is evaluated in {rule.scope_kind.value} scope, got {scope.kind.value}"
            )
        context = context or AuthorizationContext()

        mask = self.resolve_mask(actor_id, scope, operation=operation)
        required = self._requirement(rule, actor_id, context)
        self._logger.debug(
            "authorize operation=%s scope=%s:%s mask=%#x required=%#x",
            operation,
            scope.kind.value,
            scope.id,
            mask,
            int(required),
        )
        check_mask(mask, required, operation=operation, scope=scope, description=rule.description)
        return mask

    def authorize_all(self, actor_id: str, requests: Iterable[AuthorizationRequest]) -> None:
        for request in requests:
            self.authorize(actor_id, request.scope, request.operation, request.context)

    def resolve_mask(self, actor_id: str, scope: Scope, *, operation: str = "resolve") -> int:
        if scope.kind is ScopeKind.GUILD:
            return self._guild_mask(actor_id, scope, operation=operation)
        channel = self._client.fetch_entity(EntityKind.CHANNEL, scope.id)
        if not channel.get("guild_id"):
            return int(DIRECT_MESSAGE_BASELINE)
        mask = int(self._client.get_capability_bitmask(actor_id, scope))
        if mask & Permission.ADMINISTRATOR:
            return int(ALL_PERMISSIONS)
        return mask

    def capability_summary(self, actor_id: str, scope: Scope) -> dict[str, bool]:
        """Return the fixed map of well-known capabilities for ``scope``."""

        mask = self.resolve_mask(actor_id, scope, operation="capability_summary")
        return {name: bool(mask & bit) for name, bit in SUMMARY_CAPABILITIES}

    def _guild_mask(self, actor_id: str, scope: Scope, *, operation: str) -> int:
        try:
            guild = self._client.fetch_entity(EntityKind.GUILD, scope.id)
            member = self._client.fetch_entity(EntityKind.MEMBER, f"{scope.id}/{actor_id}")
        except (RemoteNotFound, RemoteForbidden) as exc:
            raise PermissionDenied(
                operation=operation,
                missing_capability=GUILD_ACCESS,
                scope=scope,
                description=f"Cannot access guild {scope.id}: {exc.message}",
            ) from exc
        if str(guild.get("owner_id")) == str(actor_id):
            return int(ALL_PERMISSIONS)

        mask = 0
        role_ids = [scope.id, *(str(role_id) for role_id in member.get("roles", ()))]
        for role_id in role_ids:
            try:
                role = self._client.fetch_entity(EntityKind.ROLE, role_id)
            except RemoteNotFound:
                self._logger.warning("Skipping unknown role %s for member %s", role_id, actor_id)
                continue
            mask |= int(role.get("permissions", 0))
        if mask & Permission.ADMINISTRATOR:
            return int(ALL_PERMISSIONS)
        return mask

    def _requirement(self, rule: PermissionRule, actor_id: str, context: AuthorizationContext) -> int:
        required = int(rule.required)
        if rule.owner_required is not None and context.target_id is not None:
            target = self._client.fetch_entity(rule.target_kind, context.target_id)
            if str(target.get(rule.owner_field)) == str(actor_id):
                required = int(rule.owner_required)
        for flag in context.flags:
            extra = rule.flag_requirements.get(flag)
            if extra is not None:
                required |= int(extra)
        return required
