"""Capability masks and the permission gate."""

from discord_mcp.permissions.bits import DIRECT_MESSAGE_BASELINE, Permission
from discord_mcp.permissions.gate import (
    AuthorizationContext,
    AuthorizationRequest,
    PermissionDenied,
    PermissionGate,
    PermissionRule,
)
from discord_mcp.permissions.scope import Scope, ScopeKind

__all__ = [
    "DIRECT_MESSAGE_BASELINE",
    "AuthorizationContext",
    "AuthorizationRequest",
    "Permission",
    "PermissionDenied",
    "PermissionGate",
    "PermissionRule",
    "Scope",
    "ScopeKind",
]
