from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from discord_mcp.permissions.scope import Scope

__all__ = [
    "EntityKind",
    "NotConnected",
    "RateLimited",
    "RemoteClient",
    "RemoteError",
    "RemoteForbidden",
    "RemoteNotFound",
]


class EntityKind:
    GUILD = "guild"
    CHANNEL = "channel"
    MESSAGE = "message"
    ROLE = "role"
    MEMBER = "member"
    USER = "user"


class RemoteError(RuntimeError):
    """Base class for failures reported by the remote chat service."""

    error_type = "discord_api"
    code = "REMOTE_ERROR"

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        details = {"code": self.code, **self.details}
        return {"error_type": self.error_type, "message": self.message, "details": details}


class NotConnected(RemoteError):
    code = "NOT_CONNECTED"


class RateLimited(RemoteError):
    code = "RATE_LIMITED"

    def __init__(self, message: str, *, retry_after: float, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message, details={"retry_after": round(retry_after, 3), **dict(details or {})})
        self.retry_after = retry_after


class RemoteNotFound(RemoteError):
    code = "NOT_FOUND"


class RemoteForbidden(RemoteError):
    code = "FORBIDDEN"


@runtime_checkable
class RemoteClient(Protocol):
    """Operations the tool pipeline needs from the remote chat service."""

    def fetch_entity(self, kind: str, entity_id: str) -> dict[str, Any]:
        """Return the entity or raise :class:`RemoteNotFound`."""

    def mutate_entity(
        self,
        kind: str,
        entity_id: str,
        operation: str,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Apply ``operation`` and return the updated entity."""

    def list_entities(
        self,
        kind: str,
        parent_id: str,
        query: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return the child entities of ``parent_id``."""

    def get_capability_bitmask(self, actor_id: str, scope: Scope) -> int:
        """Return the actor's effective capability mask within ``scope``."""

    @property
    def actor_id(self) -> str:
        """Identity the server acts as."""
