from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = ["Scope", "ScopeKind"]


class ScopeKind(str, Enum):
    CHANNEL = "channel"
    GUILD = "guild"


@dataclass(frozen=True, slots=True)
class Scope:
    """Boundary over which a capability mask is evaluated."""

    kind: ScopeKind
    id: str

    @classmethod
    def channel(cls, channel_id: str) -> Scope:
        return cls(ScopeKind.CHANNEL, str(channel_id))

    @classmethod
    def guild(cls, guild_id: str) -> Scope:
        return cls(ScopeKind.GUILD, str(guild_id))

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "id": self.id}
