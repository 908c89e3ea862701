"""Remote chat service client contract and the state-backed implementation."""

from discord_mcp.remote.client import (
    EntityKind,
    NotConnected,
    RateLimited,
    RemoteClient,
    RemoteError,
    RemoteForbidden,
    RemoteNotFound,
)

__all__ = [
    "EntityKind",
    "NotConnected",
    "RateLimited",
    "RemoteClient",
    "RemoteError",
    "RemoteForbidden",
    "RemoteNotFound",
]
