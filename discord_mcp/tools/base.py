from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from discord_mcp.permissions.gate import PermissionDenied, PermissionGate
from discord_mcp.protocol.envelope import ToolResult
from discord_mcp.remote.client import RemoteClient, RemoteError
from discord_mcp.validation.validator import ValidationFailure

__all__ = [
    "ContentTooLongError",
    "ToolContext",
    "channel_url",
    "ensure_content_length",
    "permission_result",
    "remote_error_result",
    "success",
    "validation_result",
]

LOGGER = logging.getLogger(__name__)


class ContentTooLongError(ValueError):
    """Raised when message content exceeds the configured maximum length."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"message exceeds maximum length of {limit} characters")
        self.length = length
        self.limit = limit

    def to_dict(self) -> dict[str, Any]:
        return {"length": self.length, "max_length": self.limit}


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Collaborators available to every tool handler."""

    client: RemoteClient
    gate: PermissionGate
    max_message_length: int = 2000
    logger: logging.Logger = LOGGER

    @property
    def actor_id(self) -> str:
        return self.client.actor_id


def ensure_content_length(content: str | None, limit: int) -> None:
    if content is not None and len(content) > limit:
        raise ContentTooLongError(len(content), limit)


def channel_url(guild_id: str | None, channel_id: str, message_id: str | None = None) -> str:
    url = f"https://discord.com/channels/{guild_id or '@me'}/{channel_id}"
    return f"{url}/{message_id}" if message_id else url


def success(text: str, data: Mapping[str, Any] | None = None) -> ToolResult:
    return ToolResult.text(text, data=dict(data) if data is not None else None)


def validation_result(failure: ValidationFailure) -> ToolResult:
    data = {"error_type": "validation", **failure.to_dict()}
    return ToolResult.error(f"Validation Error: {failure.message}", data=data)


def permission_result(denied: PermissionDenied) -> ToolResult:
    return ToolResult.error(f"Permission Error: {denied.description}", data=denied.to_dict())


def remote_error_result(action: str, error: RemoteError) -> ToolResult:
    data = error.to_dict()
    data["message"] = action
    data["details"] = {"reason": error.message, **data["details"]}
    return ToolResult.error(f"{action}: {error.message}", data=data)
