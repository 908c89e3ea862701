from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "JSONRPC_VERSION",
    "PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "ErrorObject",
    "InitializeParams",
    "InitializeResult",
    "Notification",
    "Request",
    "Response",
    "ServerInfo",
    "ToolCallParams",
    "ToolContent",
    "ToolDescriptor",
    "ToolResult",
]

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS: tuple[str, ...] = ("2024-11-05", "2025-03-26", "2025-06-18")

RequestId = str | int


class Request(BaseModel):
    """Inbound envelope; a message without an ``id`` member is a notification.

    An explicit ``"id": null`` still names a request and is answered with a null id.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    jsonrpc: str = JSONRPC_VERSION
    id: RequestId | None = None
    method: str
    params: dict[str, Any] | None = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


class ErrorObject(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    code: int
    message: str
    data: dict[str, Any] | None = None


class Response(BaseModel):
    """Outbound reply carrying exactly one of ``result`` or ``error``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    jsonrpc: str = JSONRPC_VERSION
    id: RequestId | None
    result: dict[str, Any] | None = None
    error: ErrorObject | None = None

    @classmethod
    def success(cls, request_id: RequestId | None, result: dict[str, Any]) -> Response:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: RequestId | None, error: ErrorObject) -> Response:
        return cls(id=request_id, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result if self.result is not None else {}
        return payload


class Notification(BaseModel):
    """Server-initiated push message; never carries an ``id``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class InitializeParams(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    protocol_version: str = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: dict[str, Any] | None = Field(default=None, alias="clientInfo")


class ServerInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    version: str


class InitializeResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    protocol_version: str = Field(..., alias="protocolVersion")
    capabilities: dict[str, Any]
    server_info: ServerInfo = Field(..., alias="serverInfo")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ToolCallParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolDescriptor(BaseModel):
    """Entry returned by ``tools/list``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str
    description: str
    input_schema: dict[str, Any] = Field(..., alias="inputSchema")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ToolContent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = "text"
    text: str
    data: dict[str, Any] | None = None


class ToolResult(BaseModel):
    """Result of ``tools/call``; ``isError`` is omitted for successful calls."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    content: list[ToolContent]
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def text(cls, text: str, *, data: dict[str, Any] | None = None) -> ToolResult:
        return cls(content=[ToolContent(text=text, data=data)])

    @classmethod
    def error(cls, text: str, *, data: dict[str, Any] | None = None) -> ToolResult:
        return cls(content=[ToolContent(text=text, data=data)], isError=True)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "content": [item.model_dump(exclude_none=True) for item in self.content],
        }
        if self.is_error:
            payload["isError"] = True
        return payload
