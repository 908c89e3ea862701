"""Wire envelopes and JSON-RPC error codes."""

from discord_mcp.protocol.envelope import (
    JSONRPC_VERSION,
    PROTOCOL_VERSION,
    Notification,
    Request,
    Response,
    ToolResult,
)
from discord_mcp.protocol.errors import ErrorCode, JsonRpcError

__all__ = [
    "JSONRPC_VERSION",
    "PROTOCOL_VERSION",
    "ErrorCode",
    "JsonRpcError",
    "Notification",
    "Request",
    "Response",
    "ToolResult",
]
