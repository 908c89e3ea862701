from __future__ import annotations

import pytest

from discord_mcp.protocol import ErrorCode, JsonRpcError, Notification, Request, Response, ToolResult
from discord_mcp.protocol.envelope import ErrorObject


@pytest.mark.parametrize(
    ("name", "code"),
    [
        ("PARSE_ERROR", -32700),
        ("INVALID_REQUEST", -32600),
        ("METHOD_NOT_FOUND", -32601),
        ("INVALID_PARAMS", -32602),
        ("INTERNAL_ERROR", -32603),
        ("CONTENT_TOO_LONG", -32000),
    ],
)
def test_error_codes(name: str, code: int) -> None:
    assert ErrorCode.code_for(name) == code
    assert JsonRpcError(name).to_payload() == {"code": code, "message": ErrorCode.default_message(name)}


def test_unknown_error_name() -> None:
    with pytest.raises(KeyError):
        JsonRpcError("TEAPOT")


def test_request_without_id_is_notification() -> None:
    assert Request.model_validate({"jsonrpc": "2.0", "method": "initialized"}).is_notification
    assert not Request.model_validate({"jsonrpc": "2.0", "id": 0, "method": "ping"}).is_notification
    assert not Request.model_validate({"jsonrpc": "2.0", "id": None, "method": "ping"}).is_notification


def test_response_carries_exactly_one_of_result_or_error() -> None:
    success = Response.success(1, {"ok": True}).to_dict()
    failure = Response.failure("x", ErrorObject(code=-32601, message="Method not found")).to_dict()

    assert success == {"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}
    assert failure == {"jsonrpc": "2.0", "id": "x", "error": {"code": -32601, "message": "Method not found"}}


def test_notification_omits_missing_params() -> None:
    assert Notification(method="discord/messageCreated").to_dict() == {
        "jsonrpc": "2.0",
        "method": "discord/messageCreated",
    }


def test_tool_result_flags_errors_only() -> None:
    assert ToolResult.text("fine").to_dict() == {"content": [{"type": "text", "text": "fine"}]}
    assert ToolResult.error("bad", data={"a": 1}).to_dict() == {
        "content": [{"type": "text", "text": "bad", "data": {"a": 1}}],
        "isError": True,
    }
