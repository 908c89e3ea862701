from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

__all__ = ["ErrorCode", "JsonRpcError"]


@dataclass(frozen=True)
class _ErrorSpec:
    name: str
    description: str
    jsonrpc_code: int
    message: str


class ErrorCode:
    """JSON-RPC error codes surfaced by the stdio transport."""

    _SPECS: tuple[_ErrorSpec, ...] = (
        _ErrorSpec("PARSE_ERROR", "Input line is not valid JSON", -32700, "Parse error"),
        _ErrorSpec(
            "INVALID_REQUEST",
            "Envelope is malformed or not allowed in the current session state",
            -32600,
            "Invalid Request",
        ),
        _ErrorSpec("METHOD_NOT_FOUND", "Method or tool is not registered", -32601, "Method not found"),
        _ErrorSpec("INVALID_PARAMS", "Method parameters are malformed", -32602, "Invalid params"),
        _ErrorSpec("INTERNAL_ERROR", "Unexpected server-side failure", -32603, "Internal error"),
        _ErrorSpec(
            "CONTENT_TOO_LONG",
            "Message content exceeds the configured maximum length",
            -32000,
            "Content exceeds maximum length",
        ),
    )

    _BY_NAME: dict[str, _ErrorSpec] = {spec.name: spec for spec in _SPECS}

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    CONTENT_TOO_LONG = -32000

    @classmethod
    def names(cls) -> Sequence[str]:
        return tuple(spec.name for spec in cls._SPECS)

    @classmethod
    def code_for(cls, name: str) -> int:
        if name not in cls._BY_NAME:
            raise KeyError(f"{name} does not have a JSON-RPC code")
        return cls._BY_NAME[name].jsonrpc_code

    @classmethod
    def default_message(cls, name: str) -> str:
        if name not in cls._BY_NAME:
            raise KeyError(f"{name} does not have a JSON-RPC message")
        return cls._BY_NAME[name].message


class JsonRpcError(Exception):
    """Protocol-level failure rendered as a JSON-RPC ``error`` object."""

    def __init__(self, name: str, message: str | None = None, *, data: Mapping[str, Any] | None = None) -> None:
        self.name = name
        self.code = ErrorCode.code_for(name)
        self.message = message or ErrorCode.default_message(name)
        self.data = dict(data) if data is not None else None
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = dict(self.data)
        return payload

    @classmethod
    def parse_error(cls, message: str | None = None) -> JsonRpcError:
        return cls("PARSE_ERROR", message)

    @classmethod
    def invalid_request(cls, message: str | None = None) -> JsonRpcError:
        return cls("INVALID_REQUEST", message)

    @classmethod
    def method_not_found(cls, message: str | None = None) -> JsonRpcError:
        return cls("METHOD_NOT_FOUND", message)

    @classmethod
    def invalid_params(cls, message: str | None = None) -> JsonRpcError:
        return cls("INVALID_PARAMS", message)

    @classmethod
    def internal_error(cls, message: str | None = None) -> JsonRpcError:
        return cls("INTERNAL_ERROR", message)
