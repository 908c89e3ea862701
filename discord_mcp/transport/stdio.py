"""Line-delimited JSON-RPC session over a pair of text streams."""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from discord_mcp.audit import JsonLogWriter, ToolCallLogEvent
from discord_mcp.observability import log_event
from discord_mcp.permissions.gate import PermissionDenied
from discord_mcp.protocol.envelope import (
    PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    ErrorObject,
    InitializeParams,
    InitializeResult,
    Request,
    Response,
    ServerInfo,
    ToolCallParams,
    ToolResult,
)
from discord_mcp.protocol.errors import JsonRpcError
from discord_mcp.registry import ToolDefinition, ToolRegistry
from discord_mcp.remote.client import RemoteError
from discord_mcp.tools.base import (
    ContentTooLongError,
    ToolContext,
    permission_result,
    remote_error_result,
    validation_result,
)
from discord_mcp.transport.writer import LineWriter
from discord_mcp.validation.validator import ParameterValidationError, SchemaValidator

__all__ = ["SessionState", "StdioSession"]

LOGGER = logging.getLogger(__name__)

_TRANSPORT = "stdio"
_INITIALIZED_NOTIFICATIONS = frozenset({"initialized", "notifications/initialized"})


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


class StdioSession:
    """Read requests line by line, dispatch them in order and write one response line each.

    Tool calls run to completion before the next line is read.  Responses share
    the :class:`LineWriter` (and its lock) with the notification channel.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        context: ToolContext,
        writer: LineWriter,
        *,
        validator: SchemaValidator | None = None,
        server_name: str = "discord-mcp",
        server_version: str = "1.0.0",
        audit_log: JsonLogWriter | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if not registry.frozen:
            raise ValueError("tool registry must be frozen before the session starts")
        self._registry = registry
        self._context = context
        self._writer = writer
        self._validator = validator or SchemaValidator()
        self._server_info = ServerInfo(name=server_name, version=server_version)
        self._audit_log = audit_log
        self._logger = logger or LOGGER
        self._clock = clock
        self._state = SessionState.UNINITIALIZED
        self._initialize_seen = False
        self._handlers: dict[str, Callable[[Mapping[str, Any], str, Any], dict[str, Any]]] = {
            "initialize": self._initialize,
            "initialized": self._initialized_request,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "ping": self._ping,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def validator(self) -> SchemaValidator:
        return self._validator

    def close(self) -> None:
        if self._state is not SessionState.CLOSED:
            self._logger.info("Session closed")
        self._state = SessionState.CLOSED

    # Serving --------------------------------------------------------------------------

    def serve_forever(self, stream: Iterable[str] | None = None) -> None:
        """Consume lines from ``stream`` (stdin by default) until EOF or a write failure.

        Text streams backed by a byte buffer are decoded here, one line at a time,
        so undecodable bytes become a parse error for that line only.
        """

        source = stream if stream is not None else sys.stdin
        try:
            for raw_line in _decoded_lines(source):
                if self._state is SessionState.CLOSED:
                    break
                response = self.process_line(raw_line)
                if response is None:
                    continue
                try:
                    self._writer.write(response)
                except OSError as exc:
                    self._logger.error("Stopping session after output failure: %s", exc)
                    break
        finally:
            self.close()

    def process_line(self, raw_line: str) -> dict[str, Any] | None:
        """Return the response for one input line, or ``None`` when no response is due."""

        raw_line = raw_line.strip()
        if not raw_line:
            return None
        self._logger.debug("Received: %s", raw_line)
        try:
            message = json.loads(raw_line)
        except json.JSONDecodeError as exc:
            error = JsonRpcError("PARSE_ERROR", data={"detail": str(exc)})
            return self._error_response(None, error)
        return self.handle_message(message)

    def handle_message(self, message: Any) -> dict[str, Any] | None:
        if not isinstance(message, Mapping):
            return self._error_response(None, JsonRpcError.invalid_request("Request must be a JSON object"))
        raw_id = message.get("id")
        request_id = raw_id if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) else None
        try:
            request = Request.model_validate(message)
        except ValidationError as exc:
            if "id" not in message:
                self._logger.warning("Dropping malformed notification: %s", exc.errors(include_url=False))
                return None
            return self._error_response(request_id, JsonRpcError.invalid_request(_first_error(exc)))

        if request.is_notification:
            self._handle_notification(request)
            return None

        trace_id = uuid4().hex
        started = self._clock()
        params = request.params or {}
        handler = self._handlers.get(request.method)
        try:
            if handler is None:
                raise JsonRpcError.method_not_found(f"Method not found: {request.method}")
            result = handler(params, trace_id, request.id)
        except JsonRpcError as exc:
            response = self._error_response(request.id, exc)
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("Unhandled error while dispatching %s", request.method)
            response = self._error_response(request.id, JsonRpcError.internal_error(str(exc)))
        else:
            response = Response.success(request.id, result).to_dict()
        log_event(
            trace_id=trace_id,
            transport=_TRANSPORT,
            method=request.method,
            request_id=request.id,
            duration_ms=round((self._clock() - started) * 1000.0, 3),
            error_code=response.get("error", {}).get("code"),
            tool=params.get("name") if request.method == "tools/call" else None,
        )
        return response

    # Notifications --------------------------------------------------------------------

    def _handle_notification(self, request: Request) -> None:
        if request.method in _INITIALIZED_NOTIFICATIONS:
            self._mark_initialized()
            return
        self._logger.debug("Ignoring notification %s", request.method)

    def _mark_initialized(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        if not self._initialize_seen:
            self._logger.warning("Received initialized notification before initialize request")
        if self._state is SessionState.UNINITIALIZED:
            self._logger.info("Client initialized successfully")
        self._state = SessionState.INITIALIZED

    # Method handlers ------------------------------------------------------------------

    def _initialize(self, params: Mapping[str, Any], trace_id: str, request_id: Any) -> dict[str, Any]:
        try:
            parsed = InitializeParams.model_validate(params)
        except ValidationError as exc:
            raise JsonRpcError.invalid_params(f"Invalid parameters: {_first_error(exc)}") from exc
        version = parsed.protocol_version
        if version not in SUPPORTED_PROTOCOL_VERSIONS:
            self._logger.info("Client requested protocol %s; answering with %s", version, PROTOCOL_VERSION)
            version = PROTOCOL_VERSION
        client_info = parsed.client_info or {}
        self._logger.info(
            "Client initializing name=%s version=%s protocol=%s",
            client_info.get("name"),
            client_info.get("version"),
            version,
        )
        self._initialize_seen = True
        return InitializeResult(
            protocolVersion=version,
            capabilities={"tools": {"listChanged": False}},
            serverInfo=self._server_info,
        ).to_dict()

    def _initialized_request(self, params: Mapping[str, Any], trace_id: str, request_id: Any) -> dict[str, Any]:
        self._mark_initialized()
        return {}

    def _require_initialized(self) -> None:
        if self._state is not SessionState.INITIALIZED:
            raise JsonRpcError.invalid_request("Server not initialized")

    def _tools_list(self, params: Mapping[str, Any], trace_id: str, request_id: Any) -> dict[str, Any]:
        self._require_initialized()
        return {"tools": self._registry.descriptors()}

    def _ping(self, params: Mapping[str, Any], trace_id: str, request_id: Any) -> dict[str, Any]:
        return {"status": "pong"}

    def _tools_call(self, params: Mapping[str, Any], trace_id: str, request_id: Any) -> dict[str, Any]:
        self._require_initialized()
        try:
            call = ToolCallParams.model_validate(params)
        except ValidationError as exc:
            raise JsonRpcError.invalid_params(f"Invalid parameters: {_first_error(exc)}") from exc
        if call.name not in self._registry:
            raise JsonRpcError.method_not_found(f"Tool not found: {call.name}")
        definition = self._registry.get(call.name)

        started = self._clock()
        result: ToolResult | None = None
        error: dict[str, Any] | None = None
        try:
            result = self._invoke(definition, call.arguments)
        except ContentTooLongError as exc:
            error = {"code": "CONTENT_TOO_LONG", **exc.to_dict()}
            raise JsonRpcError("CONTENT_TOO_LONG", str(exc), data=exc.to_dict()) from exc
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("Tool %s failed", call.name)
            error = {"code": "INTERNAL_ERROR", "message": str(exc)}
            raise JsonRpcError.internal_error(f"Tool execution failed: {exc}") from exc
        finally:
            self._audit(
                trace_id=trace_id,
                request_id=request_id,
                tool=call.name,
                arguments=call.arguments,
                started=started,
                result=result,
                error=error,
            )
        return result.to_dict()

    def _invoke(self, definition: ToolDefinition, arguments: Mapping[str, Any]) -> ToolResult:
        """Validate, authorize and execute one tool call."""

        try:
            self._validator.validate(definition.input_schema, arguments)
        except ParameterValidationError as exc:
            self._logger.info("Validation failed for %s: %s", definition.name, exc.failure.message)
            return validation_result(exc.failure)

        try:
            self._context.gate.authorize_all(self._context.actor_id, definition.authorizations(arguments))
            return definition.handler(self._context, arguments)
        except ParameterValidationError as exc:
            return validation_result(exc.failure)
        except PermissionDenied as exc:
            self._logger.info("Permission denied for %s: %s", definition.name, exc.description)
            return permission_result(exc)
        except RemoteError as exc:
            self._logger.error("Remote call failed for %s: %s", definition.name, exc.message)
            return remote_error_result(f"Failed to execute {definition.name}", exc)

    def _audit(
        self,
        *,
        trace_id: str,
        request_id: Any,
        tool: str,
        arguments: Mapping[str, Any],
        started: float,
        result: ToolResult | None,
        error: Mapping[str, Any] | None,
    ) -> None:
        if self._audit_log is None:
            return
        if result is None:
            status = "error"
            output_bytes = 0
        else:
            status = "tool_error" if result.is_error else "ok"
            output_bytes = len(json.dumps(result.to_dict(), separators=(",", ":")).encode("utf-8"))
        self._audit_log.write(
            ToolCallLogEvent(
                ts=datetime.now(UTC),
                trace_id=trace_id,
                request_id=request_id,
                tool=tool,
                status=status,
                duration_ms=(self._clock() - started) * 1000.0,
                input_bytes=len(json.dumps(dict(arguments), separators=(",", ":"), default=str).encode("utf-8")),
                output_bytes=output_bytes,
                error=error,
            )
        )

    @staticmethod
    def _error_response(request_id: Any, error: JsonRpcError) -> dict[str, Any]:
        return Response.failure(request_id, ErrorObject(**error.to_payload())).to_dict()


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors(include_url=False)
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "params"
    return f"{location}: {first.get('msg', 'invalid value')}"


def _decoded_lines(source: Iterable[str]) -> Iterator[str]:
    binary = getattr(source, "buffer", None)
    if binary is None:
        yield from source
        return
    for raw in binary:
        yield raw.decode("utf-8", errors="replace")
