from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from discord_mcp.protocol.envelope import ToolDescriptor
from discord_mcp.validation.schemas import SchemaCatalog, SchemaDefinitionError

if TYPE_CHECKING:
    from discord_mcp.permissions.gate import AuthorizationRequest
    from discord_mcp.protocol.envelope import ToolResult
    from discord_mcp.tools.base import ToolContext

__all__ = ["ToolDefinition", "ToolRegistrationError", "ToolRegistry"]

_TOOL_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

ToolHandler = Callable[["ToolContext", Mapping[str, Any]], "ToolResult"]
AuthorizationBuilder = Callable[[Mapping[str, Any]], Sequence["AuthorizationRequest"]]


class ToolRegistrationError(ValueError):
    """Raised when a tool definition cannot be added to the registry."""


def _no_authorization(arguments: Mapping[str, Any]) -> Sequence[AuthorizationRequest]:
    return ()


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Named, schema-described operation invocable through ``tools/call``."""

    name: str
    description: str
    input_schema: Mapping[str, Any]
    handler: ToolHandler
    authorizations: AuthorizationBuilder = _no_authorization

    def descriptor(self) -> dict[str, Any]:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            inputSchema=dict(self.input_schema),
        ).to_dict()


class ToolRegistry:
    """Name-keyed tool definitions; write-once during startup, read-only after :meth:`freeze`."""

    def __init__(self, *, catalog: SchemaCatalog | None = None) -> None:
        self._catalog = catalog or SchemaCatalog()
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, definition: ToolDefinition) -> ToolDefinition:
        if self._frozen:
            raise ToolRegistrationError(f"registry is frozen; cannot register '{definition.name}'")
        name = definition.name
        if not isinstance(name, str) or not _TOOL_NAME_PATTERN.match(name):
            raise ToolRegistrationError(f"invalid tool name {name!r}")
        if name in self._tools:
            raise ToolRegistrationError(f"tool '{name}' already registered")
        try:
            schema = self._catalog.register(name, definition.input_schema)
        except SchemaDefinitionError as exc:
            raise ToolRegistrationError(str(exc)) from exc
        stored = ToolDefinition(
            name=name,
            description=definition.description,
            input_schema=schema,
            handler=definition.handler,
            authorizations=definition.authorizations,
        )
        self._tools[name] = stored
        return stored

    def freeze(self) -> ToolRegistry:
        self._frozen = True
        return self

    def get(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError as exc:
            raise LookupError(f"tool '{name}' is not registered") from exc

    def names(self) -> tuple[str, ...]:
        return tuple(self._tools)

    def descriptors(self) -> list[dict[str, Any]]:
        return [definition.descriptor() for definition in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
