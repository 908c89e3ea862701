from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from jsonschema import SchemaError, validators

__all__ = ["SchemaCatalog", "SchemaDefinitionError", "fingerprint_schema"]


class SchemaDefinitionError(ValueError):
    """Raised when a tool parameter schema is not a valid JSON Schema document."""


def fingerprint_schema(schema: Mapping[str, Any]) -> str:
    payload = json.dumps(schema, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SchemaCatalog:
    """Check tool parameter schemas once and keep read-only copies keyed by tool name."""

    def __init__(self) -> None:
        self._checked: set[str] = set()
        self._schemas: dict[str, Mapping[str, Any]] = {}

    def register(self, name: str, schema: Mapping[str, Any]) -> Mapping[str, Any]:
        if schema.get("type", "object") != "object":
            raise SchemaDefinitionError(f"Schema for tool '{name}' must describe an object")
        fingerprint = fingerprint_schema(schema)
        if fingerprint not in self._checked:
            validator_cls = validators.validator_for(schema)
            try:
                validator_cls.check_schema(schema)
            except SchemaError as exc:
                raise SchemaDefinitionError(f"Invalid schema for tool '{name}': {exc.message}") from exc
            self._checked.add(fingerprint)
        frozen = MappingProxyType(json.loads(json.dumps(schema)))
        self._schemas[name] = frozen
        return frozen

    def get(self, name: str) -> Mapping[str, Any]:
        if name not in self._schemas:
            raise KeyError(f"Unknown tool schema: {name}")
        return self._schemas[name]

    @property
    def checked_count(self) -> int:
        return len(self._checked)
