"""Parameter schemas shared by the tool modules."""

from __future__ import annotations

from typing import Any

__all__ = ["EMBED_SCHEMA", "object_schema", "snowflake"]

SNOWFLAKE_PATTERN = "^[0-9]+$"


def snowflake(description: str) -> dict[str, Any]:
    return {"type": "string", "pattern": SNOWFLAKE_PATTERN, "description": description}


def object_schema(properties: dict[str, Any], required: list[str], **extra: Any) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required, **extra}


_URL_OBJECT = {
    "type": "object",
    "properties": {"url": {"type": "string", "format": "uri"}},
    "required": ["url"],
}

EMBED_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "maxLength": 256},
        "description": {"type": "string", "maxLength": 4096},
        "color": {"type": "integer", "minimum": 0, "maximum": 16777215},
        "url": {"type": "string", "format": "uri"},
        "thumbnail": _URL_OBJECT,
        "image": _URL_OBJECT,
        "fields": {
            "type": "array",
            "maxItems": 25,
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "maxLength": 256},
                    "value": {"type": "string", "maxLength": 1024},
                    "inline": {"type": "boolean", "default": False},
                },
                "required": ["name", "value"],
            },
        },
    },
}
