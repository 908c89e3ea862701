"""Property checks for the parameter validator."""

from __future__ import annotations

from typing import Any

import pytest

from discord_mcp.validation import FailureKind, SchemaValidator

hypothesis = pytest.importorskip("hypothesis")
given = hypothesis.given
st = hypothesis.strategies

_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "channel_id": {"type": "string", "pattern": "^[0-9]+$"},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100},
        "tags": {"type": "array", "maxItems": 5, "items": {"type": "string", "maxLength": 8}},
    },
    "required": ["channel_id"],
}

_VALIDATOR = SchemaValidator()


@given(st.text(alphabet="0123456789", min_size=1, max_size=20), st.integers(min_value=1, max_value=100))
def test_conforming_payloads_pass(channel_id: str, limit: int) -> None:
    assert _VALIDATOR.check(_SCHEMA, {"channel_id": channel_id, "limit": limit}) is None


@given(st.integers().filter(lambda value: value < 1 or value > 100))
def test_out_of_range_limits_fail(limit: int) -> None:
    failure = _VALIDATOR.check(_SCHEMA, {"channel_id": "1", "limit": limit})

    assert failure is not None
    assert failure.kind is FailureKind.RANGE_CONSTRAINT


@given(st.dictionaries(st.sampled_from(["channel_id", "limit", "tags", "other"]), st.none() | st.integers() | st.text()))
def test_check_is_deterministic_and_pattern_cache_is_bounded(payload: dict[str, Any]) -> None:
    first = _VALIDATOR.check(_SCHEMA, payload)
    second = _VALIDATOR.check(_SCHEMA, payload)

    assert first == second
    assert _VALIDATOR.compiled_pattern_count <= 1


@given(st.lists(st.text(max_size=8), max_size=5))
def test_tag_lists_within_bounds_pass(tags: list[str]) -> None:
    assert _VALIDATOR.check(_SCHEMA, {"channel_id": "7", "tags": tags}) is None
