"""Recursive parameter validation for tool arguments.

The validator walks a JSON-Schema-shaped constraint tree and reports the first
failure it meets.  Failures are ordered: required fields first, then unknown
fields, then per-field constraints in payload order, then composition
(``anyOf``/``allOf``/``oneOf``/``not``) for the enclosing object.

A validator instance belongs to a single session and is only called from the
sequential dispatch flow, so the compiled-pattern cache carries no lock.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from jsonschema import Draft202012Validator

__all__ = [
    "FailureKind",
    "ParameterValidationError",
    "SchemaValidator",
    "ValidationFailure",
]

_TYPE_CHECKER = Draft202012Validator.TYPE_CHECKER
_COMPOSITION_KEYWORDS = ("anyOf", "allOf", "oneOf", "not")


class FailureKind(str, Enum):
    MISSING_PARAMETER = "missing_parameter"
    UNKNOWN_PARAMETER = "unknown_parameter"
    TYPE_MISMATCH = "type_mismatch"
    NULL_VALUE = "null_value"
    LENGTH_CONSTRAINT = "length_constraint"
    PATTERN_MISMATCH = "pattern_mismatch"
    PATTERN_ERROR = "pattern_error"
    ENUM_CONSTRAINT = "enum_constraint"
    RANGE_CONSTRAINT = "range_constraint"
    ARRAY_CONSTRAINT = "array_constraint"
    UNIQUENESS_CONSTRAINT = "uniqueness_constraint"
    CONDITIONAL_CONSTRAINT = "conditional_constraint"


@dataclass(frozen=True, slots=True)
class ValidationFailure:
    """First constraint violation found in a payload."""

    kind: FailureKind
    message: str
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.field is not None:
            payload["field"] = self.field
        return payload


class ParameterValidationError(ValueError):
    """Raised when tool arguments do not satisfy the declared schema."""

    def __init__(self, failure: ValidationFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


class _Failed(Exception):
    def __init__(self, failure: ValidationFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


def _fail(kind: FailureKind, message: str, field: str | None = None) -> _Failed:
    return _Failed(ValidationFailure(kind=kind, message=message, field=field))


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _type_label(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, Sequence):
        return "array"
    return type(value).__name__


def _as_decimal(value: Any) -> Decimal | None:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class SchemaValidator:
    """Validate argument payloads against tool parameter schemas."""

    def __init__(self) -> None:
        self._patterns: dict[str, re.Pattern[str]] = {}

    @property
    def compiled_pattern_count(self) -> int:
        return len(self._patterns)

    def check(self, schema: Mapping[str, Any], payload: Mapping[str, Any]) -> ValidationFailure | None:
        """Return the first failure for ``payload`` or ``None`` when it is valid."""

        try:
            if not isinstance(payload, Mapping):
                raise _fail(
                    FailureKind.TYPE_MISMATCH,
                    f"Arguments must be an object, got {_type_label(payload)}",
                )
            self._check_object(schema, payload, prefix="")
        except _Failed as exc:
            return exc.failure
        return None

    def validate(self, schema: Mapping[str, Any], payload: Mapping[str, Any]) -> None:
        failure = self.check(schema, payload)
        if failure is not None:
            raise ParameterValidationError(failure)

    def _check_object(self, schema: Mapping[str, Any], payload: Mapping[str, Any], *, prefix: str) -> None:
        for name in schema.get("required", ()):
            if name not in payload:
                field = _join(prefix, name)
                raise _fail(
                    FailureKind.MISSING_PARAMETER,
                    f"Missing required parameter: {field}",
                    field,
                )

        properties = schema.get("properties")
        if isinstance(properties, Mapping):
            additional = schema.get("additionalProperties", False)
            if additional is False:
                declared = set(properties) | set(schema.get("required", ()))
                for name in payload:
                    if name not in declared:
                        field = _join(prefix, name)
                        raise _fail(
                            FailureKind.UNKNOWN_PARAMETER,
                            f"Unknown parameter: {field}",
                            field,
                        )
            for name, value in payload.items():
                child = properties.get(name)
                if isinstance(child, Mapping):
                    self._check_value(child, value, field=_join(prefix, name))

        self._check_composition(schema, payload, prefix=prefix)

    def _check_value(self, schema: Mapping[str, Any], value: Any, *, field: str) -> None:
        self._check_type(schema, value, field=field)

        if isinstance(value, str):
            self._check_string(schema, value, field=field)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            self._check_number(schema, value, field=field)
        elif isinstance(value, list):
            self._check_array(schema, value, field=field)
        elif isinstance(value, Mapping):
            self._check_object(schema, value, prefix=field)

        if "enum" in schema and not isinstance(value, str):
            self._check_enum(schema["enum"], value, field=field)

    def _check_type(self, schema: Mapping[str, Any], value: Any, *, field: str) -> None:
        declared = schema.get("type")
        if declared is None:
            return
        allowed = [declared] if isinstance(declared, str) else list(declared)
        if value is None and "null" not in allowed:
            raise _fail(
                FailureKind.NULL_VALUE,
                f"Parameter '{field}' must not be null",
                field,
            )
        if not any(_TYPE_CHECKER.is_type(value, kind) for kind in allowed):
            expected = " or ".join(allowed)
            raise _fail(
                FailureKind.TYPE_MISMATCH,
                f"Parameter '{field}' must be of type {expected}, got {_type_label(value)}",
                field,
            )

    def _check_string(self, schema: Mapping[str, Any], value: str, *, field: str) -> None:
        length = len(value)
        min_length = schema.get("minLength")
        if min_length is not None and length < min_length:
            raise _fail(
                FailureKind.LENGTH_CONSTRAINT,
                f"Parameter '{field}' must be at least {min_length} characters long",
                field,
            )
        max_length = schema.get("maxLength")
        if max_length is not None and length > max_length:
            raise _fail(
                FailureKind.LENGTH_CONSTRAINT,
                f"Parameter '{field}' must be at most {max_length} characters long",
                field,
            )

        pattern = schema.get("pattern")
        if pattern is not None:
            compiled = self._compile(pattern, field=field)
            if compiled.search(value) is None:
                raise _fail(
                    FailureKind.PATTERN_MISMATCH,
                    f"Parameter '{field}' does not match required pattern {pattern}",
                    field,
                )

        if "enum" in schema:
            self._check_enum(schema["enum"], value, field=field)

    def _compile(self, pattern: str, *, field: str) -> re.Pattern[str]:
        compiled = self._patterns.get(pattern)
        if compiled is not None:
            return compiled
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise _fail(
                FailureKind.PATTERN_ERROR,
                f"Invalid pattern for parameter '{field}': {exc}",
                field,
            ) from exc
        self._patterns[pattern] = compiled
        return compiled

    @staticmethod
    def _check_enum(options: Sequence[Any], value: Any, *, field: str) -> None:
        candidate = _canonical(value)
        if any(_canonical(option) == candidate for option in options):
            return
        allowed = ", ".join(str(option) for option in options)
        raise _fail(
            FailureKind.ENUM_CONSTRAINT,
            f"Parameter '{field}' must be one of: {allowed}",
            field,
        )

    @staticmethod
    def _check_number(schema: Mapping[str, Any], value: int | float, *, field: str) -> None:
        number = _as_decimal(value)
        if number is None or not number.is_finite():
            raise _fail(
                FailureKind.TYPE_MISMATCH,
                f"Parameter '{field}' must be a finite number",
                field,
            )
        minimum = schema.get("minimum")
        if minimum is not None and number < _as_decimal(minimum):
            raise _fail(
                FailureKind.RANGE_CONSTRAINT,
                f"Parameter '{field}' must be at least {minimum}",
                field,
            )
        maximum = schema.get("maximum")
        if maximum is not None and number > _as_decimal(maximum):
            raise _fail(
                FailureKind.RANGE_CONSTRAINT,
                f"Parameter '{field}' must be at most {maximum}",
                field,
            )

    def _check_array(self, schema: Mapping[str, Any], value: list[Any], *, field: str) -> None:
        count = len(value)
        min_items = schema.get("minItems")
        if min_items is not None and count < min_items:
            raise _fail(
                FailureKind.ARRAY_CONSTRAINT,
                f"Parameter '{field}' must contain at least {min_items} items",
                field,
            )
        max_items = schema.get("maxItems")
        if max_items is not None and count > max_items:
            raise _fail(
                FailureKind.ARRAY_CONSTRAINT,
                f"Parameter '{field}' must contain at most {max_items} items",
                field,
            )

        if schema.get("uniqueItems"):
            seen: set[str] = set()
            for item in value:
                key = _canonical(item)
                if key in seen:
                    raise _fail(
                        FailureKind.UNIQUENESS_CONSTRAINT,
                        f"Parameter '{field}' must contain unique items",
                        field,
                    )
                seen.add(key)

        items = schema.get("items")
        if isinstance(items, Mapping):
            for index, item in enumerate(value):
                self._check_value(items, item, field=f"{field}[{index}]")

    def _check_composition(self, schema: Mapping[str, Any], payload: Mapping[str, Any], *, prefix: str) -> None:
        for keyword in _COMPOSITION_KEYWORDS:
            if keyword not in schema:
                continue
            condition = {keyword: schema[keyword]}
            if _condition_holds(condition, payload):
                continue
            scope = f" for '{prefix}'" if prefix else ""
            if keyword == "not":
                message = f"Parameters must not include {_describe(schema[keyword])}{scope}"
            else:
                message = f"Parameters must include {_describe(condition)}{scope}"
            raise _fail(FailureKind.CONDITIONAL_CONSTRAINT, message)


def _condition_holds(condition: Mapping[str, Any], payload: Mapping[str, Any]) -> bool:
    """Evaluate a presence condition built from ``required``/``anyOf``/``allOf``/``oneOf``/``not``."""

    required = condition.get("required")
    if required is not None and not all(name in payload for name in required):
        return False
    any_of = condition.get("anyOf")
    if any_of is not None and not any(_condition_holds(item, payload) for item in any_of):
        return False
    all_of = condition.get("allOf")
    if all_of is not None and not all(_condition_holds(item, payload) for item in all_of):
        return False
    one_of = condition.get("oneOf")
    if one_of is not None and sum(1 for item in one_of if _condition_holds(item, payload)) != 1:
        return False
    negated = condition.get("not")
    if negated is not None and _condition_holds(negated, payload):
        return False
    return True


def _describe(condition: Mapping[str, Any]) -> str:
    parts: list[str] = []
    required = condition.get("required")
    if required:
        parts.append(" and ".join(required))
    if "anyOf" in condition:
        parts.append("at least one of (" + " | ".join(_describe(item) for item in condition["anyOf"]) + ")")
    if "allOf" in condition:
        parts.append(" and ".join(_describe(item) for item in condition["allOf"]))
    if "oneOf" in condition:
        parts.append("exactly one of (" + " | ".join(_describe(item) for item in condition["oneOf"]) + ")")
    if "not" in condition:
        parts.append("not " + _describe(condition["not"]))
    return ", ".join(parts) or "the declared parameters"
