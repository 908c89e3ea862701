"""Parameter validation for tool arguments."""

from discord_mcp.validation.schemas import SchemaCatalog, SchemaDefinitionError
from discord_mcp.validation.validator import (
    FailureKind,
    ParameterValidationError,
    SchemaValidator,
    ValidationFailure,
)

__all__ = [
    "FailureKind",
    "ParameterValidationError",
    "SchemaCatalog",
    "SchemaDefinitionError",
    "SchemaValidator",
    "ValidationFailure",
]
