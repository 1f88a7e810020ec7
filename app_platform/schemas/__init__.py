"""Shared schema helpers used across session services."""

from .base import (
    BaseSchema,
    SchemaValidationError,
    optional_str,
    require_str,
    string_tuple,
)

__all__ = [
    "BaseSchema",
    "SchemaValidationError",
    "optional_str",
    "require_str",
    "string_tuple",
]
