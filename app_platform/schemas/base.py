"""Shared base utilities for request/response schemas."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, Optional, Tuple


class SchemaValidationError(ValueError):
    """Raised when a payload fails schema validation."""

    def __init__(self, message: str, *, errors: Optional[Iterable[str]] = None) -> None:
        detail = "; ".join(errors or [])
        super().__init__(f"{message}: {detail}" if detail else message)
        self.errors = tuple(errors or ())


class BaseSchema:
    """Dataclass base providing convenience helpers."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert the schema to a dictionary."""

        return asdict(self)


def require_str(value: Any, field: str) -> str:
    """Require a non-blank string field and return it trimmed."""

    if value is None or (isinstance(value, str) and not value.strip()):
        raise SchemaValidationError(f"Missing required field '{field}'")

    if not isinstance(value, str):
        raise SchemaValidationError(f"Field '{field}' must be a string")

    return value.strip()


def optional_str(value: Any, field: str = "value") -> Optional[str]:
    """Convert a value to a trimmed string if it is not None."""

    if value is None:
        return None

    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None

    raise SchemaValidationError(f"Field '{field}' must be a string")


def string_tuple(value: Any, field: str) -> Tuple[str, ...]:
    """Ensure a value is a list of strings, returned as a tuple."""

    if value is None:
        return ()

    if not isinstance(value, (list, tuple)):
        raise SchemaValidationError(f"Field '{field}' must be a list of strings")

    items: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise SchemaValidationError(f"Field '{field}' must contain non-empty strings")
        items.append(item.strip())

    return tuple(items)


__all__ = [
    "BaseSchema",
    "SchemaValidationError",
    "optional_str",
    "require_str",
    "string_tuple",
]
