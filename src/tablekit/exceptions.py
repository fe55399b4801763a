"""
Table exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``TableError`` and provide ``to_dict()`` for
API-friendly error responses.  Configuration errors are raised for mistakes in
a resource *declaration* and are never triggered by user input.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class TableError(Exception):
    """Root exception for the tablekit package."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class ConfigurationError(TableError):
    """A field, filter or provider declaration is invalid."""


class UnknownAssociationError(ConfigurationError):
    """
    A declaration references an association the root model does not have.

    Example error message::

        Unknown association 'categry' on 'Product'.
        Did you mean: category?
    """

    def __init__(
        self,
        name: str,
        model_name: str,
        available: list[str],
    ) -> None:
        self.name = name
        self.model_name = model_name
        self.available = available
        self.suggestions = get_close_matches(name, available, n=3, cutoff=0.6)

        message = f"Unknown association '{name}' on '{model_name}'."
        if self.suggestions:
            message += f"\nDid you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNKNOWN_ASSOCIATION",
            "association": self.name,
            "model": self.model_name,
            "suggestions": self.suggestions,
            "available": sorted(self.available),
        }


class UnknownFieldError(ConfigurationError):
    """A declaration references a column its binding does not have."""

    def __init__(
        self,
        field: str,
        model_name: str,
        available: list[str],
    ) -> None:
        self.field = field
        self.model_name = model_name
        self.available = available
        self.suggestions = get_close_matches(field, available, n=3, cutoff=0.6)

        lines = [f"Invalid field '{field}' on '{model_name}'."]
        if self.suggestions:
            lines.append(f"Did you mean: {', '.join(self.suggestions)}?")
        preview = ", ".join(sorted(available)[:15])
        if len(available) > 15:
            preview += ", ..."
        lines.append(f"Available fields: {preview}")
        super().__init__("\n".join(lines))

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNKNOWN_FIELD",
            "field": self.field,
            "model": self.model_name,
            "suggestions": self.suggestions,
            "available": sorted(self.available),
        }


class DuplicateKeyError(ConfigurationError):
    """Two fields or two filters were declared under the same key."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"Duplicate {kind} key: {key!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "DUPLICATE_KEY",
            "kind": self.kind,
            "key": self.key,
        }


class FilterDecodeError(TableError):
    """Raised by strict decoding when a filter payload cannot be interpreted."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        self.message = message
        super().__init__(f"Cannot decode filter {key!r}: {message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FILTER_DECODE_ERROR",
            "key": self.key,
            "message": self.message,
        }
