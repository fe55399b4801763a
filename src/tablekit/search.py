"""Text search across every searchable field."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, cast, or_
from sqlalchemy.types import NullType

from .fields import searchable_fields
from .operators import DEFAULT_REGISTRY, SQLAlchemyOperatorRegistry, TableOperator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement

    from .expressions import Bindings
    from .fields import FieldDescriptor


class SearchMode(str, Enum):
    """How search terms are matched against column values."""

    # Native ILIKE; SQLAlchemy renders lower() LIKE lower() elsewhere.
    ILIKE = "ilike"
    # Case-sensitive LIKE.
    LIKE = "like"
    # lower(column) LIKE lower(term), spelled out explicitly.
    LIKE_LOWER = "like_lower"
    # Pick from the dialect at composition time.
    AUTO = "auto"


_MODE_OPERATORS = {
    SearchMode.ILIKE: TableOperator.ICONTAINS,
    SearchMode.LIKE: TableOperator.CONTAINS,
    SearchMode.LIKE_LOWER: TableOperator.LOWER_CONTAINS,
}


def resolve_search_mode(
    mode: SearchMode | str | None, dialect_name: str | None = None
) -> SearchMode:
    """Normalise ``mode`` and resolve ``AUTO`` against the dialect name."""
    resolved = SearchMode(mode) if mode else SearchMode.ILIKE
    if resolved is not SearchMode.AUTO:
        return resolved
    if dialect_name == "postgresql":
        return SearchMode.ILIKE
    return SearchMode.LIKE_LOWER


def searchable_expression(expr: Any) -> Any:
    """Cast non-text columns to a string so substring matching applies."""
    if isinstance(getattr(expr, "type", None), (String, NullType)):
        return expr
    return cast(expr, String)


def normalize_search_term(term: Any) -> str:
    if term is None:
        return ""
    return str(term).strip()


def build_search_condition(
    term: Any,
    fields: Iterable[FieldDescriptor],
    bindings: Bindings,
    *,
    mode: SearchMode | str | None = SearchMode.ILIKE,
    dialect_name: str | None = None,
    registry: SQLAlchemyOperatorRegistry | None = None,
) -> ColumnElement[bool] | None:
    """
    OR a substring match of ``term`` across all searchable fields.

    Returns ``None`` for an empty term or when nothing is searchable, so the
    caller can skip the clause entirely.
    """
    text = normalize_search_term(term)
    if not text:
        return None
    reg = registry or DEFAULT_REGISTRY
    op = _MODE_OPERATORS[resolve_search_mode(mode, dialect_name)]
    conditions = [
        reg.apply(op, searchable_expression(descriptor.expression(bindings)), text)
        for descriptor in searchable_fields(fields)
    ]
    if not conditions:
        return None
    return or_(*conditions)
