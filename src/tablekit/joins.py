"""
Join resolution.

Every association referenced by a field or an active filter is joined exactly
once, as a LEFT OUTER JOIN through a named alias, so rows whose optional
relation is absent stay in the result set with ``NULL`` association columns.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import Alias, Join, inspect
from sqlalchemy.orm import aliased

from .exceptions import UnknownAssociationError
from .expressions import Bindings, expression_associations

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sqlalchemy import Select

    from .fields import FieldDescriptor

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=None)
def association_alias(model: type[Any], name: str) -> Any:
    """
    Return the canonical alias used to join ``model.<name>``.

    The alias is named after the association and cached per ``(model, name)``
    so custom queries that pre-join with it are recognised as already joined.

    Raises:
        UnknownAssociationError: If ``name`` is not a relationship of ``model``.
    """
    relationships = inspect(model).relationships
    if name not in relationships:
        raise UnknownAssociationError(name, model.__name__, list(relationships.keys()))
    return aliased(relationships[name].mapper.class_, name=name)


def required_associations(
    fields: Iterable[FieldDescriptor],
    filters: Mapping[str, Any] | None = None,
) -> tuple[str, ...]:
    """
    Distinct association names in first-seen order (fields, then filters).

    Associations referenced inside computed fields and boolean filter
    conditions count as well.
    """
    names: list[str] = []

    def add(*found: str | None) -> None:
        for name in found:
            if name and name not in names:
                names.append(name)

    for descriptor in fields:
        add(descriptor.association, *expression_associations(descriptor.computed))
    for flt in (filters or {}).values():
        ref = getattr(flt, "ref", None)
        add(ref.assoc if ref is not None else None)
        add(*expression_associations(getattr(flt, "condition", None)))
    return tuple(names)


def joined_names(stmt: Select[Any]) -> set[str]:
    """Names of the aliased FROM entries already present in ``stmt``."""
    names: set[str] = set()

    def visit(clause: Any) -> None:
        if isinstance(clause, Join):
            visit(clause.left)
            visit(clause.right)
        elif isinstance(clause, Alias):
            names.add(clause.name)

    for clause in stmt.get_final_froms():
        visit(clause)
    return names


def join_associations(
    stmt: Select[Any],
    model: type[Any],
    names: Iterable[str],
    *,
    bindings: Bindings | None = None,
    check_existing: bool = False,
) -> tuple[Select[Any], Bindings]:
    """
    LEFT JOIN each association in ``names`` onto ``stmt``.

    Args:
        stmt: Statement selecting from ``model``.
        model: Root mapped class.
        names: Association names; duplicates are joined once.
        bindings: Bindings to extend (a fresh one over ``model`` by default).
        check_existing: Inspect ``stmt`` for associations the caller already
            joined through :func:`association_alias` and skip them.

    Returns:
        The joined statement and the bindings that expose every alias.
    """
    result = bindings or Bindings(model)
    existing = joined_names(stmt) if check_existing else set()
    for name in names:
        if result.has(name):
            continue
        alias = association_alias(model, name)
        if name in existing:
            logger.debug("Association %r already joined by the base query", name)
        else:
            stmt = stmt.outerjoin(getattr(model, name).of_type(alias))
            existing.add(name)
        result = result.with_association(name, alias)
    return stmt, result
