"""
Resource query composition.

``list_resources`` turns field declarations, per-request ``QueryOptions`` and a
resource provider into an unexecuted ``Select``.  The steps run in a fixed
order:

1. base statement from the provider
2. association joins (before anything references an association)
3. column projection
4. predicate filters + search as one ``WHERE``
5. ordering
6. transformers, in declaration order, on the statement composed so far
7. pagination, always last
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .filters import apply_filters, apply_transformers, split_filters
from .joins import join_associations, required_associations
from .pagination import paginate
from .provider import as_provider
from .search import SearchMode
from .sorting import apply_sort

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select

    from .expressions import Bindings
    from .fields import FieldDescriptor
    from .options import QueryOptions

logger = logging.getLogger(__name__)


def project_columns(
    stmt: Select[Any],
    fields: Sequence[FieldDescriptor],
    bindings: Bindings,
) -> Select[Any]:
    """Select one labelled column per field, keyed by the field key."""
    columns = [descriptor.expression(bindings).label(descriptor.key) for descriptor in fields]
    return stmt.with_only_columns(*columns)


def list_resources(
    fields: Sequence[FieldDescriptor],
    options: QueryOptions,
    provider: Any,
    *,
    search_mode: SearchMode | str | None = SearchMode.ILIKE,
    dialect_name: str | None = None,
    debug: str = "off",
) -> Select[Any]:
    """
    Compose the statement for one table request.

    Args:
        fields: Field declarations of the resource.
        options: Sort, pagination, decoded filters and search term.
        provider: A :class:`~tablekit.provider.SchemaProvider`,
            :class:`~tablekit.provider.CustomQueryProvider` or anything
            :func:`~tablekit.provider.as_provider` accepts.
        search_mode: Matching strategy for the search term.
        dialect_name: Used to resolve ``SearchMode.AUTO``.
        debug: ``"query"`` logs the composed statement, ``"trace"`` also logs
            every intermediate step.

    Raises:
        UnknownAssociationError: A field or filter declaration names an
            association the root model does not have.
        UnknownFieldError: A field or filter declaration names a missing
            column.
    """
    resource = as_provider(provider)
    tracing = debug == "trace"

    stmt = resource.base_query()
    model = resource.root_model(stmt)
    regular, transformers = split_filters(options.filters)

    stmt, bindings = join_associations(
        stmt,
        model,
        required_associations(fields, regular),
        check_existing=resource.owns_projection,
    )
    _trace(tracing, "joins", stmt)

    if not resource.owns_projection:
        stmt = project_columns(stmt, fields, bindings)
        _trace(tracing, "projection", stmt)

    stmt = apply_filters(
        stmt,
        regular,
        fields,
        bindings,
        search=options.search,
        search_mode=search_mode,
        dialect_name=dialect_name,
    )
    _trace(tracing, "filters", stmt)

    stmt = apply_sort(stmt, fields, options.sort, bindings)
    _trace(tracing, "sort", stmt)

    stmt = apply_transformers(stmt, transformers)
    _trace(tracing, "transformers", stmt)

    stmt = paginate(stmt, options.pagination)

    if debug in ("query", "trace") and logger.isEnabledFor(logging.DEBUG):
        logger.debug("Composed query: %s", stmt)
    return stmt


def _trace(enabled: bool, stage: str, stmt: Select[Any]) -> None:
    if enabled and logger.isEnabledFor(logging.DEBUG):
        logger.debug("After %s: %s", stage, stmt)
