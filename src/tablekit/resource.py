"""
TableResource: declarative table definition and its request pipeline.

Subclass it, point ``model`` at a mapped class and declare ``fields()`` and
``filters()``::

    class ProductTable(TableResource):
        model = Product

        def fields(self):
            return [
                field("id", sortable=True),
                field("name", sortable=True, searchable=True),
                field("category_name", assoc=("category", "name"), sortable=True),
            ]

        def filters(self):
            return [
                BooleanFilter("stock_quantity", "in_stock", F("stock_quantity") > 0),
                RangeFilter("price", "price", min=0, max=500),
            ]

    stmt = ProductTable().build_query({"page": "2", "search": "gadget"})

Every interaction handler returns the URL parameters of the next request;
the caller turns them into a link with :func:`tablekit.build_query_string`.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from .codec import encode_filters, update_filter_params
from .composer import list_resources
from .config import TableOptions
from .exceptions import ConfigurationError
from .execution import fetch_page
from .fields import declare_fields
from .filters import RangeFilter, SelectFilter, declare_filters
from .pagination import next_page
from .provider import SchemaProvider
from .query_string import build_query_options, encode_query_options, parse_sort_params
from .sorting import merge_sort_params, sort_toggle

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from .fields import FieldDescriptor
    from .filters import Filter
    from .options import QueryOptions
    from .pagination import PageResult

logger = logging.getLogger(__name__)


class TableResource:
    """Base class for table definitions."""

    model: ClassVar[type[Any] | None] = None
    app_options: ClassVar[Mapping[str, Any]] = MappingProxyType({})
    # Used to resolve search mode "auto" when no session is at hand.
    dialect_name: ClassVar[str | None] = None

    # ── Declarations ─────────────────────────────────────────────

    def fields(self) -> Sequence[FieldDescriptor]:
        raise NotImplementedError(f"{type(self).__name__} must declare fields()")

    def filters(self) -> Sequence[Filter]:
        return ()

    def table_options(self) -> Mapping[str, Any]:
        return {}

    def provider(self) -> Any:
        """Where rows come from; the mapped ``model`` unless overridden."""
        if self.model is None:
            raise ConfigurationError(
                f"{type(self).__name__} needs a model or a provider() override"
            )
        return SchemaProvider(self.model)

    # ── Lookups ──────────────────────────────────────────────────

    def declared_fields(self) -> tuple[FieldDescriptor, ...]:
        return declare_fields(self.fields())

    def declared_filters(self) -> dict[str, Filter]:
        return declare_filters(self.filters())

    def get_filter(self, key: str) -> Filter | None:
        return self.declared_filters().get(key)

    def options(self) -> TableOptions:
        return TableOptions.resolve(self.table_options(), self.app_options)

    def select_options(self, key: str, text: str = "") -> list[Any]:
        """Options of select filter ``key`` matching ``text`` (option search)."""
        flt = self.get_filter(key)
        if not isinstance(flt, SelectFilter):
            raise ConfigurationError(f"{type(self).__name__} has no select filter {key!r}")
        return flt.load_options(text)

    # ── Queries ──────────────────────────────────────────────────

    def parse_params(self, params: Mapping[str, Any] | str | None) -> QueryOptions:
        return build_query_options(params, self.declared_filters(), self.options())

    def compose(self, options: QueryOptions, *, dialect_name: str | None = None) -> Select[Any]:
        table_options = self.options()
        return list_resources(
            self.declared_fields(),
            options,
            self.provider(),
            search_mode=table_options.search_mode,
            dialect_name=dialect_name or self.dialect_name,
            debug=table_options.debug,
        )

    def build_query(
        self,
        params: Mapping[str, Any] | str | None,
        *,
        dialect_name: str | None = None,
    ) -> Select[Any]:
        return self.compose(self.parse_params(params), dialect_name=dialect_name)

    def export_query(
        self,
        params: Mapping[str, Any] | str | None,
        *,
        dialect_name: str | None = None,
    ) -> Select[Any]:
        """Same filters, search and ordering as the table, without LIMIT/OFFSET."""
        options = self.parse_params(params).without_pagination()
        return self.compose(options, dialect_name=dialect_name)

    # ── Execution ────────────────────────────────────────────────

    async def fetch_options(self, session: AsyncSession, options: QueryOptions) -> PageResult:
        stmt = self.compose(options, dialect_name=_session_dialect(session))
        return await fetch_page(session, stmt, options.pagination)

    async def fetch(
        self,
        session: AsyncSession,
        params: Mapping[str, Any] | str | None,
    ) -> PageResult:
        return await self.fetch_options(session, self.parse_params(params))

    async def load_more(self, session: AsyncSession, options: QueryOptions) -> PageResult:
        """Fetch the page after ``options`` (infinite scroll)."""
        return await self.fetch_options(session, next_page(options))

    # ── Interaction handlers ─────────────────────────────────────

    def handle_sort_event(
        self,
        options: QueryOptions,
        sort: Any,
        accumulate: bool = False,
    ) -> dict[str, Any]:
        """
        Apply a header click.

        ``sort`` is the clicked pair(s) in any form ``parse_sort_params``
        accepts.  ``accumulate`` (shift-click) merges it into the current
        ordering instead of replacing it.
        """
        incoming = parse_sort_params(sort)
        merged = merge_sort_params(options.sort.params, incoming, accumulate=accumulate)
        return encode_query_options(options.with_sort(merged))

    def toggle_sort(
        self,
        options: QueryOptions,
        key: str,
        accumulate: bool = False,
    ) -> dict[str, Any]:
        return self.handle_sort_event(
            options, [sort_toggle(key, options.sort.params)], accumulate
        )

    def handle_filter_event(
        self,
        options: QueryOptions,
        filters: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Merge one filter interaction; the next request starts at page 1."""
        params = encode_query_options(options.with_page(1))
        state = update_filter_params(
            encode_filters(options.filters), filters, self.declared_filters()
        )
        if state:
            params["filters"] = state
        else:
            params.pop("filters", None)
        return params

    def handle_range_event(
        self,
        options: QueryOptions,
        values: Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Apply a range slider change sent as ``{"<key>_min": .., "<key>_max": ..}``.

        Integer-stepped ranges truncate the slider values.
        """
        min_key = next((k for k in values if k.endswith("_min")), None)
        max_key = next((k for k in values if k.endswith("_max")), None)
        if min_key is None or max_key is None:
            logger.debug("Ignoring range event without min/max: %r", values)
            return encode_query_options(options)

        key = min_key[: -len("_min")]
        low, high = values[min_key], values[max_key]
        flt = self.get_filter(key)
        if isinstance(flt, RangeFilter) and flt.integral:
            low, high = _truncate(low), _truncate(high)
        return self.handle_filter_event(options, {key: {"min": low, "max": high}})

    def clear_filters(self, options: QueryOptions) -> dict[str, Any]:
        """Drop every filter and the search term; keep ordering and paging."""
        params = encode_query_options(options)
        params.pop("filters", None)
        params.pop("search", None)
        return params


def _truncate(value: Any) -> Any:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return value


def _session_dialect(session: AsyncSession) -> str | None:
    bind = session.bind
    if bind is None:
        return None
    return bind.dialect.name
