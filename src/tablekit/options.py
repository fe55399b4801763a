"""
Per-request query options.

``QueryOptions`` is built fresh for every request from the resource
declarations and the incoming URL parameters, handed to the composer, and
discarded afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .filters import Filter
    from .sorting import SortPair


@dataclass(frozen=True)
class SortSpec:
    """Ordering requested for this request; ``params`` is primary-key first."""

    enabled: bool = True
    params: tuple[SortPair, ...] = ()


@dataclass(frozen=True)
class PaginationSpec:
    """
    Validated pagination input.

    Attributes:
        enabled: ``False`` returns every matching row (exports).
        page: 1-based page number.
        per_page: Rows per page, within ``[1, max_per_page]``.
        max_per_page: Upper bound accepted from the URL.
        mode: ``"buttons"`` or ``"infinite_scroll"`` (rendering hint).
    """

    enabled: bool = True
    page: int = 1
    per_page: int = 10
    max_per_page: int = 50
    mode: str = "buttons"

    @property
    def offset(self) -> int:
        return max((self.page - 1) * self.per_page, 0)

    @property
    def limit(self) -> int:
        # One row more than requested; its presence signals a next page.
        return self.per_page + 1


@dataclass(frozen=True)
class QueryOptions:
    sort: SortSpec = field(default_factory=SortSpec)
    pagination: PaginationSpec = field(default_factory=PaginationSpec)
    filters: Mapping[str, Filter] = field(default_factory=dict)
    search: str = ""

    def with_page(self, page: int) -> QueryOptions:
        return replace(self, pagination=replace(self.pagination, page=max(page, 1)))

    def without_pagination(self) -> QueryOptions:
        return replace(self, pagination=replace(self.pagination, enabled=False))

    def with_sort(self, params: Any) -> QueryOptions:
        return replace(self, sort=replace(self.sort, params=tuple(params)))

    def with_filters(self, filters: Mapping[str, Filter]) -> QueryOptions:
        return replace(self, filters=dict(filters))
