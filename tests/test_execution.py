"""Tests for fetch_page against an in-memory database."""

from __future__ import annotations

from catalog_models import Product, ProductTable

from tablekit.composer import list_resources
from tablekit.execution import fetch_page
from tablekit.options import PaginationSpec, QueryOptions, SortSpec
from tablekit.sorting import SortDirection

FIELDS = ProductTable().declared_fields()


def _options(page: int, per_page: int, enabled: bool = True) -> QueryOptions:
    return QueryOptions(
        sort=SortSpec(params=(("id", SortDirection.ASC),)),
        pagination=PaginationSpec(enabled=enabled, page=page, per_page=per_page),
    )


async def test_overfetched_row_signals_next_page(catalog) -> None:
    options = _options(1, 3)
    result = await fetch_page(catalog, list_resources(FIELDS, options, Product), options.pagination)
    assert [r["id"] for r in result.rows] == [1, 2, 3]
    assert result.has_next_page
    assert (result.page, result.per_page) == (1, 3)


async def test_last_page_has_no_next(catalog) -> None:
    options = _options(2, 3)
    result = await fetch_page(catalog, list_resources(FIELDS, options, Product), options.pagination)
    assert [r["id"] for r in result.rows] == [4]
    assert not result.has_next_page


async def test_exact_fit_has_no_next(catalog) -> None:
    options = _options(1, 4)
    result = await fetch_page(catalog, list_resources(FIELDS, options, Product), options.pagination)
    assert len(result.rows) == 4
    assert not result.has_next_page


async def test_disabled_pagination_returns_everything(catalog) -> None:
    options = _options(3, 1, enabled=False)
    result = await fetch_page(catalog, list_resources(FIELDS, options, Product), options.pagination)
    assert len(result.rows) == 4
    assert not result.has_next_page
    assert result.page is None
    assert result.per_page is None


async def test_rows_are_keyed_by_label(catalog) -> None:
    options = _options(1, 1)
    result = await fetch_page(catalog, list_resources(FIELDS, options, Product), options.pagination)
    assert result.rows[0]["category_name"] == "Gadgets"
