"""
Tests for list_resources.

Covers:
- Projection of labelled columns, including association fields
- LEFT JOIN semantics for absent associations
- Filters + search, sort, transformers and pagination in a fixed order
- Custom providers that pre-join associations
- Declaration errors
"""

from __future__ import annotations

import logging

import pytest
from catalog_models import Product, ProductTable
from sqlalchemy import func, select

from tablekit.composer import list_resources
from tablekit.exceptions import UnknownAssociationError, UnknownFieldError
from tablekit.expressions import F
from tablekit.fields import field
from tablekit.filters import BooleanFilter, RangeFilter, SelectFilter, TransformerFilter
from tablekit.joins import association_alias
from tablekit.options import PaginationSpec, QueryOptions, SortSpec
from tablekit.provider import CustomQueryProvider
from tablekit.sorting import SortDirection

ASC = SortDirection.ASC
DESC = SortDirection.DESC

FIELDS = ProductTable().declared_fields()
FILTERS = ProductTable().declared_filters()


def _options(**kwargs) -> QueryOptions:
    kwargs.setdefault("sort", SortSpec(params=(("id", ASC),)))
    return QueryOptions(**kwargs)


async def _rows(session, stmt):
    return (await session.execute(stmt)).mappings().all()


async def test_projects_labelled_columns(catalog) -> None:
    stmt = list_resources(FIELDS, _options(), Product)
    rows = await _rows(catalog, stmt)
    assert list(rows[0].keys()) == ["id", "name", "price", "stock_quantity", "category_name"]
    assert rows[0]["category_name"] == "Gadgets"


async def test_absent_association_keeps_row(catalog) -> None:
    rows = await _rows(catalog, list_resources(FIELDS, _options(), Product))
    assert [r["id"] for r in rows] == [1, 2, 3, 4]
    assert rows[3]["category_name"] is None


async def test_select_filter_excludes_rows_without_association(catalog) -> None:
    flt = FILTERS["category"].with_selected([1])
    stmt = list_resources(FIELDS, _options(filters={"category": flt}), Product)
    rows = await _rows(catalog, stmt)
    assert [r["name"] for r in rows] == ["Gadget", "Gadget Plus"]


async def test_boolean_filter_and_search_conjunction_can_be_empty(catalog) -> None:
    options = _options(filters={"in_stock": FILTERS["in_stock"]}, search="Gadget Plus")
    rows = await _rows(catalog, list_resources(FIELDS, options, Product))
    assert rows == []


async def test_empty_search_matches_no_search(catalog) -> None:
    plain = await _rows(catalog, list_resources(FIELDS, _options(), Product))
    blank = await _rows(catalog, list_resources(FIELDS, _options(search="   "), Product))
    assert plain == blank


async def test_search_reaches_association_fields(catalog) -> None:
    rows = await _rows(catalog, list_resources(FIELDS, _options(search="tool"), Product))
    assert [r["name"] for r in rows] == ["Hammer"]


async def test_search_term_wildcards_match_literally(catalog) -> None:
    rows = await _rows(catalog, list_resources(FIELDS, _options(search="%"), Product))
    assert rows == []


async def test_page_two_of_twenty_five(session, add_products) -> None:
    await add_products(*({"id": i, "name": f"Item {i:02d}"} for i in range(1, 26)))
    options = _options(pagination=PaginationSpec(page=2, per_page=10))
    rows = await _rows(session, list_resources(FIELDS, options, Product))
    assert len(rows) == 11
    assert rows[0]["id"] == 11


async def test_sort_on_association_field(catalog) -> None:
    options = _options(sort=SortSpec(params=(("category_name", DESC), ("id", ASC))))
    rows = await _rows(catalog, list_resources(FIELDS, options, Product))
    assert [r["id"] for r in rows][:3] == [3, 1, 2]


def test_unknown_sort_keys_are_ignored() -> None:
    options = _options(sort=SortSpec(params=(("bogus", ASC),)))
    assert "ORDER BY" not in str(list_resources(FIELDS, options, Product))


def test_transformers_run_after_sort_and_before_pagination() -> None:
    seen = []

    def spy(stmt, data):
        seen.append(str(stmt))
        return stmt

    options = _options(
        filters={"spy": TransformerFilter("spy", spy)},
        pagination=PaginationSpec(page=1, per_page=5),
    )
    list_resources(FIELDS, options, Product)
    assert "ORDER BY products.id ASC" in seen[0]
    assert "LIMIT" not in seen[0]


async def test_transformer_rewrites_the_query(catalog) -> None:
    def at_least(stmt, data):
        return stmt.where(Product.stock_quantity >= int(data["stock"]))

    flt = TransformerFilter("restock", at_least, {"stock": "5"})
    rows = await _rows(catalog, list_resources(FIELDS, _options(filters={"restock": flt}), Product))
    assert [r["id"] for r in rows] == [1, 3]


def test_filter_association_is_joined_once() -> None:
    flt = SelectFilter(("category", "id"), "category", selected=(1,))
    sql = str(list_resources(FIELDS, _options(filters={"category": flt}), Product))
    assert sql.count("JOIN categories AS category") == 1


def test_filter_only_association_is_joined() -> None:
    flt = SelectFilter(("suppliers", "id"), "supplier", selected=(1,))
    sql = str(list_resources([field("id")], _options(filters={"supplier": flt}), Product))
    assert "JOIN suppliers AS suppliers" in sql


def test_range_filter_applies_between() -> None:
    flt = RangeFilter("price", "price", current_min=50, current_max=100)
    stmt = list_resources(FIELDS, _options(filters={"price": flt}), Product)
    assert "products.price BETWEEN" in str(stmt)


def _prejoined():
    alias = association_alias(Product, "category")
    return (
        select(Product.id, Product.name, alias.name.label("category_name"))
        .outerjoin(Product.category.of_type(alias))
    )


async def test_custom_provider_with_prejoined_association(catalog) -> None:
    flt = FILTERS["category"].with_selected([2])
    stmt = list_resources(
        FIELDS, _options(filters={"category": flt}), CustomQueryProvider(_prejoined)
    )
    assert str(stmt).count("JOIN categories AS category") == 1
    rows = await _rows(catalog, stmt)
    assert [dict(r) for r in rows] == [{"id": 3, "name": "Hammer", "category_name": "Tools"}]


async def test_custom_provider_owns_projection(catalog) -> None:
    def totals():
        return select(Product.id, (Product.price * Product.stock_quantity).label("value"))

    rows = await _rows(catalog, list_resources(FIELDS, _options(), (totals, ())))
    assert list(rows[0].keys()) == ["id", "value"]
    assert rows[0]["value"] == 125


async def test_computed_field(catalog) -> None:
    fields = [
        field("id", sortable=True),
        field("stock_value", computed=F("price") * F("stock_quantity"), sortable=True),
    ]
    options = _options(sort=SortSpec(params=(("stock_value", DESC),)))
    rows = await _rows(catalog, list_resources(fields, options, Product))
    assert rows[0]["id"] == 3
    assert rows[0]["stock_value"] == 1800


async def test_boolean_filter_on_association(catalog) -> None:
    tools = BooleanFilter(("category", "name"), "tools", F("name", assoc="category") == "Tools")
    rows = await _rows(catalog, list_resources([field("id")], _options(filters={"tools": tools}), Product))
    assert [r["id"] for r in rows] == [3]


async def test_computed_field_joins_its_association(catalog) -> None:
    fields = [
        field("id", sortable=True),
        field("category_upper", computed=F("name", assoc="category").apply(func.upper)),
    ]
    rows = await _rows(catalog, list_resources(fields, _options(), Product))
    assert [r["category_upper"] for r in rows] == ["GADGETS", "GADGETS", "TOOLS", None]


async def test_boolean_condition_joins_its_association(catalog) -> None:
    tools = BooleanFilter("stock_quantity", "tools", F("name", assoc="category") == "Tools")
    stmt = list_resources([field("id")], _options(filters={"tools": tools}), Product)
    assert str(stmt).count("JOIN categories AS category") == 1
    rows = await _rows(catalog, stmt)
    assert [r["id"] for r in rows] == [3]


def test_unknown_association_in_declaration() -> None:
    fields = [field("id"), field("maker", assoc=("manufacturer", "name"))]
    with pytest.raises(UnknownAssociationError):
        list_resources(fields, _options(), Product)


def test_unknown_field_in_declaration() -> None:
    with pytest.raises(UnknownFieldError):
        list_resources([field("id"), field("colour")], _options(), Product)


def test_auto_search_mode_uses_dialect() -> None:
    options = _options(search="x")
    pg = list_resources(FIELDS, options, Product, search_mode="auto", dialect_name="postgresql")
    lite = list_resources(FIELDS, options, Product, search_mode="auto", dialect_name="sqlite")
    assert "lower(products.name) LIKE '%' || lower(:" in str(pg)
    assert "lower(products.name) LIKE :" in str(lite)


def test_debug_query_logs_statement(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="tablekit.composer"):
        list_resources(FIELDS, _options(), Product, debug="query")
    messages = [r.getMessage() for r in caplog.records if r.name == "tablekit.composer"]
    assert len(messages) == 1
    assert messages[0].startswith("Composed query: SELECT")


def test_debug_trace_logs_each_stage(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="tablekit.composer"):
        list_resources(FIELDS, _options(), Product, debug="trace")
    messages = [r.getMessage() for r in caplog.records if r.name == "tablekit.composer"]
    assert [m.split(":")[0] for m in messages] == [
        "After joins",
        "After projection",
        "After filters",
        "After sort",
        "After transformers",
        "Composed query",
    ]


def test_debug_off_is_silent(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="tablekit.composer"):
        list_resources(FIELDS, _options(), Product)
    assert not [r for r in caplog.records if r.name == "tablekit.composer"]


async def test_count_of_composed_query(catalog) -> None:
    stmt = list_resources(FIELDS, _options(filters={"in_stock": FILTERS["in_stock"]}), Product)
    total = await catalog.scalar(select(func.count()).select_from(stmt.subquery()))
    assert total == 3
