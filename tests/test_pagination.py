"""Tests for PaginationParser and the overfetch protocol."""

from __future__ import annotations

import pytest
from catalog_models import Product
from sqlalchemy import select

from tablekit.options import PaginationSpec, QueryOptions
from tablekit.pagination import (
    PaginationParser,
    next_page,
    paginate,
    split_overflow,
    validate_page,
    validate_per_page,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 1), ("", 1), ("abc", 1), ("0", 1), ("-3", 1), ("2", 2), (7, 7), (True, 1)],
)
def test_validate_page(raw, expected) -> None:
    assert validate_page(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 10),  # missing -> default
        ("x", 10),  # unparsable -> default
        ("25", 25),
        ("0", 1),  # below range -> lower bound
        ("-5", 1),
        ("500", 50),  # above range -> max_per_page
    ],
)
def test_validate_per_page(raw, expected) -> None:
    assert validate_per_page(raw, default=10, max_per_page=50) == expected


def test_parser_builds_spec() -> None:
    spec = PaginationParser().parse(
        {"page": "3", "per_page": "25"}, max_per_page=100, mode="infinite_scroll"
    )
    assert spec == PaginationSpec(
        enabled=True, page=3, per_page=25, max_per_page=100, mode="infinite_scroll"
    )
    assert spec.offset == 50
    assert spec.limit == 26


def test_paginate_overfetches_by_one() -> None:
    stmt = paginate(select(Product.id), PaginationSpec(page=2, per_page=10))
    compiled = str(stmt.compile(compile_kwargs={"literal_binds": True}))
    assert compiled.endswith("LIMIT 11 OFFSET 10")


def test_disabled_pagination_is_identity() -> None:
    stmt = select(Product.id)
    assert paginate(stmt, PaginationSpec(enabled=False)) is stmt


def test_split_overflow() -> None:
    assert split_overflow([1, 2, 3], 2) == ([1, 2], True)
    assert split_overflow([1, 2], 2) == ([1, 2], False)
    assert split_overflow([], 2) == ([], False)


def test_next_page() -> None:
    options = QueryOptions(pagination=PaginationSpec(page=2, per_page=5))
    assert next_page(options).pagination.page == 3
    assert options.pagination.page == 2


@pytest.mark.parametrize(("total", "page"), [(25, 1), (25, 2), (25, 3), (20, 2), (0, 1)])
async def test_result_length_matches_overfetch_rule(session, add_products, total, page) -> None:
    await add_products(*({"id": i, "name": f"Item {i}"} for i in range(1, total + 1)))
    spec = PaginationSpec(page=page, per_page=10)
    rows = (await session.execute(paginate(select(Product.id).order_by(Product.id), spec))).all()
    assert len(rows) == max(min(total - spec.offset, spec.per_page + 1), 0)
    _, has_next_page = split_overflow(rows, spec.per_page)
    assert has_next_page == (len(rows) == spec.per_page + 1)
