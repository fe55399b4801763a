"""Tests for field declarations."""

from __future__ import annotations

import pytest
from catalog_models import Product

from tablekit.exceptions import ConfigurationError, DuplicateKeyError
from tablekit.expressions import Bindings, F
from tablekit.fields import (
    FieldRef,
    declare_fields,
    field,
    find_field,
    searchable_fields,
    visible_fields,
)


def test_field_defaults() -> None:
    descriptor = field("name")
    assert not descriptor.sortable
    assert not descriptor.searchable
    assert not descriptor.hidden
    assert descriptor.association is None
    assert descriptor.display_label == "Name"


def test_assoc_and_computed_are_exclusive() -> None:
    with pytest.raises(ConfigurationError):
        field("total", assoc=("category", "name"), computed=F("price") * 2)


def test_assoc_must_be_a_pair() -> None:
    with pytest.raises(ConfigurationError):
        field("category_name", assoc=("category",))


def test_association_field_ref() -> None:
    descriptor = field("category_name", assoc=("category", "name"))
    assert descriptor.association == "category"
    assert descriptor.ref == FieldRef("name", "category")


def test_computed_expression() -> None:
    descriptor = field("stock_value", computed=F("price") * F("stock_quantity"))
    expr = descriptor.expression(Bindings(Product))
    assert str(expr.compile()) == "products.price * products.stock_quantity"


def test_field_ref_parse() -> None:
    assert FieldRef.parse("price") == FieldRef("price")
    assert FieldRef.parse(("category", "id")) == FieldRef("id", "category")
    with pytest.raises(ConfigurationError):
        FieldRef.parse(["category", "id", "x"])  # type: ignore[arg-type]


def test_declare_fields_rejects_duplicates() -> None:
    with pytest.raises(DuplicateKeyError) as exc:
        declare_fields([field("id"), field("name"), field("id")])
    assert exc.value.to_dict() == {"error": "DUPLICATE_KEY", "kind": "field", "key": "id"}


def test_field_selectors() -> None:
    fields = declare_fields(
        [
            field("id", sortable=True),
            field("name", searchable=True),
            field("secret", hidden=True, searchable=True),
        ]
    )
    assert [f.key for f in searchable_fields(fields)] == ["name", "secret"]
    assert [f.key for f in visible_fields(fields)] == ["id", "name"]
    assert find_field(fields, "name") is fields[1]
    assert find_field(fields, "missing") is None
