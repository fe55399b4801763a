"""
Filter kinds and the filter engine.

There are exactly four filter kinds.  Three of them contribute a predicate
that is folded into one conjunction together with the search condition:

- :class:`BooleanFilter`: a fixed condition toggled on by presence.
- :class:`RangeFilter`: ``field BETWEEN low AND high``.
- :class:`SelectFilter`: ``field IN (selected ids)``.

The fourth, :class:`TransformerFilter`, receives the whole statement and
returns a new one.  Transformers run after filtering and sorting, one after
another in declaration order.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any, Union

from sqlalchemy import and_, true

from .exceptions import ConfigurationError, DuplicateKeyError
from .expressions import Bindings, resolve_expression
from .fields import FieldRef, FieldSpec
from .operators import DEFAULT_REGISTRY, TableOperator
from .search import SearchMode, build_search_condition

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy import ColumnElement, Select

    from .fields import FieldDescriptor

logger = logging.getLogger(__name__)

RANGE_VALUE_TYPES = ("number", "date", "datetime")
RANGE_BOUNDS = ("min", "max", "default_min", "default_max", "current_min", "current_max")


def as_range_value(value: Any, value_type: str) -> Any:
    """Align a temporal bound with ``value_type`` so bounds stay comparable."""
    if value_type == "datetime" and isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if value_type == "date" and isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class BooleanFilter:
    """
    Presence-only toggle.

    ``field`` names the column the checkbox is about (rendering only);
    ``condition`` is the deferred predicate applied while the filter is set.
    """

    field: FieldSpec
    key: str
    condition: Any
    label: str | None = None

    @property
    def ref(self) -> FieldRef:
        return FieldRef.parse(self.field)

    def apply(self, acc: ColumnElement[bool], bindings: Bindings) -> ColumnElement[bool]:
        return and_(acc, resolve_expression(self.condition, bindings))


@dataclass(frozen=True)
class RangeFilter:
    """
    Inclusive range on a numeric or temporal column.

    ``step`` decides integer vs fractional parsing of URL bounds for numeric
    ranges.  Unset ``current_*`` bounds fall back to ``default_*``, which in
    turn fall back to ``min``/``max``.
    """

    field: FieldSpec
    key: str
    min: Any = 0
    max: Any = 100
    step: Any = 1
    default_min: Any = None
    default_max: Any = None
    current_min: Any = None
    current_max: Any = None
    value_type: str = "number"
    label: str | None = None
    unit: str = ""

    def __post_init__(self) -> None:
        if self.value_type not in RANGE_VALUE_TYPES:
            raise ConfigurationError(
                f"Range filter {self.key!r}: value_type must be one of "
                f"{', '.join(RANGE_VALUE_TYPES)}, got {self.value_type!r}"
            )
        if self.value_type == "number":
            return
        for name in RANGE_BOUNDS:
            bound = getattr(self, name)
            if bound is None:
                continue
            if not isinstance(bound, date):
                raise ConfigurationError(
                    f"Range filter {self.key!r}: {name} must be a date or None "
                    f"for value_type {self.value_type!r}, got {bound!r}"
                )
            object.__setattr__(self, name, as_range_value(bound, self.value_type))

    @property
    def ref(self) -> FieldRef:
        return FieldRef.parse(self.field)

    @property
    def integral(self) -> bool:
        return (
            self.value_type == "number"
            and isinstance(self.step, int)
            and not isinstance(self.step, bool)
        )

    @property
    def defaults(self) -> tuple[Any, Any]:
        low = self.default_min if self.default_min is not None else self.min
        high = self.default_max if self.default_max is not None else self.max
        return low, high

    def bounds(self) -> tuple[Any, Any]:
        default_low, default_high = self.defaults
        low = self.current_min if self.current_min is not None else default_low
        high = self.current_max if self.current_max is not None else default_high
        return low, high

    def with_bounds(self, low: Any, high: Any) -> RangeFilter:
        return replace(self, current_min=low, current_max=high)

    def apply(self, acc: ColumnElement[bool], bindings: Bindings) -> ColumnElement[bool]:
        column = self.ref.resolve(bindings)
        low, high = self.bounds()
        # Open-ended temporal ranges
        if low is None and high is None:
            return acc
        if low is None:
            return and_(acc, column <= high)
        if high is None:
            return and_(acc, column >= low)
        return and_(acc, DEFAULT_REGISTRY.apply(TableOperator.BETWEEN, column, (low, high)))


@dataclass(frozen=True)
class SelectFilter:
    """
    Match a column against a set of selected identifiers.

    ``field`` is the declared column (used for rendering and option lookup).
    Matching uses ``value_field`` on the same binding when given, e.g.
    ``SelectFilter(("suppliers", "name"), "supplier", value_field="id")``
    matches ``suppliers.id`` while showing supplier names; otherwise the
    declared column itself is matched.

    ``coerce`` converts one raw URL entry into an identifier; entries it
    rejects with ``ValueError``/``TypeError`` are dropped while decoding.
    """

    field: FieldSpec
    key: str
    selected: tuple[Any, ...] = ()
    value_field: str | None = None
    coerce: Callable[[Any], Any] = int
    options: tuple[Any, ...] = ()
    options_source: Callable[..., Iterable[Any]] | None = None
    label: str | None = None
    placeholder: str = "Search..."

    @property
    def ref(self) -> FieldRef:
        return FieldRef.parse(self.field)

    @property
    def match_ref(self) -> FieldRef:
        ref = self.ref
        if self.value_field is None:
            return ref
        return FieldRef(self.value_field, ref.assoc)

    def with_selected(self, values: Iterable[Any]) -> SelectFilter:
        return replace(self, selected=tuple(values))

    def load_options(self, text: str = "", *args: Any) -> list[Any]:
        """Options for the rendering layer: static, or from ``options_source``."""
        if self.options_source is not None:
            return list(self.options_source(text, *args))
        return list(self.options)

    def apply(self, acc: ColumnElement[bool], bindings: Bindings) -> ColumnElement[bool]:
        if not self.selected:
            return acc
        column = self.match_ref.resolve(bindings)
        return and_(acc, DEFAULT_REGISTRY.apply(TableOperator.IN, column, self.selected))


@dataclass(frozen=True)
class TransformerFilter:
    """
    Whole-statement rewrite.

    ``transform`` is ``callable(stmt, applied_data) -> stmt`` or an
    ``(owner, attribute_name)`` pair resolved when applied.  It must be a pure
    function of its inputs; its exceptions are not caught.
    """

    key: str
    transform: Callable[[Any, dict[str, Any]], Any] | tuple[Any, str]
    applied_data: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    label: str | None = None

    def __post_init__(self) -> None:
        transform = self.transform
        if isinstance(transform, tuple):
            if len(transform) != 2 or not isinstance(transform[1], str):
                raise ConfigurationError(
                    f"Transformer {self.key!r}: expected (owner, 'function_name'), "
                    f"got {transform!r}"
                )
        elif not callable(transform):
            raise ConfigurationError(f"Transformer {self.key!r} is not callable")

    def resolve_transform(self) -> Callable[[Any, dict[str, Any]], Any]:
        if isinstance(self.transform, tuple):
            owner, name = self.transform
            return getattr(owner, name)
        return self.transform

    def with_data(self, data: Mapping[str, Any]) -> TransformerFilter:
        return replace(self, applied_data=dict(data))

    def apply(self, stmt: Select[Any]) -> Select[Any]:
        return self.resolve_transform()(stmt, dict(self.applied_data))


Filter = Union[BooleanFilter, RangeFilter, SelectFilter, TransformerFilter]
RegularFilter = Union[BooleanFilter, RangeFilter, SelectFilter]


def filter_kind(flt: Filter) -> str:
    """Return ``"boolean"``, ``"range"``, ``"select"`` or ``"transformer"``."""
    if isinstance(flt, BooleanFilter):
        return "boolean"
    if isinstance(flt, RangeFilter):
        return "range"
    if isinstance(flt, SelectFilter):
        return "select"
    if isinstance(flt, TransformerFilter):
        return "transformer"
    raise TypeError(f"Unknown filter kind: {type(flt).__name__}")


def declare_filters(filters: Iterable[Filter]) -> dict[str, Filter]:
    """Index declared filters by URL key, rejecting duplicates."""
    declared: dict[str, Filter] = {}
    for flt in filters:
        filter_kind(flt)
        if flt.key in declared:
            raise DuplicateKeyError("filter", flt.key)
        declared[flt.key] = flt
    return declared


def split_filters(
    filters: Mapping[str, Filter],
) -> tuple[dict[str, RegularFilter], dict[str, TransformerFilter]]:
    """Separate predicate filters from transformers, keeping order."""
    regular: dict[str, RegularFilter] = {}
    transformers: dict[str, TransformerFilter] = {}
    for key, flt in filters.items():
        if filter_kind(flt) == "transformer":
            transformers[key] = flt  # type: ignore[assignment]
        else:
            regular[key] = flt  # type: ignore[assignment]
    return regular, transformers


def build_filter_condition(
    filters: Mapping[str, Filter],
    bindings: Bindings,
) -> ColumnElement[bool] | None:
    """Fold all predicate filters into one conjunction (``None`` if none)."""
    condition: ColumnElement[bool] = true()
    applied = False
    for flt in filters.values():
        kind = filter_kind(flt)
        if kind == "transformer":
            raise TypeError(
                f"Transformer {flt.key!r} rewrites the statement and cannot be "
                "folded into a condition; use apply_transformers()"
            )
        condition = flt.apply(condition, bindings)  # type: ignore[union-attr, arg-type]
        applied = True
    return condition if applied else None


def apply_filters(
    stmt: Select[Any],
    filters: Mapping[str, Filter],
    fields: Sequence[FieldDescriptor],
    bindings: Bindings,
    *,
    search: Any = "",
    search_mode: SearchMode | str | None = SearchMode.ILIKE,
    dialect_name: str | None = None,
) -> Select[Any]:
    """Apply predicate filters and the search condition in one ``WHERE``."""
    condition = build_filter_condition(filters, bindings)
    search_condition = build_search_condition(
        search, fields, bindings, mode=search_mode, dialect_name=dialect_name
    )
    if search_condition is not None:
        condition = (
            search_condition if condition is None else and_(condition, search_condition)
        )
    if condition is None:
        return stmt
    return stmt.where(condition)


def apply_transformers(
    stmt: Select[Any],
    transformers: Mapping[str, TransformerFilter],
) -> Select[Any]:
    for key, transformer in transformers.items():
        logger.debug("Applying transformer %r", key)
        stmt = transformer.apply(stmt)
    return stmt
