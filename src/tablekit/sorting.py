"""Multi-column ordering and the shift-click sort merge."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import asc, desc

from .fields import find_field

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy import Select

    from .expressions import Bindings
    from .fields import FieldDescriptor
    from .options import SortSpec

logger = logging.getLogger(__name__)


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


SortPair = tuple[str, SortDirection]


def parse_direction(value: Any) -> SortDirection | None:
    if isinstance(value, SortDirection):
        return value
    try:
        return SortDirection(str(value).strip().lower())
    except ValueError:
        return None


def normalize_sort_params(raw: Any) -> list[SortPair]:
    """
    Normalise ``raw`` into ordered ``(key, direction)`` pairs.

    Accepts a mapping (insertion order is the sort order) or an iterable of
    pairs.  Pairs with an unknown direction are dropped.
    """
    if not raw:
        return []
    items: Iterable[Any] = raw.items() if isinstance(raw, Mapping) else raw
    out: list[SortPair] = []
    for item in items:
        if not isinstance(item, (tuple, list)) or len(item) != 2:
            logger.debug("Ignoring malformed sort entry %r", item)
            continue
        key, raw_direction = item
        direction = parse_direction(raw_direction)
        if direction is None:
            logger.debug("Ignoring sort on %r with direction %r", key, raw_direction)
            continue
        out.append((str(key), direction))
    return out


def build_order_by(
    sort_params: Iterable[SortPair],
    fields: Sequence[FieldDescriptor],
    bindings: Bindings,
) -> list[Any]:
    """
    Resolve sort pairs to ORDER BY clauses, primary key first.

    Unknown or non-sortable keys are skipped.
    """
    clauses: list[Any] = []
    for key, direction in sort_params:
        descriptor = find_field(fields, key)
        if descriptor is None or not descriptor.sortable:
            logger.debug("Dropping sort on unknown or non-sortable field %r", key)
            continue
        expr = descriptor.expression(bindings)
        clauses.append(asc(expr) if direction is SortDirection.ASC else desc(expr))
    return clauses


def apply_sort(
    stmt: Select[Any],
    fields: Sequence[FieldDescriptor],
    spec: SortSpec,
    bindings: Bindings,
) -> Select[Any]:
    if not spec.enabled or not spec.params:
        return stmt
    clauses = build_order_by(spec.params, fields, bindings)
    if not clauses:
        return stmt
    return stmt.order_by(*clauses)


def merge_sort_params(
    existing: Iterable[SortPair],
    incoming: Iterable[SortPair],
    *,
    accumulate: bool = True,
) -> list[SortPair]:
    """
    Combine the current ordering with the pairs from one header click.

    With ``accumulate`` (shift-click) existing keys keep their position and
    take the incoming direction, and new keys are appended.  Without it the
    incoming pairs replace the ordering entirely.
    """
    incoming_list = list(incoming)
    if not accumulate:
        return incoming_list
    updates = dict(incoming_list)
    merged = [(key, updates.get(key, direction)) for key, direction in existing]
    present = {key for key, _ in merged}
    merged.extend((key, direction) for key, direction in incoming_list if key not in present)
    return merged


def next_sort_direction(direction: SortDirection | str) -> SortDirection:
    current = parse_direction(direction) or SortDirection.ASC
    return SortDirection.DESC if current is SortDirection.ASC else SortDirection.ASC


def sort_toggle(key: str, current: Iterable[SortPair]) -> SortPair:
    """
    The pair a click on column ``key`` produces.

    An unsorted column counts as ascending, so the first click sorts it
    descending.
    """
    direction = dict(current).get(key, SortDirection.ASC)
    return key, next_sort_direction(direction)
