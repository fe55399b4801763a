"""
Filter state <-> URL parameters.

``encode_filters`` produces the ``filters`` URL value for a set of active
filter instances; ``decode_filters`` turns the raw ``filters`` value back into
typed instances, driven by the resource's declared filters.  Decoding never
raises on user input: malformed entries are defaulted, clamped or dropped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from .exceptions import FilterDecodeError
from .filters import filter_kind

if TYPE_CHECKING:
    from .filters import Filter, RangeFilter, SelectFilter

logger = logging.getLogger(__name__)

FALSE_VALUES = ("false", "")


# ── Encoding ─────────────────────────────────────────────────────────


def _encode_bound(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def encode_filter(flt: Filter) -> Any:
    """Encoded URL value of one filter, or ``None`` when it encodes to nothing."""
    kind = filter_kind(flt)
    if kind == "boolean":
        return flt.key
    if kind == "range":
        low, high = flt.bounds()  # type: ignore[union-attr]
        return {"min": _encode_bound(low), "max": _encode_bound(high)}
    if kind == "select":
        selected = list(flt.selected)  # type: ignore[union-attr]
        return {"ids": selected} if selected else None
    data = dict(flt.applied_data)  # type: ignore[union-attr]
    return data or None


def encode_filters(filters: Mapping[str, Filter]) -> dict[str, Any]:
    encoded: dict[str, Any] = {}
    for key, flt in filters.items():
        value = encode_filter(flt)
        if value is not None:
            encoded[key] = value
    return encoded


# ── Range bounds ─────────────────────────────────────────────────────


def _parse_number(raw: Any, integral: bool) -> int | float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return int(raw) if integral else float(raw)
    text = str(raw).strip()
    try:
        if integral:
            try:
                return int(text)
            except ValueError:
                return int(float(text))
        return float(text)
    except (TypeError, ValueError, OverflowError):
        return None


def _parse_temporal(raw: Any, value_type: str) -> date | datetime | None:
    if isinstance(raw, datetime):
        return raw if value_type == "datetime" else raw.date()
    if isinstance(raw, date):
        return datetime.combine(raw, datetime.min.time()) if value_type == "datetime" else raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    try:
        if value_type == "datetime":
            return datetime.fromisoformat(text)
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_range_bound(flt: RangeFilter, raw: Any) -> Any:
    """Parse one bound for ``flt``; ``None`` when unparsable."""
    if flt.value_type == "number":
        return _parse_number(raw, flt.integral)
    return _parse_temporal(raw, flt.value_type)


def _clamp(value: Any, low: Any, high: Any) -> Any:
    if value is None:
        return value
    if low is not None and value < low:
        return low
    if high is not None and value > high:
        return high
    return value


def decode_range(flt: RangeFilter, raw: Any, *, strict: bool = False) -> RangeFilter | None:
    """
    Decode ``{"min": .., "max": ..}`` into a RangeFilter with current bounds.

    Unparsable bounds fall back to the filter defaults, parsed bounds are
    clamped to ``[min, max]`` and an inverted pair is swapped.
    """
    if not isinstance(raw, Mapping):
        if strict:
            raise FilterDecodeError(flt.key, f"expected a min/max mapping, got {raw!r}")
        logger.debug("Dropping range filter %r: unsupported value %r", flt.key, raw)
        return None

    default_low, default_high = flt.defaults
    bounds = []
    for name, default in (("min", default_low), ("max", default_high)):
        value = parse_range_bound(flt, raw.get(name))
        if value is None:
            if strict and raw.get(name) not in (None, ""):
                raise FilterDecodeError(flt.key, f"invalid {name} bound {raw.get(name)!r}")
            value = default
        bounds.append(_clamp(value, flt.min, flt.max))

    low, high = bounds
    if low is not None and high is not None and low > high:
        low, high = high, low
    return flt.with_bounds(low, high)


# ── Select entries ───────────────────────────────────────────────────


def _first(values: Any) -> list[Any]:
    if isinstance(values, list):
        return values[:1]
    return [values]


def _from_mapping(raw: Mapping[str, Any]) -> list[Any]:
    for name in ("ids", "id"):
        if name in raw:
            return select_entries(raw[name])
    if "value" in raw:
        return _first(raw["value"])
    return []


def _from_json_object(raw: str) -> list[Any]:
    try:
        data = json.loads(raw)
    except ValueError:
        return []
    if isinstance(data, dict) and "value" in data:
        return _first(data["value"])
    return []


def _from_json_array(raw: str) -> list[Any]:
    try:
        data = json.loads(raw)
    except ValueError:
        return []
    if isinstance(data, list):
        return data[:1]
    return []


def _from_sequence(raw: Any) -> list[Any]:
    out: list[Any] = []
    for item in raw:
        out.extend(select_entries(item))
    return out


def _is_json(prefix: str) -> Callable[[Any], bool]:
    return lambda raw: isinstance(raw, str) and raw.lstrip().startswith(prefix)


# Tried in order; the first matching shape extracts the raw identifiers.
SELECT_SHAPES: tuple[tuple[Callable[[Any], bool], Callable[[Any], list[Any]]], ...] = (
    (lambda raw: isinstance(raw, Mapping), _from_mapping),
    (_is_json("{"), _from_json_object),
    (_is_json("["), _from_json_array),
    (lambda raw: isinstance(raw, (list, tuple)), _from_sequence),
    (lambda raw: isinstance(raw, str) and not raw.strip(), lambda raw: []),
    (lambda raw: raw is not None, lambda raw: [raw]),
)


def select_entries(raw: Any) -> list[Any]:
    """Flatten any supported select value into raw (uncoerced) identifiers."""
    for matches, extract in SELECT_SHAPES:
        if matches(raw):
            return extract(raw)
    return []


def normalize_select_ids(flt: SelectFilter, raw: Any, *, strict: bool = False) -> list[Any]:
    ids: list[Any] = []
    for entry in select_entries(raw):
        if isinstance(entry, str):
            entry = entry.strip()
        try:
            value = flt.coerce(entry)
        except (TypeError, ValueError):
            if strict:
                raise FilterDecodeError(flt.key, f"invalid identifier {entry!r}") from None
            logger.debug("Dropping select entry %r for filter %r", entry, flt.key)
            continue
        if value not in ids:
            ids.append(value)
    return ids


# ── Decoding ─────────────────────────────────────────────────────────


def is_false(raw: Any) -> bool:
    if raw is None or raw is False:
        return True
    return isinstance(raw, str) and raw.strip().lower() in FALSE_VALUES


def decode_filter(flt: Filter, raw: Any, *, strict: bool = False) -> Filter | None:
    """Decode one raw URL value against its declaration; ``None`` removes it."""
    kind = filter_kind(flt)
    if kind == "boolean":
        return None if is_false(raw) else flt
    if kind == "range":
        return decode_range(flt, raw, strict=strict)  # type: ignore[arg-type]
    if kind == "select":
        ids = normalize_select_ids(flt, raw, strict=strict)  # type: ignore[arg-type]
        return flt.with_selected(ids) if ids else None  # type: ignore[union-attr]
    if isinstance(raw, Mapping) and raw:
        return flt.with_data(raw)  # type: ignore[union-attr]
    if strict and raw:
        raise FilterDecodeError(flt.key, f"expected a mapping, got {raw!r}")
    return None


def decode_filters(
    params: Mapping[str, Any] | None,
    declared: Mapping[str, Filter],
    *,
    strict: bool = False,
) -> dict[str, Filter]:
    """
    Rebuild filter instances from the raw ``filters`` URL value.

    Keys that are not declared are ignored.  The result follows declaration
    order.

    Args:
        params: Raw ``filters`` mapping (url key -> encoded value).
        declared: Declared filters by url key.
        strict: Raise :class:`FilterDecodeError` instead of dropping or
            defaulting malformed values.
    """
    if not params:
        return {}
    for key in params:
        if key not in declared:
            logger.debug("Ignoring undeclared filter key %r", key)

    decoded: dict[str, Filter] = {}
    for key, flt in declared.items():
        if key not in params:
            continue
        value = decode_filter(flt, params[key], strict=strict)
        if value is not None:
            decoded[key] = value
    return decoded


def update_filter_params(
    current: Mapping[str, Any] | None,
    incoming: Mapping[str, Any] | None,
    declared: Mapping[str, Filter],
) -> dict[str, Any]:
    """
    Merge one filter interaction into the encoded filter state.

    Boolean ``"true"`` sets and ``"false"`` removes, a range replaces its
    bounds, a select is normalised to ``{"ids": [...]}`` (removed when empty)
    and a transformer replaces its applied data.
    """
    state = dict(current or {})
    for key, raw in (incoming or {}).items():
        flt = declared.get(key)
        if flt is None:
            logger.debug("Ignoring undeclared filter key %r", key)
            continue
        kind = filter_kind(flt)
        if kind == "boolean":
            if is_false(raw):
                state.pop(key, None)
            else:
                state[key] = flt.key
        elif kind == "range":
            if isinstance(raw, Mapping) and "min" in raw and "max" in raw:
                state[key] = {"min": raw["min"], "max": raw["max"]}
        elif kind == "select":
            ids = normalize_select_ids(flt, raw)  # type: ignore[arg-type]
            if ids:
                state[key] = {"ids": ids}
            else:
                state.pop(key, None)
        elif isinstance(raw, Mapping) and raw:
            state[key] = dict(raw)
        elif isinstance(raw, Mapping):
            state.pop(key, None)
    return state
