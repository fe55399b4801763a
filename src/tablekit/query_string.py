"""URL parameters <-> QueryOptions, with bracket-nested query strings."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlencode

from .codec import decode_filters, encode_filters
from .config import TableOptions
from .options import QueryOptions, SortSpec
from .pagination import PaginationParser
from .search import normalize_search_term
from .sorting import SortPair, normalize_sort_params

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .filters import Filter

logger = logging.getLogger(__name__)

_KEY_PATH = re.compile(r"\[([^\[\]]*)\]")


def _split_key(key: str) -> list[str]:
    head, bracket, _ = key.partition("[")
    if not bracket or not head:
        return [key]
    return [head, *_KEY_PATH.findall(key[len(head):])]


def _insert(target: dict[str, Any], path: list[str], value: str) -> None:
    *parents, last = path
    node: Any = target
    for index, part in enumerate(parents):
        if not isinstance(node, dict):
            return
        following = path[index + 1]
        default: Any = [] if following == "" else {}
        child = node.setdefault(part, default)
        if isinstance(child, str):
            # scalar and nested forms of the same key; nested wins
            child = node[part] = default
        node = child
    if isinstance(node, list):
        node.append(value)
    elif isinstance(node, dict):
        if last == "":
            return
        existing = node.get(last)
        if existing is None:
            node[last] = value
        elif isinstance(existing, list):
            existing.append(value)
        elif isinstance(existing, str):
            node[last] = [existing, value]


def parse_query_string(qs: str) -> dict[str, Any]:
    """
    Parse ``qs`` into nested dicts and lists.

    ``filters[price][min]=10`` nests, a trailing ``[]`` collects a list, and
    repeated plain keys become lists.
    """
    params: dict[str, Any] = {}
    for key, value in parse_qsl(qs.lstrip("?"), keep_blank_values=True):
        _insert(params, _split_key(key), value)
    return params


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _flatten(prefix: str, value: Any) -> Iterable[tuple[str, str]]:
    if value is None or value == "":
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten(f"{prefix}[{key}]", item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, (Mapping, list, tuple)):
                logger.debug("Skipping nested value under %r in query string", prefix)
                continue
            if item is not None:
                yield f"{prefix}[]", _scalar(item)
    else:
        yield prefix, _scalar(value)


def build_query_string(params: Mapping[str, Any]) -> str:
    """Inverse of :func:`parse_query_string`; ``None`` and empty values are dropped."""
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        pairs.extend(_flatten(str(key), value))
    return urlencode(pairs) if pairs else ""


def _parse_sort_string(raw: str) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for part in raw.split(","):
        stripped = part.strip()
        if not stripped:
            continue
        if stripped.startswith("-"):
            out.append((stripped[1:], "desc"))
        else:
            out.append((stripped, "asc"))
    return out


def parse_sort_params(raw: Any, default: Iterable[SortPair] = ()) -> list[SortPair]:
    """
    Parse the ``sort_params`` URL value.

    Accepts a mapping (``sort_params[price]=desc``), a JSON object string, a
    list of pairs or a ``"-price,name"`` string.  Missing input yields
    ``default``.
    """
    if raw is None or raw == "" or raw == {} or raw == []:
        return list(default)
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("{"):
            try:
                raw = json.loads(text)
            except ValueError:
                logger.debug("Ignoring malformed sort_params %r", raw)
                return list(default)
        else:
            raw = _parse_sort_string(text)
    return normalize_sort_params(raw)


def build_query_options(
    params: Mapping[str, Any] | str | None,
    declared: Mapping[str, Filter],
    table_options: TableOptions | Mapping[str, Any] | None = None,
) -> QueryOptions:
    """
    Build per-request QueryOptions from URL parameters.

    Reads ``sort_params``, ``filters``, ``search``, ``page`` and ``per_page``.
    """
    if isinstance(params, str):
        params = parse_query_string(params)
    params = params or {}
    if not isinstance(table_options, TableOptions):
        table_options = TableOptions.resolve(table_options)

    sort = SortSpec(
        enabled=table_options.sorting_enabled,
        params=tuple(parse_sort_params(params.get("sort_params"), table_options.default_sort)),
    )
    pagination = PaginationParser().parse(
        dict(params),
        enabled=table_options.pagination_enabled,
        default_size=table_options.default_size,
        max_per_page=table_options.max_per_page,
        mode=table_options.pagination_mode,
    )
    raw_filters = params.get("filters")
    filters = decode_filters(raw_filters if isinstance(raw_filters, Mapping) else None, declared)
    search = normalize_search_term(params.get("search")) if table_options.search_enabled else ""
    return QueryOptions(sort=sort, pagination=pagination, filters=filters, search=search)


def encode_query_options(options: QueryOptions) -> dict[str, Any]:
    """URL parameters that reproduce ``options``."""
    params: dict[str, Any] = {}
    if options.sort.params:
        params["sort_params"] = {key: _scalar(direction) for key, direction in options.sort.params}
    filters = encode_filters(options.filters)
    if filters:
        params["filters"] = filters
    if options.search:
        params["search"] = options.search
    if options.pagination.enabled:
        params["page"] = options.pagination.page
        params["per_page"] = options.pagination.per_page
    return params
