"""
Table options.

Options resolve in three layers, later layers winning key by key:
``DEFAULT_TABLE_OPTIONS`` -> application options -> resource options.
Nothing here is mutated; every call merges afresh.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .exceptions import ConfigurationError
from .search import SearchMode
from .sorting import SortPair, normalize_sort_params

PAGINATION_MODES = ("buttons", "infinite_scroll")
DEBUG_LEVELS = ("off", "query", "trace")

DEFAULT_TABLE_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        "pagination": {
            "enabled": True,
            "mode": "buttons",
            "sizes": (10, 25, 50),
            "default_size": 10,
            "max_per_page": 50,
        },
        "sorting": {
            "enabled": True,
            "default_sort": (("id", "asc"),),
        },
        "exports": {
            "enabled": True,
            "formats": ("csv", "pdf"),
        },
        "search": {
            "enabled": True,
            "debounce": 300,
            "placeholder": "Search...",
            "mode": "ilike",
        },
        "use_streams": True,
        "fixed_header": False,
        "debug": "off",
    }
)


def deep_merge(left: Mapping[str, Any], right: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge two mappings; ``right`` wins, non-mappings replace."""
    merged: dict[str, Any] = {
        key: deep_merge(value, {}) if isinstance(value, Mapping) else value
        for key, value in left.items()
    }
    for key, value in right.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        elif isinstance(value, Mapping):
            merged[key] = deep_merge(value, {})
        else:
            merged[key] = value
    return merged


def resolve_table_options(
    resource_options: Mapping[str, Any] | None = None,
    app_options: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Merge defaults, application and resource options.

    ``app_options`` may carry a top-level ``search_mode`` shortcut; it is used
    unless the resource sets ``search.mode`` itself.
    """
    resource_options = resource_options or {}
    app = dict(app_options or {})
    app_search_mode = app.pop("search_mode", None)

    merged = deep_merge(deep_merge(DEFAULT_TABLE_OPTIONS, app), resource_options)
    resource_search = resource_options.get("search")
    if app_search_mode and not (
        isinstance(resource_search, Mapping) and resource_search.get("mode")
    ):
        merged["search"]["mode"] = app_search_mode
    return merged


@dataclass(frozen=True)
class TableOptions:
    """Typed, validated view over a resolved options mapping."""

    pagination_enabled: bool
    pagination_mode: str
    page_sizes: tuple[int, ...]
    default_size: int
    max_per_page: int
    sorting_enabled: bool
    default_sort: tuple[SortPair, ...]
    exports_enabled: bool
    export_formats: tuple[str, ...]
    search_enabled: bool
    search_debounce: int
    search_placeholder: str
    search_mode: SearchMode
    use_streams: bool
    fixed_header: bool
    debug: str

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> TableOptions:
        pagination = options.get("pagination", {})
        sorting = options.get("sorting", {})
        exports = options.get("exports", {})
        search = options.get("search", {})

        mode = str(pagination.get("mode", "buttons"))
        if mode not in PAGINATION_MODES:
            raise ConfigurationError(
                f"pagination.mode must be one of {', '.join(PAGINATION_MODES)}, got {mode!r}"
            )
        debug = str(options.get("debug", "off"))
        if debug not in DEBUG_LEVELS:
            raise ConfigurationError(
                f"debug must be one of {', '.join(DEBUG_LEVELS)}, got {debug!r}"
            )
        try:
            search_mode = SearchMode(search.get("mode", "ilike"))
        except ValueError:
            raise ConfigurationError(
                f"Unknown search mode {search.get('mode')!r}; expected one of "
                f"{', '.join(m.value for m in SearchMode)}"
            ) from None

        max_per_page = int(pagination.get("max_per_page", 50))
        if max_per_page < 1:
            raise ConfigurationError("pagination.max_per_page must be at least 1")

        return cls(
            pagination_enabled=bool(pagination.get("enabled", True)),
            pagination_mode=mode,
            page_sizes=tuple(int(size) for size in pagination.get("sizes", ())),
            default_size=int(pagination.get("default_size", 10)),
            max_per_page=max_per_page,
            sorting_enabled=bool(sorting.get("enabled", True)),
            default_sort=tuple(normalize_sort_params(sorting.get("default_sort", ()))),
            exports_enabled=bool(exports.get("enabled", True)),
            export_formats=tuple(exports.get("formats", ())),
            search_enabled=bool(search.get("enabled", True)),
            search_debounce=int(search.get("debounce", 300)),
            search_placeholder=str(search.get("placeholder", "Search...")),
            search_mode=search_mode,
            use_streams=bool(options.get("use_streams", True)),
            fixed_header=bool(options.get("fixed_header", False)),
            debug=debug,
        )

    @classmethod
    def resolve(
        cls,
        resource_options: Mapping[str, Any] | None = None,
        app_options: Mapping[str, Any] | None = None,
    ) -> TableOptions:
        return cls.from_mapping(resolve_table_options(resource_options, app_options))
