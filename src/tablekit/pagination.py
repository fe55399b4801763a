"""PaginationParser and the overfetch-by-one page protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

from .options import PaginationSpec

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select

    from .options import QueryOptions


class PageResult(NamedTuple):
    rows: list[Any]
    has_next_page: bool
    page: int | None
    per_page: int | None


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_page(raw: Any) -> int:
    """Missing, unparsable or non-positive page numbers become ``1``."""
    page = _to_int(raw)
    if page is None or page < 1:
        return 1
    return page


def validate_per_page(raw: Any, *, default: int, max_per_page: int) -> int:
    """
    Validate a ``per_page`` URL value.

    Missing or unparsable input falls back to ``default``; a parsed value
    outside ``[1, max_per_page]`` is clamped to the nearest bound, so ``0``
    or a negative size gives 1 row per page rather than ``max_per_page``.
    """
    per_page = _to_int(raw)
    if per_page is None:
        return min(max(default, 1), max_per_page)
    return min(max(per_page, 1), max_per_page)


class PaginationParser:
    """Parse ``page``/``per_page`` from query params into a PaginationSpec."""

    def parse(
        self,
        query_params: dict[str, Any],
        *,
        page_key: str = "page",
        per_page_key: str = "per_page",
        enabled: bool = True,
        default_size: int = 10,
        max_per_page: int = 50,
        mode: str = "buttons",
    ) -> PaginationSpec:
        return PaginationSpec(
            enabled=enabled,
            page=validate_page(query_params.get(page_key)),
            per_page=validate_per_page(
                query_params.get(per_page_key),
                default=default_size,
                max_per_page=max_per_page,
            ),
            max_per_page=max_per_page,
            mode=mode,
        )


def paginate(stmt: Select[Any], spec: PaginationSpec) -> Select[Any]:
    """
    Apply ``LIMIT per_page + 1 OFFSET (page - 1) * per_page``.

    Disabled pagination returns ``stmt`` unchanged.
    """
    if not spec.enabled:
        return stmt
    return stmt.limit(spec.limit).offset(spec.offset)


def split_overflow(rows: Sequence[Any], per_page: int) -> tuple[list[Any], bool]:
    """Strip the overfetched row; its presence means another page exists."""
    items = list(rows)
    if len(items) > per_page:
        return items[:per_page], True
    return items, False


def next_page(options: QueryOptions) -> QueryOptions:
    """Options for the following page (infinite scroll "load more")."""
    return options.with_page(options.pagination.page + 1)
