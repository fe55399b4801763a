"""Async execution of composed statements."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .pagination import PageResult, split_overflow

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from .options import PaginationSpec

logger = logging.getLogger(__name__)


async def fetch_page(
    session: AsyncSession,
    stmt: Select[Any],
    pagination: PaginationSpec,
) -> PageResult:
    """
    Execute ``stmt`` and apply the overfetch protocol.

    Rows are returned as ``RowMapping`` objects keyed by column label.  With
    pagination disabled every row is returned and ``has_next_page`` is
    ``False``.
    """
    result = await session.execute(stmt)
    rows = list(result.mappings().all())
    if not pagination.enabled:
        return PageResult(rows=rows, has_next_page=False, page=None, per_page=None)

    page_rows, has_next_page = split_overflow(rows, pagination.per_page)
    logger.debug(
        "Fetched page %d (%d rows, has_next_page=%s)",
        pagination.page,
        len(page_rows),
        has_next_page,
    )
    return PageResult(
        rows=page_rows,
        has_next_page=has_next_page,
        page=pagination.page,
        per_page=pagination.per_page,
    )
