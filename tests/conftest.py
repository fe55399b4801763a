"""Shared fixtures for the tablekit test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from catalog_models import Base, Category, Product, ProductTable, Supplier
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as sess:
        yield sess


@pytest.fixture
def products() -> ProductTable:
    return ProductTable()


@pytest.fixture
async def catalog(session: AsyncSession) -> AsyncSession:
    """A small catalog: two categories, two suppliers, four products."""
    gadgets = Category(id=1, name="Gadgets")
    tools = Category(id=2, name="Tools")
    acme = Supplier(id=1, name="Acme")
    globex = Supplier(id=2, name="Globex")
    session.add_all(
        [
            Product(
                id=1, name="Gadget", price=25, stock_quantity=5,
                category=gadgets, suppliers=[acme],
            ),
            Product(
                id=2, name="Gadget Plus", price=75, stock_quantity=0,
                category=gadgets, suppliers=[acme, globex],
            ),
            Product(
                id=3, name="Hammer", price=150, stock_quantity=12,
                category=tools, suppliers=[globex],
            ),
            # no category, no suppliers
            Product(id=4, name="Mystery Box", price=60, stock_quantity=3),
        ]
    )
    await session.commit()
    return session


@pytest.fixture
def add_products(session: AsyncSession):
    async def _add(*rows: dict[str, Any]) -> None:
        session.add_all(Product(**row) for row in rows)
        await session.commit()

    return _add
