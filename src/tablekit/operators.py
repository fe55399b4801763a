"""
SQLAlchemy operator compilation strategy.

Provides the ``TableOperator`` names, the ``SQLAlchemyOperator`` strategy
interface, a registry, and the built-in operators used by filters and search.

Usage::

    from tablekit.operators import DEFAULT_REGISTRY, TableOperator

    expr = DEFAULT_REGISTRY.apply(TableOperator.BETWEEN, column, (10, 20))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import func

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement


class TableOperator(str, Enum):
    """Operators the filter engine and search compiler emit."""

    IN = "in"
    BETWEEN = "between"
    # Substring matching
    CONTAINS = "contains"
    ICONTAINS = "icontains"
    LOWER_CONTAINS = "lower_contains"


class SQLAlchemyOperator(ABC):
    """
    Strategy interface for compiling a table operator
    into a SQLAlchemy ``ColumnElement[bool]``.
    """

    @property
    @abstractmethod
    def name(self) -> TableOperator:
        """The operator this strategy handles."""
        ...

    @abstractmethod
    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        """
        Build a SQLAlchemy filter clause.

        Args:
            column: A SQLAlchemy column, instrumented attribute or expression.
            value: The operand.

        Returns:
            A SQLAlchemy boolean expression.
        """
        ...


class SQLAlchemyOperatorRegistry:
    """Registry of ``SQLAlchemyOperator`` instances keyed by :class:`TableOperator`."""

    def __init__(self) -> None:
        self._operators: dict[TableOperator, SQLAlchemyOperator] = {}

    def register(self, operator: SQLAlchemyOperator) -> None:
        self._operators[operator.name] = operator

    def register_all(self, *operators: SQLAlchemyOperator) -> None:
        for op in operators:
            self.register(op)

    def get(self, name: TableOperator) -> SQLAlchemyOperator | None:
        return self._operators.get(name)

    def has(self, name: TableOperator) -> bool:
        return name in self._operators

    @property
    def supported_operators(self) -> set[TableOperator]:
        return set(self._operators.keys())

    def apply(self, name: TableOperator, column: Any, value: Any) -> ColumnElement[bool]:
        """
        Look up the operator and apply.

        Raises:
            ValueError: If the operator is not registered.
        """
        op = self.get(name)
        if op is None:
            raise ValueError(f"Unsupported operator for SQLAlchemy: {name}")
        return op.apply(column, value)


class InOperator(SQLAlchemyOperator):
    @property
    def name(self) -> TableOperator:
        return TableOperator.IN

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.in_(list(value)))


class BetweenOperator(SQLAlchemyOperator):
    @property
    def name(self) -> TableOperator:
        return TableOperator.BETWEEN

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.between(value[0], value[1]))


class ContainsOperator(SQLAlchemyOperator):
    """Case-sensitive substring match (``LIKE '%term%'``)."""

    @property
    def name(self) -> TableOperator:
        return TableOperator.CONTAINS

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.contains(value, autoescape=True))


class IContainsOperator(SQLAlchemyOperator):
    """Native case-insensitive substring match (``ILIKE`` where supported)."""

    @property
    def name(self) -> TableOperator:
        return TableOperator.ICONTAINS

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.icontains(value, autoescape=True))


class LowerContainsOperator(SQLAlchemyOperator):
    """Lower-cases both sides explicitly, for backends without ``ILIKE``."""

    @property
    def name(self) -> TableOperator:
        return TableOperator.LOWER_CONTAINS

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        pattern = f"%{escape_like(str(value).lower())}%"
        return cast(
            "ColumnElement[bool]",
            func.lower(column).like(pattern, escape=LIKE_ESCAPE),
        )


LIKE_ESCAPE = "/"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def build_default_registry() -> SQLAlchemyOperatorRegistry:
    """Create a registry with all built-in operators."""
    registry = SQLAlchemyOperatorRegistry()
    registry.register_all(
        InOperator(),
        BetweenOperator(),
        ContainsOperator(),
        IContainsOperator(),
        LowerContainsOperator(),
    )
    return registry


DEFAULT_REGISTRY: SQLAlchemyOperatorRegistry = build_default_registry()
