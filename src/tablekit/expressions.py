"""
Deferred column expressions.

Field and filter declarations are written once per resource, but the FROM
entries they refer to (the root entity and the association aliases joined for
a request) only exist while a statement is being composed.  Declarations
therefore hold *deferred* expressions: values that are turned into SQLAlchemy
``ColumnElement`` objects against a :class:`Bindings` at composition time.

Usage::

    from tablekit.expressions import F

    in_stock = F("stock_quantity") > 0
    total_value = F("price") * F("stock_quantity")
    category_name = F("name", assoc="category")

A plain callable ``(bindings) -> ColumnElement`` is accepted anywhere an
:class:`Expr` is, and so is an already-built SQLAlchemy expression.
"""

from __future__ import annotations

import operator
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, inspect

from .exceptions import UnknownAssociationError, UnknownFieldError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping


def entity_name(entity: Any) -> str:
    """Return the mapped class name behind a class or an aliased class."""
    return inspect(entity).mapper.class_.__name__


def column_names(entity: Any) -> list[str]:
    mapper = inspect(entity).mapper
    return [attr.key for attr in mapper.column_attrs]


def entity_column(entity: Any, name: str) -> Any:
    """
    Return the queryable attribute ``name`` of ``entity``.

    Raises:
        UnknownFieldError: If the attribute does not exist or is a
            relationship rather than a column-like attribute.
    """
    mapper = inspect(entity).mapper
    attr = getattr(entity, name, None)
    if (
        attr is None
        or name in mapper.relationships
        or not (hasattr(attr, "__clause_element__") or isinstance(attr, ColumnElement))
    ):
        raise UnknownFieldError(name, entity_name(entity), column_names(entity))
    return attr


class Bindings:
    """
    Named FROM entries available while a statement is composed.

    ``root`` is the mapped class the statement selects from; associations are
    the aliases joined under their association name.
    """

    __slots__ = ("_aliases", "root")

    def __init__(self, root: Any, aliases: Mapping[str, Any] | None = None) -> None:
        self.root = root
        self._aliases: dict[str, Any] = dict(aliases or {})

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._aliases)

    def has(self, name: str) -> bool:
        return name in self._aliases

    def association(self, name: str) -> Any:
        try:
            return self._aliases[name]
        except KeyError:
            raise UnknownAssociationError(
                name, entity_name(self.root), list(self._aliases)
            ) from None

    def column(self, name: str, assoc: str | None = None) -> Any:
        entity = self.root if assoc is None else self.association(assoc)
        return entity_column(entity, name)

    def with_association(self, name: str, alias: Any) -> Bindings:
        """Return a copy with ``alias`` bound under ``name``."""
        aliases = dict(self._aliases)
        aliases[name] = alias
        return Bindings(self.root, aliases)


def expression_associations(*values: Any) -> tuple[str, ...]:
    """Association names referenced by deferred values, in first-seen order."""
    names: list[str] = []
    for value in values:
        for name in value.associations if isinstance(value, Expr) else ():
            if name not in names:
                names.append(name)
    return tuple(names)


def resolve_expression(value: Any, bindings: Bindings) -> Any:
    """Turn a deferred value into something SQLAlchemy can compile."""
    if isinstance(value, Expr):
        return value.resolve(bindings)
    if isinstance(value, ColumnElement) or hasattr(value, "__clause_element__"):
        return value
    if callable(value):
        return value(bindings)
    return value


class Expr:
    """A lazily-evaluated SQL expression built with Python operators."""

    __slots__ = ("_build", "associations")

    def __init__(
        self,
        build: Callable[[Bindings], Any],
        associations: tuple[str, ...] = (),
    ) -> None:
        self._build = build
        # associations that must be joined before resolving
        self.associations = associations

    def resolve(self, bindings: Bindings) -> Any:
        return self._build(bindings)

    def _binary(self, other: Any, op: Callable[[Any, Any], Any]) -> Expr:
        return Expr(
            lambda b: op(self.resolve(b), resolve_expression(other, b)),
            expression_associations(self, other),
        )

    def _reflected(self, other: Any, op: Callable[[Any, Any], Any]) -> Expr:
        return Expr(
            lambda b: op(resolve_expression(other, b), self.resolve(b)),
            expression_associations(other, self),
        )

    # comparison
    def __eq__(self, other: Any) -> Expr:  # type: ignore[override]
        return self._binary(other, operator.eq)

    def __ne__(self, other: Any) -> Expr:  # type: ignore[override]
        return self._binary(other, operator.ne)

    def __lt__(self, other: Any) -> Expr:
        return self._binary(other, operator.lt)

    def __le__(self, other: Any) -> Expr:
        return self._binary(other, operator.le)

    def __gt__(self, other: Any) -> Expr:
        return self._binary(other, operator.gt)

    def __ge__(self, other: Any) -> Expr:
        return self._binary(other, operator.ge)

    __hash__ = object.__hash__

    # arithmetic
    def __add__(self, other: Any) -> Expr:
        return self._binary(other, operator.add)

    def __radd__(self, other: Any) -> Expr:
        return self._reflected(other, operator.add)

    def __sub__(self, other: Any) -> Expr:
        return self._binary(other, operator.sub)

    def __rsub__(self, other: Any) -> Expr:
        return self._reflected(other, operator.sub)

    def __mul__(self, other: Any) -> Expr:
        return self._binary(other, operator.mul)

    def __rmul__(self, other: Any) -> Expr:
        return self._reflected(other, operator.mul)

    def __truediv__(self, other: Any) -> Expr:
        return self._binary(other, operator.truediv)

    # boolean
    def __and__(self, other: Any) -> Expr:
        return self._binary(other, operator.and_)

    def __or__(self, other: Any) -> Expr:
        return self._binary(other, operator.or_)

    def __invert__(self) -> Expr:
        return Expr(lambda b: ~self.resolve(b), self.associations)

    # column methods
    def between(self, low: Any, high: Any) -> Expr:
        return Expr(
            lambda b: self.resolve(b).between(
                resolve_expression(low, b), resolve_expression(high, b)
            ),
            expression_associations(self, low, high),
        )

    def in_(self, values: Iterable[Any]) -> Expr:
        items = list(values)
        return Expr(lambda b: self.resolve(b).in_(items), self.associations)

    def is_(self, other: Any) -> Expr:
        return Expr(lambda b: self.resolve(b).is_(other), self.associations)

    def is_not(self, other: Any) -> Expr:
        return Expr(lambda b: self.resolve(b).is_not(other), self.associations)

    def contains(self, other: str) -> Expr:
        return Expr(
            lambda b: self.resolve(b).contains(other, autoescape=True), self.associations
        )

    def icontains(self, other: str) -> Expr:
        return Expr(
            lambda b: self.resolve(b).icontains(other, autoescape=True), self.associations
        )

    def apply(self, fn: Callable[[Any], Any]) -> Expr:
        """Wrap the resolved element, e.g. ``F("name").apply(func.lower)``."""
        return Expr(lambda b: fn(self.resolve(b)), self.associations)

    def __repr__(self) -> str:
        return f"<Expr {self._build!r}>"


class ColumnRef(Expr):
    """Reference to a root column or to a column of a joined association."""

    __slots__ = ("assoc", "name")

    def __init__(self, name: str, assoc: str | None = None) -> None:
        self.name = name
        self.assoc = assoc
        super().__init__(
            lambda b: b.column(name, assoc), () if assoc is None else (assoc,)
        )

    def __repr__(self) -> str:
        if self.assoc is None:
            return f"F({self.name!r})"
        return f"F({self.name!r}, assoc={self.assoc!r})"


def F(name: str, assoc: str | None = None) -> ColumnRef:  # noqa: N802
    """Shorthand for :class:`ColumnRef`."""
    return ColumnRef(name, assoc)
