"""Resource providers: where the base statement of a table comes from."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from sqlalchemy import Select, inspect, select
from sqlalchemy.exc import NoInspectionAvailable

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


@dataclass(frozen=True)
class SchemaProvider:
    """Select from a mapped class; the composer owns joins and projection."""

    model: type[Any]

    owns_projection = False

    def base_query(self) -> Select[Any]:
        return select(self.model).select_from(self.model)

    def root_model(self, stmt: Select[Any]) -> type[Any]:
        return self.model


@dataclass(frozen=True)
class CustomQueryProvider:
    """
    Build the base statement with ``function(*args, **kwargs)``.

    The function returns a ``Select`` whose first column entity is the root
    mapped class.  It owns the projection; the composer still joins the
    associations fields and filters need, skipping any the function already
    joined through :func:`tablekit.joins.association_alias`.
    """

    function: Callable[..., Select[Any]]
    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = dataclasses.field(default_factory=dict)

    owns_projection = True

    def base_query(self) -> Select[Any]:
        stmt = self.function(*self.args, **self.kwargs)
        if not isinstance(stmt, Select):
            raise ConfigurationError(
                f"Custom query provider {self.function!r} returned "
                f"{type(stmt).__name__}, expected a Select"
            )
        return stmt

    def root_model(self, stmt: Select[Any]) -> type[Any]:
        for description in stmt.column_descriptions:
            entity = description.get("entity")
            if entity is not None:
                return inspect(entity).mapper.class_  # type: ignore[no-any-return]
        raise ConfigurationError(
            f"Cannot determine the root entity of the query returned by "
            f"{self.function!r}"
        )


ResourceProvider = Union[SchemaProvider, CustomQueryProvider]


def _is_mapped(value: Any) -> bool:
    try:
        inspect(value)
    except NoInspectionAvailable:
        return False
    return isinstance(value, type)


def as_provider(value: Any) -> ResourceProvider:
    """
    Coerce a provider declaration.

    Accepts a provider instance, a mapped class, ``(function, args)`` or
    ``(owner, "function_name", args)``.
    """
    if isinstance(value, (SchemaProvider, CustomQueryProvider)):
        return value
    if _is_mapped(value):
        return SchemaProvider(value)
    if isinstance(value, tuple):
        if len(value) == 2 and callable(value[0]):
            return CustomQueryProvider(value[0], tuple(value[1]))
        if len(value) == 3 and isinstance(value[1], str):
            owner, name, args = value
            return CustomQueryProvider(getattr(owner, name), tuple(args))
    raise ConfigurationError(f"Unsupported resource provider: {value!r}")
