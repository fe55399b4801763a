"""Field declarations: what a table shows, sorts and searches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from .exceptions import ConfigurationError, DuplicateKeyError
from .expressions import Bindings, resolve_expression

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

# "price" or ("category", "name")
FieldSpec = Union[str, tuple[str, str]]


@dataclass(frozen=True)
class FieldRef:
    """A column on the root entity (``assoc is None``) or on an association."""

    name: str
    assoc: str | None = None

    @classmethod
    def parse(cls, spec: FieldSpec | FieldRef) -> FieldRef:
        if isinstance(spec, FieldRef):
            return spec
        if isinstance(spec, str):
            return cls(spec)
        if isinstance(spec, tuple) and len(spec) == 2:
            assoc, name = spec
            return cls(str(name), str(assoc))
        raise ConfigurationError(
            f"Field reference must be a name or an (association, field) pair, "
            f"got {spec!r}"
        )

    def resolve(self, bindings: Bindings) -> Any:
        return bindings.column(self.name, self.assoc)


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One column of a table.

    Attributes:
        key: Result label and sort key.
        label: Human readable header (display only).
        sortable: Whether the column may be used in ``sort_params``.
        searchable: Whether the column takes part in text search.
        hidden: Display-only flag; hidden columns are still projected,
            sorted and searched.
        assoc: ``(association_name, remote_field)`` for joined columns.
        computed: Deferred expression for calculated columns.
    """

    key: str
    label: str | None = None
    sortable: bool = False
    searchable: bool = False
    hidden: bool = False
    assoc: tuple[str, str] | None = None
    computed: Any = None

    def __post_init__(self) -> None:
        if self.assoc is not None and self.computed is not None:
            raise ConfigurationError(
                f"Field {self.key!r} cannot be both an association and computed"
            )
        if self.assoc is not None and len(self.assoc) != 2:
            raise ConfigurationError(
                f"Field {self.key!r}: assoc must be (association, field), "
                f"got {self.assoc!r}"
            )

    @property
    def association(self) -> str | None:
        return self.assoc[0] if self.assoc else None

    @property
    def ref(self) -> FieldRef:
        if self.assoc is not None:
            return FieldRef(self.assoc[1], self.assoc[0])
        return FieldRef(self.key)

    def expression(self, bindings: Bindings) -> Any:
        """Return the column element this field reads from."""
        if self.computed is not None:
            return resolve_expression(self.computed, bindings)
        return self.ref.resolve(bindings)

    @property
    def display_label(self) -> str:
        return self.label or self.key.replace("_", " ").title()


def field(key: str, **options: Any) -> FieldDescriptor:
    """Shorthand for :class:`FieldDescriptor` used in ``fields()`` lists."""
    return FieldDescriptor(key, **options)


def declare_fields(
    fields: Iterable[FieldDescriptor],
) -> tuple[FieldDescriptor, ...]:
    """Validate key uniqueness and freeze the declaration order."""
    seen: set[str] = set()
    out: list[FieldDescriptor] = []
    for descriptor in fields:
        if descriptor.key in seen:
            raise DuplicateKeyError("field", descriptor.key)
        seen.add(descriptor.key)
        out.append(descriptor)
    return tuple(out)


def find_field(fields: Sequence[FieldDescriptor], key: str) -> FieldDescriptor | None:
    for descriptor in fields:
        if descriptor.key == key:
            return descriptor
    return None


def searchable_fields(fields: Iterable[FieldDescriptor]) -> list[FieldDescriptor]:
    return [f for f in fields if f.searchable]


def visible_fields(fields: Iterable[FieldDescriptor]) -> list[FieldDescriptor]:
    return [f for f in fields if not f.hidden]
