"""Field declarations: explicit tags for what a field is.

A store is declared from a mapping of field name to declaration:

    create_store({
        "count": 0,                                   # Literal
        "double": computed(lambda s: s.count * 2),    # Computed
        "user": MemoryStorage("john"),                # Synchronized
    })

Untagged values are classified by ``classify``; tags make the kind explicit
where inference would be ambiguous.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Protocol, TypeVar, Union, runtime_checkable

from stanx.errors import InvalidFieldValue

T = TypeVar("T")


@runtime_checkable
class Synchronizer(Protocol[T]):
    """External value source and sink bound to one field.

    - ``initial_value``: value used before (or instead of) a snapshot.
    - ``get_snapshot(key)``: current external value, or an awaitable of it.
    - ``update(value, key)``: receives every committed value.

    A synchronizer may also define ``subscribe(setter, key)``; the store then
    passes the field's setter so externally-driven changes flow back through
    the normal write path.
    """

    initial_value: T

    def get_snapshot(self, key: str) -> Any:
        ...

    def update(self, value: T, key: str) -> None:
        ...


@dataclass(frozen=True)
class Literal(Generic[T]):
    value: T


@dataclass(frozen=True)
class Computed(Generic[T]):
    """Read-only field derived from other fields.

    ``fn`` receives the state view; every field it reads becomes a dependency.
    """

    fn: Callable[[Any], T]


@dataclass(frozen=True)
class Synchronized(Generic[T]):
    synchronizer: Synchronizer[T]


Field = Union[Literal, Computed, Synchronized]


def computed(fn: Callable[[Any], T]) -> Computed[T]:
    """Decorator/factory to declare a computed field.

    Usage:
        @computed
        def total(state):
            return state.price * state.quantity

        store = create_store({"price": 2, "quantity": 3, "total": total})
    """
    return Computed(fn)


def classify(name: str, declaration: object) -> Field:
    """Return the tagged form of a declaration, rejecting bare callables."""
    if isinstance(declaration, Literal):
        if callable(declaration.value):
            raise InvalidFieldValue(name)
        return declaration
    if isinstance(declaration, (Computed, Synchronized)):
        return declaration
    if isinstance(declaration, Synchronizer):
        return Synchronized(declaration)
    if callable(declaration):
        raise InvalidFieldValue(name)
    return Literal(declaration)


def initial_value(field: Field) -> Any:
    """The value a field holds at fresh construction, ignoring snapshots."""
    if isinstance(field, Synchronized):
        return field.synchronizer.initial_value
    if isinstance(field, Literal):
        return field.value
    raise TypeError("computed fields have no initial value")
