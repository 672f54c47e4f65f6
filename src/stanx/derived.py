"""Computed fields — derived state with automatic dependency tracking.

A computed field wraps a derivation. Each evaluation records which fields the
derivation reads and re-subscribes to exactly that set, so dependency edges
can grow or shrink from one evaluation to the next.

Computed fields are eager: a change to any dependency recomputes at once (or
at flush time inside a batch) and commits through the equality-gated write
path, so dependents and listeners downstream react transitively.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from stanx._equal import equal
from stanx._tracking import tracked
from stanx.errors import DerivationError

if TYPE_CHECKING:
    from stanx.store import Store


class ComputedField:
    """Binding of one derivation to one field of a store."""

    __slots__ = ("_store", "name", "_fn", "_dispose", "dependencies")

    def __init__(self, store: Store, name: str, fn: Callable[[Any], Any]) -> None:
        self._store = store
        self.name = name
        self._fn = fn
        self._dispose: Callable[[], None] | None = None
        self.dependencies: list[str] = []

    def start(self) -> None:
        """First evaluation. Stores the value directly, without notification."""
        value = self._evaluate()
        self._store._state._commit(self.name, value)

    def _recompute(self, *_) -> None:
        """Called by the registry when a dependency changed."""
        value = self._evaluate()
        state = self._store._state
        if equal(state.peek(self.name), value):
            return
        state._commit(self.name, value)
        self._store._registry.notify(self.name)

    def _evaluate(self) -> Any:
        try:
            value, reads = tracked(self._fn, self._store._state)
        except DerivationError:
            raise
        except Exception as exc:
            raise DerivationError(self.name) from exc
        self._resubscribe(reads)
        return value

    def _resubscribe(self, reads: list[str]) -> None:
        if self._dispose is not None and set(reads) == set(self.dependencies):
            return
        # Drop stale edges before installing the new ones.
        if self._dispose is not None:
            self._dispose()
            self._dispose = None
        self.dependencies = reads
        if reads:
            self._dispose = self._store._registry.add(
                reads, lambda *args: self._recompute(*args), derived=True
            )

    def __repr__(self) -> str:
        return f"ComputedField({self.name!r}, deps={self.dependencies!r})"
