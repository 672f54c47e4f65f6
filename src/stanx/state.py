"""State table holding one authoritative value per field name.

Reads go through ``__getitem__`` (or attribute access) and are recorded by the
active tracking scope, which is how computed fields and effects discover their
dependencies. Writes are only made by the store through ``_commit``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator

from stanx._tracking import record_read


class StateTable(Mapping):
    """Live, read-only mapping of field name to current value."""

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def __getitem__(self, name: str) -> Any:
        record_read(name)
        return self._values[name]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def peek(self, name: str) -> Any:
        """Read without registering a dependency."""
        return self._values[name]

    def _commit(self, name: str, value: Any) -> None:
        self._values[name] = value

    def __repr__(self) -> str:
        return f"StateTable({self._values!r})"
