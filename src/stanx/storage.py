"""Concrete synchronizers. Opt-in — the store only needs the Synchronizer protocol.

MemoryStorage keeps values in a MemoryBackend. Stores whose fields use
synchronizers sharing one backend see each other's writes, the in-process
analogue of syncing several tabs through shared storage.

FileStorage persists each key as one JSON document.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Generic, TypeVar

from stanx._equal import equal

logger = logging.getLogger("stanx.storage")

T = TypeVar("T")


class MemoryBackend:
    """Shared key/value table that pushes changes to subscribed setters."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = dict(values) if values else {}
        self._subscribers: dict[str, list[Callable[[Any], None]]] = {}

    def read(self, key: str) -> Any:
        return self.values[key]

    def write(self, key: str, value: Any) -> None:
        if key in self.values and equal(self.values[key], value):
            return
        self.values[key] = value
        for setter in list(self._subscribers.get(key, ())):
            setter(value)

    def subscribe(self, key: str, setter: Callable[[Any], None]) -> None:
        self._subscribers.setdefault(key, []).append(setter)


class MemoryStorage(Generic[T]):
    """Synchronizer backed by a MemoryBackend.

    A key missing from the backend is a failed snapshot read, so the store
    falls back to ``initial_value`` and writes it to the backend.
    """

    def __init__(self, initial_value: T, backend: MemoryBackend | None = None) -> None:
        self.initial_value = initial_value
        self.backend = backend if backend is not None else MemoryBackend()

    def get_snapshot(self, key: str) -> T:
        return self.backend.read(key)

    def update(self, value: T, key: str) -> None:
        self.backend.write(key, value)

    def subscribe(self, setter: Callable[[T], None], key: str) -> None:
        self.backend.subscribe(key, setter)

    def __repr__(self) -> str:
        return f"MemoryStorage({self.initial_value!r})"


class FileStorage(Generic[T]):
    """Synchronizer persisting values as ``<directory>/<key>.json``.

    ``key`` overrides the field name as the storage key. Values must be JSON
    serializable.
    """

    def __init__(self, initial_value: T, directory: str | os.PathLike, key: str | None = None) -> None:
        self.initial_value = initial_value
        self.directory = Path(directory)
        self.key = key

    def path(self, key: str) -> Path:
        return self.directory / f"{self.key or key}.json"

    def get_snapshot(self, key: str) -> T:
        # Missing or corrupt files raise; the store treats that as "initialize".
        return json.loads(self.path(key).read_text(encoding="utf-8"))

    def update(self, value: T, key: str) -> None:
        path = self.path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value), encoding="utf-8")
        os.replace(tmp, path)
        logger.debug("Persisted %s", path)

    def __repr__(self) -> str:
        return f"FileStorage({self.initial_value!r}, {str(self.directory)!r})"
