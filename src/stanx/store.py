"""Store — named fields with change notification, computed fields and sync hooks.

A Store is built from a declaration mapping (see ``stanx.fields``). It seeds
the state table, generates one setter per writable field, wires synchronizers
to both ends of the write path, and evaluates computed fields.

Usage:
    store = create_store({"count": 0, "double": computed(lambda s: s.count * 2)})
    store.subscribe(["double"])(print)
    store.actions.set_count(5)    # prints 10
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Iterable, Mapping
from contextlib import AbstractContextManager
from typing import Any, Callable, TypeVar

from stanx._equal import equal
from stanx._tracking import tracked
from stanx.action import Actions, make_setter
from stanx.derived import ComputedField
from stanx.errors import SynchronizerReadFailure
from stanx.fields import Computed, Field, Synchronized, Synchronizer, classify, initial_value
from stanx.listeners import Disposer, Listener, ListenerRegistry
from stanx.state import StateTable

logger = logging.getLogger("stanx.store")

R = TypeVar("R")


class Store:
    """Reactive container of named fields."""

    def __init__(self, fields: Mapping[str, object]) -> None:
        self._fields: dict[str, Field] = {
            name: classify(name, declaration) for name, declaration in fields.items()
        }
        self._state = StateTable()
        self._registry = ListenerRegistry(self._state)
        self._computed: dict[str, ComputedField] = {}
        self._hydrating: set[asyncio.Task] = set()
        self.actions = Actions(
            {
                name: make_setter(self, name)
                for name, field in self._fields.items()
                if not isinstance(field, Computed)
            }
        )

        for name, field in self._fields.items():
            if isinstance(field, Synchronized):
                self._bind_synchronizer(name, field.synchronizer)
            elif not isinstance(field, Computed):
                self._state._commit(name, field.value)

        for name, field in self._fields.items():
            if isinstance(field, Computed):
                self._computed[name] = ComputedField(self, name, field.fn)
                self._computed[name].start()

    # --- Public operations ---

    def get_state(self) -> StateTable:
        """The live state table (not a copy)."""
        return self._state

    def subscribe(self, fields: Iterable[str] | str) -> Callable[[Listener], Disposer]:
        """Return a function that registers a listener for fields.

        Single-field listeners receive the new value; multi-field listeners are
        called without arguments.
        """
        names = self._names(fields)

        def _add(listener: Listener) -> Disposer:
            return self._registry.add(names, listener)

        return _add

    def effect(self, run: Callable[[StateTable], None], fields: Iterable[str] | None = None) -> Disposer:
        """Run ``run(state)`` now, and again whenever a field it depends on changes.

        Dependencies are the fields read during this first run unless fields is
        given. A run that reads nothing listens to every field.
        """
        if fields is None:
            _, reads = tracked(run, self._state)
            names = reads or list(self._state)
        else:
            names = self._names(fields)
            run(self._state)
        return self._registry.add(names, lambda *_: run(self._state))

    def reset(self, *fields: str) -> None:
        """Write initial values back through the setters (all fields if none named).

        Synchronized fields return to the synchronizer's declared initial value,
        not its snapshot. Computed fields are skipped.
        """
        for name in self._names(fields) if fields else list(self._fields):
            field = self._fields[name]
            if isinstance(field, Computed):
                continue
            self.actions[name](initial_value(field))

    def batch(self) -> AbstractContextManager[None]:
        """Context manager for batching writes.

        Usage:
            with store.batch():
                store.actions.set_a(1)
                store.actions.set_b(2)
                # listeners fire here, once per subscription
        """
        return self._registry.batch.scope()

    def batch_updates(self, callback: Callable[[], R]) -> R:
        """Call callback with notifications deferred until it returns or raises."""
        with self.batch():
            return callback()

    def select(self, *fields: str) -> Callable[[], dict[str, Any]]:
        """Return a getter for a snapshot dict of fields (all if none named).

        The getter returns the previous dict object while the values stay equal,
        so consumers can compare snapshots by identity.
        """
        names = self._names(fields) if fields else list(self._fields)
        last: dict[str, Any] | None = None

        def _snapshot() -> dict[str, Any]:
            nonlocal last
            current = {name: self._state[name] for name in names}
            if last is not None and equal(last, current):
                return last
            last = current
            return current

        return _snapshot

    def dependencies(self, name: str) -> list[str]:
        """Fields read by the latest evaluation of a computed field."""
        return list(self._computed[name].dependencies)

    async def hydrated(self) -> None:
        """Wait until every pending asynchronous snapshot read has settled."""
        while self._hydrating:
            await asyncio.gather(*list(self._hydrating))

    # --- Synchronizers ---

    def _bind_synchronizer(self, name: str, sync: Synchronizer) -> None:
        try:
            snapshot = self._read_snapshot(name, sync)
        except SynchronizerReadFailure:
            logger.warning("Falling back to initial value for %r", name, exc_info=True)
            self._state._commit(name, sync.initial_value)
            sync.update(sync.initial_value, name)
        else:
            if inspect.isawaitable(snapshot):
                self._state._commit(name, sync.initial_value)
                self._hydrate_later(name, sync, snapshot)
            else:
                self._state._commit(name, snapshot)

        self._registry.add([name], lambda value: sync.update(value, name))
        subscribe = getattr(sync, "subscribe", None)
        if subscribe is not None:
            subscribe(self.actions[name], name)

    def _read_snapshot(self, name: str, sync: Synchronizer) -> Any:
        try:
            return sync.get_snapshot(name)
        except Exception as exc:
            raise SynchronizerReadFailure(name) from exc

    def _hydrate_later(self, name: str, sync: Synchronizer, pending) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            # Nothing will resume a continuation; settle it now.
            logger.debug("No running event loop; settling snapshot for %r synchronously", name)
            try:
                value = asyncio.run(self._await_snapshot(name, pending))
            except SynchronizerReadFailure:
                logger.warning("Falling back to initial value for %r", name, exc_info=True)
                value = None
            if value is None:
                sync.update(sync.initial_value, name)
            elif not equal(value, sync.initial_value):
                # Same outcome as the setter on the loop path: commit, then echo.
                self._state._commit(name, value)
                sync.update(value, name)
            return

        task = loop.create_task(self._hydrate(name, sync, pending))
        self._hydrating.add(task)
        task.add_done_callback(self._hydrating.discard)

    async def _hydrate(self, name: str, sync: Synchronizer, pending) -> None:
        try:
            value = await self._await_snapshot(name, pending)
        except SynchronizerReadFailure:
            logger.warning("Falling back to initial value for %r", name, exc_info=True)
            value = None
        if value is None:
            sync.update(sync.initial_value, name)
            return
        logger.debug("Hydrated %r from synchronizer snapshot", name)
        self.actions[name](value)

    async def _await_snapshot(self, name: str, pending) -> Any:
        try:
            return await pending
        except Exception as exc:
            raise SynchronizerReadFailure(name) from exc

    # --- Helpers ---

    def _names(self, fields: Iterable[str] | str) -> list[str]:
        names = [fields] if isinstance(fields, str) else list(fields)
        for name in names:
            if name not in self._fields:
                raise KeyError(name)
        return names

    def __repr__(self) -> str:
        return f"Store({', '.join(self._fields)})"


def create_store(fields: Mapping[str, object]) -> Store:
    """Factory to create a Store from field declarations.

    Usage:
        store = create_store({
            "count": 0,
            "double": computed(lambda s: s.count * 2),
        })
        store.actions.set_count(5)
        store.get_state().double  # 10
    """
    return Store(fields)
