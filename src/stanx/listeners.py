"""Listener registry and notification fan-out.

Subscriptions are addressed by a composite key: the ordered, deduplicated
field names joined by ``KEY_SEPARATOR``. A write to a field notifies every key
containing that field. Single-field keys receive the field's current value;
multi-field keys are called without arguments and re-read state themselves.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from stanx._tracking import BatchContext
from stanx.state import StateTable

logger = logging.getLogger("stanx.listeners")

KEY_SEPARATOR = "\0"

Listener = Callable[..., None]
Disposer = Callable[[], None]


def composite_key(fields: Iterable[str]) -> str:
    return KEY_SEPARATOR.join(dict.fromkeys(fields))


def key_fields(key: str) -> list[str]:
    return key.split(KEY_SEPARATOR) if key else []


class ListenerRegistry:
    """Composite-key listener lists with batched delivery.

    Two lanes per key: derived listeners (computed-field recomputation) and
    plain listeners. Every delivery runs the derived lane of all affected keys
    before any plain listener, so plain listeners never observe a stale
    computed value.
    """

    def __init__(self, state: StateTable) -> None:
        self._state = state
        self._listeners: dict[str, list[Listener]] = {}
        self._derived: dict[str, list[Listener]] = {}
        # (derived queue, every key seen) while a delivery runs its derived
        # lane; None when idle.
        self._collecting: tuple[list[str], dict[str, None]] | None = None
        self.batch = BatchContext(self.flush)

    def add(self, fields: Iterable[str], listener: Listener, *, derived: bool = False) -> Disposer:
        """Append listener under the key for fields. Returns an idempotent disposer."""
        table = self._derived if derived else self._listeners
        key = composite_key(fields)
        table.setdefault(key, []).append(listener)
        removed = False

        def _dispose() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            entries = table.get(key, [])
            for i, entry in enumerate(entries):
                if entry is listener:
                    del entries[i]
                    break

        return _dispose

    def notify(self, field: str) -> None:
        """Deliver (or defer, while batching) every key containing field."""
        keys = [k for k in dict.fromkeys([*self._derived, *self._listeners]) if field in key_fields(k)]
        if self.batch.active:
            for key in keys:
                self.batch.defer(key)
        elif self._collecting is not None:
            queue, seen = self._collecting
            for key in keys:
                seen.setdefault(key, None)
                if key not in queue:
                    queue.append(key)
        else:
            self.deliver(keys)

    def flush(self, keys: list[str]) -> None:
        """Deliver batched keys. Every key is delivered even if one raises."""
        self.deliver(keys, keep_going=True)

    def deliver(self, keys: list[str], *, keep_going: bool = False) -> None:
        """Invoke the listeners of keys with the current value of the field.

        The derived lane runs first. Keys notified by those recomputations join
        this delivery instead of starting their own (a key notified again after
        its derived lane ran is queued again), so each plain listener runs once
        and sees settled computed values. With keep_going, errors are held
        until every key has been delivered, then the first one is raised.
        """
        errors: list[Exception] = []
        queue = list(keys)
        seen = dict.fromkeys(keys)
        outer, self._collecting = self._collecting, (queue, seen)
        try:
            while queue:
                self._run(self._derived, queue.pop(0), errors, keep_going)
        finally:
            self._collecting = outer
        # Plain lists are snapshotted here; listeners added from now on wait
        # for the next write.
        lanes = [(key, list(self._listeners.get(key, ()))) for key in seen]
        for key, snapshot in lanes:
            self._run(self._listeners, key, errors, keep_going, snapshot)
        for extra in errors[1:]:
            logger.error("Listener failed during batch flush", exc_info=extra)
        if errors:
            raise errors[0]

    def _run(
        self,
        table: dict[str, list[Listener]],
        key: str,
        errors: list[Exception],
        keep_going: bool,
        snapshot: list[Listener] | None = None,
    ) -> None:
        fields = key_fields(key)
        for listener in snapshot if snapshot is not None else list(table.get(key, ())):
            # Listeners removed earlier in this pass are skipped.
            if not any(entry is listener for entry in table.get(key, ())):
                continue
            try:
                if len(fields) == 1:
                    listener(self._state.peek(fields[0]))
                else:
                    listener()
            except Exception as exc:
                if not keep_going:
                    raise
                errors.append(exc)
