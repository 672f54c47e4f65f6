"""Generated setters — the only write path into a store.

Every writable field gets a setter. A setter takes either the new value or an
updater called with the current value; equal values are a no-op, anything
else is committed and notified.

Thread safety: call set_scheduler() once from the writer thread. After that,
a setter invoked from any other thread is auto-marshaled. Writer-thread calls
remain synchronous.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any, Callable, Iterator

from stanx._equal import equal

Setter = Callable[[Any], None]

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the global thread scheduler for cross-thread writes.

    Call once from the writer thread:
        stanx.set_scheduler(app.call_from_thread)

    After this, a setter called from a background thread (for instance a
    synchronizer reacting to an external change) is handed to the scheduler.
    Pass None to remove it.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread() if scheduler is not None else None


def make_setter(store, name: str) -> Setter:
    """Build the setter for one writable field of store."""

    def setter(value_or_updater: Any) -> None:
        if _scheduler is not None and threading.current_thread() != _scheduler_thread:
            _scheduler(lambda v=value_or_updater: _set_direct(v))
        else:
            _set_direct(value_or_updater)

    def _set_direct(value_or_updater: Any) -> None:
        current = store._state.peek(name)
        if callable(value_or_updater):
            value = value_or_updater(current)
        else:
            value = value_or_updater
        if equal(current, value):
            return
        store._state._commit(name, value)
        store._registry.notify(name)

    setter.__name__ = f"set_{name}"
    setter.__qualname__ = setter.__name__
    return setter


class Actions(Mapping):
    """Setters by field name, also reachable as ``actions.set_<field>``.

    Computed fields have no setter.
    """

    __slots__ = ("_setters",)

    def __init__(self, setters: dict[str, Setter]) -> None:
        self._setters = setters

    def __getitem__(self, name: str) -> Setter:
        return self._setters[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._setters)

    def __len__(self) -> int:
        return len(self._setters)

    def __getattr__(self, attr: str) -> Setter:
        if attr.startswith("set_"):
            setter = self._setters.get(attr[4:])
            if setter is not None:
                return setter
        raise AttributeError(attr)

    def __dir__(self):
        return [*super().__dir__(), *(f"set_{name}" for name in self._setters)]

    def __repr__(self) -> str:
        return f"Actions({', '.join(self._setters)})"
