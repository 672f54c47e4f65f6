"""Read tracking and batching — the heart of stanx.

Uses contextvars to record which fields are read while a derivation or
effect is being evaluated, so dependencies are discovered rather than
declared.

Batching: writes inside ``batch_updates`` or ``with store.batch()`` record the
affected composite keys and deliver them once when the outermost scope exits.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

logger = logging.getLogger("stanx.tracking")

T = TypeVar("T")

# Field names read during the current evaluation, in first-read order.
# When set, every StateTable read registers the field name here.
current_reads: contextvars.ContextVar[dict[str, None] | None] = contextvars.ContextVar(
    "current_reads", default=None
)


def record_read(name: str) -> None:
    reads = current_reads.get()
    if reads is not None:
        reads.setdefault(name, None)


def tracked(fn: Callable[..., T], *args) -> tuple[T, list[str]]:
    """Call fn, returning its result and the field names it read, in read order."""
    reads: dict[str, None] = {}
    token = current_reads.set(reads)
    try:
        result = fn(*args)
    finally:
        current_reads.reset(token)
    return result, list(reads)


class BatchContext:
    """Explicit batching state owned by one store.

    ``depth`` counts open scopes; ``pending`` holds composite keys waiting for
    delivery, in first-write order. Nested scopes join the outermost one.
    """

    __slots__ = ("depth", "_pending", "_deliver")

    def __init__(self, deliver: Callable[[list[str]], None]) -> None:
        self.depth = 0
        self._pending: dict[str, None] = {}
        self._deliver = deliver

    @property
    def active(self) -> bool:
        return self.depth > 0

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    def defer(self, key: str) -> None:
        self._pending.setdefault(key, None)

    @contextmanager
    def scope(self) -> Iterator[None]:
        """Enter a batching scope. The outermost exit flushes, even on error."""
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1
            if self.depth == 0:
                self._flush()

    def _flush(self) -> None:
        # Snapshot and clear first: listeners may write during delivery,
        # and those writes notify immediately.
        keys = list(self._pending)
        self._pending.clear()
        if keys:
            logger.debug("Flushing %d batched subscription key(s)", len(keys))
            self._deliver(keys)
