"""Exceptions raised by stanx."""

from __future__ import annotations


class StanxError(Exception):
    """Base class for store errors."""


class InvalidFieldValue(StanxError, TypeError):
    """A callable was declared as a plain field's value.

    Callables are only accepted wrapped in ``computed()``; a bare function is
    ambiguous between stored data and derivation logic.
    """

    def __init__(self, field: str) -> None:
        super().__init__(
            f"Field {field!r}: a function cannot be used as a plain value; "
            "wrap derivations in computed()"
        )
        self.field = field


class DerivationError(StanxError):
    """A computed field's derivation raised. The original error is the __cause__."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Derivation of computed field {field!r} failed")
        self.field = field


class SynchronizerReadFailure(StanxError):
    """Reading a synchronizer snapshot failed.

    Raised internally around snapshot reads and recovered by the store; never
    propagated to callers.
    """

    def __init__(self, field: str) -> None:
        super().__init__(f"Snapshot read for field {field!r} failed")
        self.field = field
