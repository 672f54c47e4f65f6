"""Deep value equality used to gate writes and notifications."""

from __future__ import annotations

import math


def equal(a: object, b: object) -> bool:
    """Structural equality, not identity.

    Containers compare element-wise through ``==``; a top-level NaN equals NaN. Values
    whose ``==`` does not produce a plain truth value (or refuses to compare)
    are unequal unless they are the same object.
    """
    if a is b:
        return True
    if type(a) is not type(b) and not (_is_number(a) and _is_number(b)):
        return False
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        return False


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float, complex)) and not isinstance(value, bool)
