"""stanx: a small reactive state container for Python."""

from importlib.metadata import version as _version

__version__ = _version("stanx")

from stanx._equal import equal
from stanx.errors import StanxError, InvalidFieldValue, DerivationError, SynchronizerReadFailure
from stanx.fields import Literal, Computed, Synchronized, Synchronizer, computed
from stanx.state import StateTable
from stanx.action import Actions, set_scheduler
from stanx.store import Store, create_store
# storage and textual NOT auto-imported — opt-in only

__all__ = [
    "equal",
    "StanxError",
    "InvalidFieldValue",
    "DerivationError",
    "SynchronizerReadFailure",
    "Literal",
    "Computed",
    "Synchronized",
    "Synchronizer",
    "computed",
    "StateTable",
    "Actions",
    "set_scheduler",
    "Store",
    "create_store",
]
