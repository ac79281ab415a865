from strata.core.exceptions import (
    ConflictError,
    NotFoundError,
    PlanConflictError,
    StateLockedError,
)

from ._models import ResourceState, StateLock, StateSnapshot
from ._provider import StateProvider
from .component import StateStore

__all__ = [
    "ConflictError",
    "NotFoundError",
    "PlanConflictError",
    "ResourceState",
    "StateLock",
    "StateLockedError",
    "StateProvider",
    "StateSnapshot",
    "StateStore",
]
