from ._models import ApplyResult, OperationResult, OperationStatus
from .component import Engine
from .executor import Executor

__all__ = [
    "ApplyResult",
    "Engine",
    "Executor",
    "OperationResult",
    "OperationStatus",
]
