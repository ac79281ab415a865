from strata.core.exceptions import (
    CycleError,
    GraphError,
    UnresolvedReferenceError,
)

from ._models import (
    Graph,
    LifecycleState,
    Reference,
    Resource,
    find_references,
    identity_of,
    split_identity,
    substitute,
)
from ._toposort import find_cycle, topological_sort
from .builder import GraphBuilder

__all__ = [
    "CycleError",
    "Graph",
    "GraphBuilder",
    "GraphError",
    "LifecycleState",
    "Reference",
    "Resource",
    "UnresolvedReferenceError",
    "find_cycle",
    "find_references",
    "identity_of",
    "split_identity",
    "substitute",
    "topological_sort",
]
