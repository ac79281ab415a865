from __future__ import annotations

from typing import Any

from strata.core import DataModel
from strata.graph import LifecycleState, identity_of


class StateLock(DataModel):
    """Marker held in the snapshot while an apply runs.

    Attributes:
        id: Lock id.
        operation: Operation holding the lock (apply, destroy, refresh).
        created: Creation timestamp.
        who: Host and user holding the lock.
    """

    id: str
    operation: str
    created: float
    who: str | None = None


class ResourceState(DataModel):
    """Last known state of a managed resource."""

    type: str
    name: str
    lifecycle: LifecycleState = LifecycleState.CREATED
    resource_id: str | None = None
    """Cloud assigned identifier."""

    attributes: dict[str, Any] = dict()
    """Resolved attributes the resource was last applied with."""

    outputs: dict[str, Any] = dict()
    """Attributes computed by the cloud (id, arn, ...)."""

    dependencies: list[str] = list()
    pinned: list[str] = list()
    error: str | None = None
    updated: float | None = None

    @property
    def identity(self) -> str:
        return identity_of(self.type, self.name)

    def value(self, attribute: str) -> tuple[bool, Any]:
        """Look up an attribute, outputs first."""
        if attribute in self.outputs:
            return True, self.outputs[attribute]
        if attribute in self.attributes:
            return True, self.attributes[attribute]
        if attribute == "id" and self.resource_id is not None:
            return True, self.resource_id
        return False, None


class StateSnapshot(DataModel):
    """Versioned record of everything the engine manages.

    Attributes:
        version: 0 for an empty store, incremented by every swap.
        lineage: Id shared by all versions of one state.
        resources: Resource state keyed by identity.
        outputs: Manifest outputs computed by the last apply.
        lock: Lock held by a running apply.
        updated: Timestamp of the last swap.
    """

    version: int = 0
    lineage: str | None = None
    resources: dict[str, ResourceState] = dict()
    outputs: dict[str, Any] = dict()
    lock: StateLock | None = None
    updated: float | None = None

    def get(self, identity: str) -> ResourceState | None:
        return self.resources.get(identity)
