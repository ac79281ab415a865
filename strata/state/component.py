from __future__ import annotations

import getpass
import socket
import uuid
from typing import Any, Callable

from strata.core import (
    Component,
    Response,
    Time,
    get_logger,
    operation,
    unwrap,
)
from strata.core.exceptions import (
    ConflictError,
    PlanConflictError,
    StateLockedError,
)

from ._models import ResourceState, StateLock, StateSnapshot

logger = get_logger(__name__)


class StateStore(Component):
    """Versioned store of the last applied resource state.

    Every write goes through compare_and_swap, which is the only mutual
    exclusion between concurrent plan/apply cycles. Locks are records in
    the snapshot written through the same swap.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

    @operation()
    def get(
        self,
        identity: str,
        **kwargs: Any,
    ) -> Response[ResourceState]:
        """Get the state of one resource.

        Args:
            identity: Resource identity.

        Returns:
            Resource state.

        Raises:
            NotFoundError: Resource not in state.
        """
        ...

    @operation()
    def get_snapshot(
        self,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        """Get the latest snapshot.

        Returns:
            Snapshot, version 0 when nothing was written yet.
        """
        ...

    @operation()
    def compare_and_swap(
        self,
        expected_version: int,
        snapshot: StateSnapshot,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        """Replace the snapshot if the stored version is expected_version.

        Args:
            expected_version: Version the caller read.
            snapshot: New snapshot.

        Returns:
            Stored snapshot with version expected_version + 1.

        Raises:
            ConflictError: Stored version differs.
        """
        ...

    @operation()
    def close(self) -> None:
        """Close the store."""
        ...

    @operation()
    async def aget(
        self,
        identity: str,
        **kwargs: Any,
    ) -> Response[ResourceState]:
        """Get the state of one resource.

        Args:
            identity: Resource identity.

        Returns:
            Resource state.

        Raises:
            NotFoundError: Resource not in state.
        """
        ...

    @operation()
    async def aget_snapshot(
        self,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        """Get the latest snapshot."""
        ...

    @operation()
    async def acompare_and_swap(
        self,
        expected_version: int,
        snapshot: StateSnapshot,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        """Replace the snapshot if the stored version is expected_version.

        Raises:
            ConflictError: Stored version differs.
        """
        ...

    @operation()
    async def aclose(self) -> None:
        """Close the store."""
        ...

    def lock(
        self,
        operation: str,
        expected_version: int | None = None,
    ) -> StateSnapshot:
        """Take the apply lock.

        Args:
            operation: Operation taking the lock.
            expected_version: Fail unless the snapshot is at this version.

        Returns:
            Snapshot holding the lock.

        Raises:
            PlanConflictError: Snapshot moved past expected_version.
            StateLockedError: Lock held by someone else.
        """
        snapshot = unwrap(self.get_snapshot())
        if (
            expected_version is not None
            and snapshot.version != expected_version
        ):
            raise PlanConflictError(
                f"plan was computed against state version {expected_version}"
                f", current version is {snapshot.version}; plan again"
            )
        if snapshot.lock is not None:
            raise StateLockedError(_describe_lock(snapshot.lock))
        lock = StateLock(
            id=str(uuid.uuid4()),
            operation=operation,
            created=Time.now(),
            who=_who(),
        )
        locked = snapshot.model_copy(update={"lock": lock})
        try:
            result = unwrap(self.compare_and_swap(snapshot.version, locked))
        except ConflictError:
            raise PlanConflictError(
                "state changed while taking the lock; plan again"
            )
        logger.info("Locked state for %s (%s)", operation, lock.id)
        return result

    def unlock(self, lock_id: str) -> StateSnapshot:
        """Release a lock taken by lock()."""

        def release(snapshot: StateSnapshot) -> StateSnapshot | None:
            if snapshot.lock is None or snapshot.lock.id != lock_id:
                logger.warning("Lock %s is no longer held", lock_id)
                return None
            return snapshot.model_copy(update={"lock": None})

        return self.update(release)

    def force_unlock(self) -> StateSnapshot:
        """Release whatever lock is held."""

        def release(snapshot: StateSnapshot) -> StateSnapshot | None:
            if snapshot.lock is None:
                return None
            logger.warning("Force releasing %s", _describe_lock(snapshot.lock))
            return snapshot.model_copy(update={"lock": None})

        return self.update(release)

    def update(
        self,
        func: Callable[[StateSnapshot], StateSnapshot | None],
        attempts: int = 5,
    ) -> StateSnapshot:
        """Read-modify-swap, re-reading on conflict.

        Args:
            func: Returns the new snapshot, or None to leave it unchanged.
            attempts: Swaps tried before giving up.

        Raises:
            ConflictError: Every attempt conflicted.
        """
        for attempt in range(attempts):
            snapshot = unwrap(self.get_snapshot())
            updated = func(snapshot)
            if updated is None:
                return snapshot
            try:
                return unwrap(
                    self.compare_and_swap(snapshot.version, updated)
                )
            except ConflictError:
                if attempt == attempts - 1:
                    raise
                logger.debug("State update conflicted, retrying")
        raise ConflictError("state update did not converge")

def _who() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


def _describe_lock(lock: StateLock) -> str:
    return (
        f"state is locked by {lock.operation} {lock.id} "
        f"({lock.who or 'unknown'}) since {Time.isoformat(lock.created)}"
    )
