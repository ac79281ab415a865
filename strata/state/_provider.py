from __future__ import annotations

import uuid
from typing import Any

from strata.core import Provider, Response, Time
from strata.core.exceptions import ConflictError, NotFoundError

from ._models import ResourceState, StateSnapshot


class StateProvider(Provider):
    """Base for state providers.

    Subclasses implement get_snapshot and compare_and_swap; get is
    derived from get_snapshot.
    """

    def get(self, identity: str, **kwargs: Any) -> Response[ResourceState]:
        snapshot = self.get_snapshot().result
        resource = snapshot.get(identity)
        if resource is None:
            raise NotFoundError("not in state", identity=identity)
        return Response(result=resource)

    def get_snapshot(self, **kwargs: Any) -> Response[StateSnapshot]:
        raise NotImplementedError

    def compare_and_swap(
        self,
        expected_version: int,
        snapshot: StateSnapshot,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def _next(
        self,
        current: StateSnapshot,
        expected_version: int,
        snapshot: StateSnapshot,
    ) -> StateSnapshot:
        if current.version != expected_version:
            raise ConflictError(
                f"expected state version {expected_version}, "
                f"found {current.version}"
            )
        if (
            current.lineage is not None
            and snapshot.lineage is not None
            and current.lineage != snapshot.lineage
        ):
            raise ConflictError(
                f"state lineage {snapshot.lineage} does not match "
                f"{current.lineage}"
            )
        return snapshot.model_copy(
            deep=True,
            update={
                "version": expected_version + 1,
                "lineage": current.lineage
                or snapshot.lineage
                or str(uuid.uuid4()),
                "updated": Time.now(),
            },
        )
