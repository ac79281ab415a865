"""
In Memory State Store.
"""

from __future__ import annotations

__all__ = ["Memory"]

from threading import Lock
from typing import Any

from strata.core import Context, Response

from .._models import StateSnapshot
from .._provider import StateProvider


class Memory(StateProvider):
    _snapshot: StateSnapshot
    _lock: Lock

    def __init__(self, **kwargs):
        """Initialize."""
        self._snapshot = StateSnapshot()
        self._lock = Lock()

        super().__init__(**kwargs)

    def __setup__(self, context: Context | None = None) -> None:
        pass

    def get_snapshot(self, **kwargs: Any) -> Response[StateSnapshot]:
        with self._lock:
            return Response(result=self._snapshot.model_copy(deep=True))

    def compare_and_swap(
        self,
        expected_version: int,
        snapshot: StateSnapshot,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        with self._lock:
            self._snapshot = self._next(
                self._snapshot, expected_version, snapshot
            )
            return Response(result=self._snapshot.model_copy(deep=True))
