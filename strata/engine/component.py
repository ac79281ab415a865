from __future__ import annotations

import re
import time
from typing import Any, Callable

from strata.cloud import Cloud, ResourceStatus
from strata.core import (
    Component,
    Loader,
    Time,
    get_logger,
    operation,
    unwrap,
)
from strata.core._async_helper import run_async
from strata.core.exceptions import (
    NotFoundError,
    PlanConflictError,
    ProviderTransientError,
    StateLockedError,
)
from strata.core.manifest import MANIFEST_FILE, Manifest
from strata.graph import Graph, GraphBuilder, LifecycleState, Reference
from strata.plan import Plan, Planner
from strata.state import StateSnapshot, StateStore

from ._models import ApplyResult
from .executor import Executor

logger = get_logger(__name__)

_EMBEDDED_REFERENCE = re.compile(r"\$\{[^}]+\}")


class Engine(Component):
    """Plan and apply a manifest against a cloud, tracking state.

    Operations:
        graph, plan, apply, destroy, refresh, show, outputs, force_unlock.
    """

    manifest: Manifest

    _state: StateStore | None
    _cloud: Cloud | None
    _loader: Loader | None
    _sleep: Callable[[float], None]
    _executor: Executor | None

    def __init__(
        self,
        manifest: Manifest,
        state: StateStore | None = None,
        cloud: Cloud | None = None,
        loader: Loader | None = None,
        sleep: Callable[[float], None] = time.sleep,
        **kwargs,
    ):
        """Initialize.

        Args:
            manifest: Resolved manifest.
            state: State store, loaded from the manifest when None.
            cloud: Cloud, loaded from the manifest when None.
            loader: Loader the manifest came from.
            sleep: Sleep used between retries and polls.
        """
        self.manifest = manifest
        self._state = state
        self._cloud = cloud
        self._loader = loader
        self._sleep = sleep
        self._executor = None
        super().__init__(**kwargs)

    @staticmethod
    def load(
        path: str = ".",
        manifest: str = MANIFEST_FILE,
        variables: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Engine:
        loader = Loader(path=path, manifest=manifest, variables=variables)
        return Engine(manifest=loader.manifest, loader=loader, **kwargs)

    @property
    def state(self) -> StateStore:
        if self._state is None:
            loader = self._loader or Loader.from_manifest(self.manifest)
            self._state = loader.load_state_store()
        return self._state

    @property
    def cloud(self) -> Cloud:
        if self._cloud is None:
            loader = self._loader or Loader.from_manifest(self.manifest)
            self._cloud = loader.load_cloud()
        return self._cloud

    @operation()
    def graph(self) -> Graph:
        """Build the validated resource graph.

        Raises:
            GraphError: Malformed definition, cycle or unresolved reference.
        """
        return GraphBuilder().build_from_manifest(self.manifest)

    @operation()
    def plan(self, destroy: bool = False) -> Plan:
        """Diff the manifest against the current state.

        Args:
            destroy: Plan deletion of every managed resource.

        Raises:
            GraphError: Invalid graph.
            StateLockedError: Another apply is running.
        """
        snapshot = self.show()
        if snapshot.lock is not None:
            raise StateLockedError(
                f"state is locked by {snapshot.lock.operation} "
                f"{snapshot.lock.id}"
            )
        return Planner().plan(self.graph(), snapshot, destroy=destroy)

    @operation()
    def apply(
        self,
        plan: Plan | None = None,
        workers: int | None = None,
    ) -> ApplyResult:
        """Apply a plan, computing one first when none is given.

        Args:
            plan: Saved plan. It must be based on the current state version.
            workers: Worker pool size, defaults to the manifest settings.

        Returns:
            Result with one entry per operation.

        Raises:
            GraphError: Invalid graph.
            PlanConflictError: State moved since the plan was made.
            StateLockedError: Another apply is running.
        """
        snapshot = self.show()
        if plan is None:
            plan = self.plan()
        if plan.base_version != snapshot.version:
            raise PlanConflictError(
                f"plan is based on state version {plan.base_version}, "
                f"current version is {snapshot.version}; plan again"
            )
        outputs = self._resolve_outputs(snapshot)
        if plan.empty and outputs == snapshot.outputs:
            logger.info("Nothing to apply")
            return ApplyResult(plan=plan, version=snapshot.version)

        locked = self.state.lock(
            "destroy" if plan.destroy else "apply",
            expected_version=plan.base_version,
        )
        lock_id = locked.lock.id
        settings = self.manifest.settings
        executor = Executor(
            cloud=self.cloud,
            state=self.state,
            workers=workers or settings.workers,
            retry=settings.retry,
            poll=settings.poll,
            lock_id=lock_id,
            sleep=self._sleep,
        )
        self._executor = executor
        try:
            result = executor.execute(plan, locked)
            self._write_outputs(lock_id)
        finally:
            self._executor = None
            released = self.state.unlock(lock_id)
        logger.info("Apply finished: %s", result.counts())
        return result.model_copy(update={"version": released.version})

    @operation()
    def destroy(self, workers: int | None = None) -> ApplyResult:
        """Delete every resource the engine manages."""
        return self.apply(plan=self.plan(destroy=True), workers=workers)

    @operation()
    def refresh(self) -> StateSnapshot:
        """Read every managed resource and update state.

        Resources deleted out of band are dropped from state. Transient
        read failures leave the record unchanged.
        """
        locked = self.state.lock("refresh")
        lock_id = locked.lock.id
        try:
            items: dict[str, Any] = {}
            for identity, record in sorted(locked.resources.items()):
                if record.resource_id is None:
                    continue
                try:
                    items[identity] = unwrap(
                        self.cloud.read_resource(
                            type=record.type, id=record.resource_id
                        )
                    )
                except NotFoundError:
                    logger.warning("%s no longer exists", identity)
                    items[identity] = None
                except ProviderTransientError as e:
                    logger.warning("Could not refresh %s: %s", identity, e)

            def merge(snapshot: StateSnapshot) -> StateSnapshot | None:
                _check_lock(snapshot, lock_id)
                updated = snapshot.model_copy(deep=True)
                for identity, item in items.items():
                    if identity not in updated.resources:
                        continue
                    if item is None:
                        updated.resources.pop(identity)
                        continue
                    record = updated.resources[identity]
                    record.outputs = item.outputs
                    record.resource_id = item.id
                    record.updated = Time.now()
                    if item.status == ResourceStatus.AVAILABLE and (
                        record.lifecycle
                        in (LifecycleState.CREATING, LifecycleState.UPDATING)
                    ):
                        record.lifecycle = LifecycleState.CREATED
                    elif item.status == ResourceStatus.FAILED:
                        record.lifecycle = LifecycleState.FAILED
                        record.error = item.message
                updated.outputs = self._resolve_outputs(updated)
                return updated

            self.state.update(merge)
        finally:
            snapshot = self.state.unlock(lock_id)
        return snapshot

    @operation()
    def show(self) -> StateSnapshot:
        """Get the current state snapshot."""
        return unwrap(self.state.get_snapshot())

    @operation()
    def outputs(self, name: str | None = None) -> Any:
        """Manifest outputs resolved from the current state.

        Args:
            name: Single output to return.

        Raises:
            NotFoundError: No output with that name.
        """
        outputs = self._resolve_outputs(self.show())
        if name is None:
            return outputs
        if name not in outputs:
            raise NotFoundError(f"output {name} is not defined")
        return outputs[name]

    @operation()
    def force_unlock(self) -> StateSnapshot:
        """Clear a lock left behind by an interrupted apply."""
        return self.state.force_unlock()

    def cancel(self) -> None:
        """Stop the running apply after the operations in flight."""
        if self._executor is not None:
            self._executor.cancel()

    @operation()
    async def agraph(self) -> Graph:
        return await run_async(self.graph)

    @operation()
    async def aplan(self, destroy: bool = False) -> Plan:
        return await run_async(self.plan, destroy=destroy)

    @operation()
    async def aapply(
        self,
        plan: Plan | None = None,
        workers: int | None = None,
    ) -> ApplyResult:
        return await run_async(self.apply, plan=plan, workers=workers)

    @operation()
    async def adestroy(self, workers: int | None = None) -> ApplyResult:
        return await run_async(self.destroy, workers=workers)

    @operation()
    async def arefresh(self) -> StateSnapshot:
        return await run_async(self.refresh)

    @operation()
    async def ashow(self) -> StateSnapshot:
        return await run_async(self.show)

    @operation()
    async def aoutputs(self, name: str | None = None) -> Any:
        return await run_async(self.outputs, name=name)

    def _write_outputs(self, lock_id: str) -> None:
        def write(snapshot: StateSnapshot) -> StateSnapshot | None:
            _check_lock(snapshot, lock_id)
            outputs = self._resolve_outputs(snapshot)
            if outputs == snapshot.outputs:
                return None
            return snapshot.model_copy(update={"outputs": outputs})

        self.state.update(write)

    def _resolve_outputs(self, snapshot: StateSnapshot) -> dict[str, Any]:
        def lookup(reference: Reference) -> tuple[bool, Any]:
            external = self.manifest.external.get(reference.type, {})
            if reference.name in external:
                attributes = external[reference.name]
                return (
                    reference.attribute in attributes,
                    attributes.get(reference.attribute),
                )
            record = snapshot.get(reference.identity)
            if record is None or record.lifecycle != LifecycleState.CREATED:
                return False, None
            return record.value(reference.attribute)

        def resolve(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: resolve(v) for k, v in value.items()}
            if isinstance(value, list):
                return [resolve(v) for v in value]
            if not isinstance(value, str):
                return value
            reference = Reference.parse(value)
            if reference is not None:
                found, resolved = lookup(reference)
                if not found:
                    raise _Unknown(value)
                return resolved

            def replace(m: re.Match) -> str:
                embedded = Reference.parse(m.group(0))
                if embedded is None:
                    return m.group(0)
                found, resolved = lookup(embedded)
                if not found:
                    raise _Unknown(m.group(0))
                return str(resolved)

            return _EMBEDDED_REFERENCE.sub(replace, value)

        outputs: dict[str, Any] = {}
        for key, value in self.manifest.outputs.items():
            try:
                outputs[key] = resolve(value)
            except _Unknown as e:
                logger.debug("Output %s is unknown: %s", key, e)
                outputs[key] = None
        return outputs


class _Unknown(Exception):
    pass


def _check_lock(snapshot: StateSnapshot, lock_id: str) -> None:
    if snapshot.lock is None or snapshot.lock.id != lock_id:
        raise StateLockedError("state lock was taken away during apply")