from __future__ import annotations

import threading
import time
from concurrent.futures import (
    FIRST_COMPLETED,
    Future,
    ThreadPoolExecutor,
    wait,
)
from typing import Any, Callable

from strata.cloud import Cloud, ResourceItem, ResourceStatus
from strata.core import Time, get_logger, unwrap
from strata.core.exceptions import (
    BaseError,
    ConflictError,
    NotFoundError,
    ProviderPermanentError,
    ProviderTransientError,
    StateLockedError,
    UnresolvedReferenceError,
)
from strata.core.manifest import BackoffConfig, Settings
from strata.graph import LifecycleState, Reference
from strata.plan import Action, Plan, PlanOperation
from strata.state import ResourceState, StateSnapshot, StateStore

from ._models import ApplyResult, OperationResult, OperationStatus

logger = get_logger(__name__)


class Executor:
    """Run a plan against the cloud with a bounded worker pool.

    An operation starts once every operation it depends on succeeded.
    Dependents of an operation that did not succeed are skipped, other
    branches keep going. Every confirmed outcome is written to the state
    store before the next one, through compare-and-swap.
    """

    cloud: Cloud
    state: StateStore
    workers: int
    retry: BackoffConfig
    poll: BackoffConfig
    lock_id: str | None

    _sleep: Callable[[float], None]
    _cancelled: threading.Event
    _state_lock: threading.Lock
    _snapshot: StateSnapshot

    def __init__(
        self,
        cloud: Cloud,
        state: StateStore,
        workers: int = 4,
        retry: BackoffConfig | None = None,
        poll: BackoffConfig | None = None,
        lock_id: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize.

        Args:
            cloud: Cloud to call.
            state: Store receiving the outcomes.
            workers: Operations in flight at once.
            retry: Backoff between attempts of a transient failure.
            poll: Backoff between reads while waiting for a stable
                resource.
            lock_id: Lock the caller holds. Writes stop when it is lost.
            sleep: Sleep function.
        """
        settings = Settings()
        self.cloud = cloud
        self.state = state
        self.workers = max(1, workers)
        self.retry = retry or settings.retry
        self.poll = poll or settings.poll
        self.lock_id = lock_id
        self._sleep = sleep
        self._cancelled = threading.Event()
        self._state_lock = threading.Lock()
        self._snapshot = StateSnapshot()

    def cancel(self) -> None:
        """Stop scheduling. Operations in flight finish and are recorded."""
        if not self._cancelled.is_set():
            logger.warning("Cancelling apply, waiting for running operations")
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def execute(self, plan: Plan, snapshot: StateSnapshot) -> ApplyResult:
        """Run the plan.

        Args:
            plan: Plan to run.
            snapshot: Snapshot the plan runs on, holding the lock.

        Returns:
            One result per plan operation, in plan order.

        Raises:
            BadRequestError: Plan operations are out of order.
            ConflictError: State was changed underneath the apply.
        """
        plan.validate_order()
        self._snapshot = snapshot
        results: dict[str, OperationResult] = {}
        remaining = list(plan.operations)
        futures: dict[Future, PlanOperation] = {}

        with ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="strata-apply"
        ) as pool:
            while remaining or futures:
                if self.cancelled:
                    for op in remaining:
                        results[op.identity] = OperationResult(
                            identity=op.identity,
                            action=op.action,
                            status=OperationStatus.CANCELLED,
                        )
                    remaining = []
                else:
                    remaining = self._schedule(
                        pool, remaining, results, futures
                    )
                if not futures:
                    continue
                try:
                    done, _ = wait(
                        list(futures), timeout=1.0, return_when=FIRST_COMPLETED
                    )
                except KeyboardInterrupt:
                    self.cancel()
                    continue
                for future in done:
                    op = futures.pop(future)
                    results[op.identity] = future.result()

        return ApplyResult(
            plan=plan,
            results=[results[op.identity] for op in plan.operations],
            version=self._snapshot.version,
        )

    def _schedule(
        self,
        pool: ThreadPoolExecutor,
        remaining: list[PlanOperation],
        results: dict[str, OperationResult],
        futures: dict[Future, PlanOperation],
    ) -> list[PlanOperation]:
        waiting = []
        for op in remaining:
            blocked = [
                d
                for d in op.depends_on
                if d in results
                and results[d].status != OperationStatus.SUCCEEDED
            ]
            if blocked:
                logger.info(
                    "Skipping %s, %s did not succeed", op.identity, blocked[0]
                )
                results[op.identity] = OperationResult(
                    identity=op.identity,
                    action=op.action,
                    status=OperationStatus.SKIPPED,
                    error=f"dependency {blocked[0]} did not succeed",
                )
            elif all(d in results for d in op.depends_on):
                futures[pool.submit(self._run, op)] = op
            else:
                waiting.append(op)
        return waiting

    def _run(self, op: PlanOperation) -> OperationResult:
        result = OperationResult(
            identity=op.identity,
            action=op.action,
            status=OperationStatus.SUCCEEDED,
            resource_id=op.resource_id,
        )
        attributes: dict[str, Any] | None = None
        try:
            if op.action == Action.DELETE:
                self._delete(op, result)
            else:
                attributes = self._materialize(op)
                if op.action == Action.CREATE:
                    self._create(op, attributes, result)
                else:
                    self._update(op, attributes, result)
        except ConflictError:
            raise
        except BaseError as e:
            logger.error("Failed %s %s: %s", op.action.value, op.identity, e)
            self._fail(op, attributes, result, e)
        return result

    def _create(
        self,
        op: PlanOperation,
        attributes: dict[str, Any],
        result: OperationResult,
    ) -> None:
        logger.info("Creating %s", op.identity)
        item = self._call(
            op,
            result,
            lambda: self.cloud.create_resource(
                type=op.type, name=op.name, attributes=attributes
            ),
        )
        result.resource_id = id = item.id
        # pending attributes are recorded only once applied
        pending = [k for k in item.pending if k in attributes]
        applied = {k: v for k, v in attributes.items() if k not in pending}
        self._put(op, LifecycleState.CREATING, applied, item)
        if pending:
            logger.info("Configuring %s: %s", op.identity, ", ".join(pending))
            item = self._call(
                op,
                result,
                lambda: self.cloud.update_resource(
                    type=op.type,
                    id=id,
                    attributes=attributes,
                    changes=pending,
                ),
            )
        item = self._wait(op, item)
        self._put(op, LifecycleState.CREATED, attributes, item)
        result.lifecycle = LifecycleState.CREATED
        logger.info("Created %s (%s)", op.identity, item.id)

    def _update(
        self,
        op: PlanOperation,
        attributes: dict[str, Any],
        result: OperationResult,
    ) -> None:
        if op.resource_id is None:
            raise ProviderPermanentError(
                "no cloud id recorded", identity=op.identity, action="update"
            )
        if op.state_only:
            logger.info("Updating the state record of %s", op.identity)

            def restate(snapshot: StateSnapshot) -> None:
                record = snapshot.resources.get(op.identity)
                if record is None:
                    raise ProviderPermanentError(
                        "record disappeared from state",
                        identity=op.identity,
                        action="update",
                    )
                record.dependencies = list(op.dependencies)
                record.pinned = list(op.pinned)
                record.updated = Time.now()

            self._record(restate)
            result.resource_id = op.resource_id
            result.lifecycle = LifecycleState.CREATED
            return
        logger.info("Updating %s (%s)", op.identity, op.resource_id)
        item = self._call(
            op,
            result,
            lambda: self.cloud.update_resource(
                type=op.type,
                id=op.resource_id,
                attributes=attributes,
                changes=[c.name for c in op.changes],
            ),
        )
        result.resource_id = item.id
        self._put(op, LifecycleState.UPDATING, attributes, item)
        item = self._wait(op, item)
        self._put(op, LifecycleState.CREATED, attributes, item)
        result.lifecycle = LifecycleState.CREATED

    def _delete(self, op: PlanOperation, result: OperationResult) -> None:
        if not op.forget and op.resource_id is not None:
            logger.info("Deleting %s (%s)", op.identity, op.resource_id)
            try:
                item = self._call(
                    op,
                    result,
                    lambda: self.cloud.delete_resource(
                        type=op.type, id=op.resource_id
                    ),
                )
            except NotFoundError:
                logger.info("%s is already gone", op.identity)
            else:
                self._wait(op, item, deleting=True)
        else:
            logger.info("Forgetting %s", op.identity)

        def remove(snapshot: StateSnapshot) -> None:
            snapshot.resources.pop(op.identity, None)

        self._record(remove)
        result.lifecycle = LifecycleState.DELETED

    def _call(
        self,
        op: PlanOperation,
        result: OperationResult,
        func: Callable[[], Any],
    ) -> ResourceItem:
        attempts = max(1, self.retry.max_attempts)
        for attempt in range(attempts):
            result.attempts = attempt + 1
            try:
                return unwrap(func())
            except ProviderTransientError as e:
                if attempt == attempts - 1:
                    raise
                delay = self.retry.delay(attempt)
                logger.warning(
                    "Retrying %s %s in %.1fs: %s",
                    op.action.value,
                    op.identity,
                    delay,
                    e,
                )
                self._sleep(delay)
        raise ProviderTransientError(
            "no attempts left", identity=op.identity, action=op.action.value
        )

    def _wait(
        self,
        op: PlanOperation,
        item: ResourceItem,
        deleting: bool = False,
    ) -> ResourceItem:
        id = item.id
        for attempt in range(self.poll.max_attempts):
            if deleting and item.status == ResourceStatus.DELETED:
                return item
            if not deleting and item.status == ResourceStatus.AVAILABLE:
                return item
            if item.status == ResourceStatus.FAILED:
                raise ProviderPermanentError(
                    item.message or f"{item.type} entered failed state",
                    identity=op.identity,
                    action=op.action.value,
                )
            self._sleep(self.poll.delay(attempt))
            try:
                item = unwrap(self.cloud.read_resource(type=op.type, id=id))
            except NotFoundError:
                if deleting:
                    return ResourceItem(
                        id=id, type=op.type, status=ResourceStatus.DELETED
                    )
                logger.debug("%s not visible yet", op.identity)
            except ProviderTransientError as e:
                logger.debug("Polling %s failed: %s", op.identity, e)
        raise ProviderTransientError(
            f"not stable after {self.poll.max_attempts} polls",
            identity=op.identity,
            action=op.action.value,
        )

    def _materialize(self, op: PlanOperation) -> dict[str, Any]:
        with self._state_lock:
            snapshot = self._snapshot

        def resolve(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: resolve(v) for k, v in value.items()}
            if isinstance(value, list):
                return [resolve(v) for v in value]
            reference = Reference.parse(value)
            if reference is None:
                return value
            record = snapshot.get(reference.identity)
            if record is None or record.lifecycle != LifecycleState.CREATED:
                raise UnresolvedReferenceError(op.identity, str(reference))
            found, resolved = record.value(reference.attribute)
            if not found:
                raise UnresolvedReferenceError(op.identity, str(reference))
            return resolved

        return resolve(op.attributes)

    def _put(
        self,
        op: PlanOperation,
        lifecycle: LifecycleState,
        attributes: dict[str, Any],
        item: ResourceItem,
    ) -> None:
        def put(snapshot: StateSnapshot) -> None:
            snapshot.resources[op.identity] = ResourceState(
                type=op.type,
                name=op.name,
                lifecycle=lifecycle,
                resource_id=item.id,
                attributes=attributes,
                outputs=item.outputs,
                dependencies=op.dependencies,
                pinned=op.pinned,
                updated=Time.now(),
            )

        self._record(put)

    def _fail(
        self,
        op: PlanOperation,
        attributes: dict[str, Any] | None,
        result: OperationResult,
        error: BaseError,
    ) -> None:
        result.status = OperationStatus.FAILED
        result.error = str(error)
        result.lifecycle = LifecycleState.FAILED

        def fail(snapshot: StateSnapshot) -> None:
            existing = snapshot.resources.get(op.identity)
            resource_id = result.resource_id
            if resource_id is None and existing is not None:
                resource_id = existing.resource_id
            snapshot.resources[op.identity] = ResourceState(
                type=op.type,
                name=op.name,
                lifecycle=LifecycleState.FAILED,
                resource_id=resource_id,
                attributes=(
                    existing.attributes
                    if existing is not None
                    else attributes or dict()
                ),
                outputs=existing.outputs if existing is not None else dict(),
                dependencies=(
                    existing.dependencies
                    if op.action == Action.DELETE and existing is not None
                    else op.dependencies
                ),
                pinned=op.pinned or (existing.pinned if existing else []),
                error=str(error),
                updated=Time.now(),
            )

        self._record(fail)

    def _record(
        self,
        mutate: Callable[[StateSnapshot], None],
        attempts: int = 5,
    ) -> None:
        with self._state_lock:
            for attempt in range(attempts):
                snapshot = self._snapshot.model_copy(deep=True)
                mutate(snapshot)
                try:
                    self._snapshot = unwrap(
                        self.state.compare_and_swap(
                            self._snapshot.version, snapshot
                        )
                    )
                    return
                except ConflictError:
                    current = unwrap(self.state.get_snapshot())
                    if self.lock_id is not None and (
                        current.lock is None or current.lock.id != self.lock_id
                    ):
                        raise StateLockedError(
                            "state lock was taken away during apply"
                        )
                    logger.debug("State write conflicted, re-reading")
                    self._snapshot = current
            raise ConflictError("state write did not converge")