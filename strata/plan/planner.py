from __future__ import annotations

from typing import Any

from strata.core import get_logger
from strata.core.exceptions import CycleError, UnresolvedReferenceError
from strata.graph import (
    Graph,
    LifecycleState,
    Reference,
    Resource,
    find_references,
    substitute,
    topological_sort,
)
from strata.state import ResourceState, StateSnapshot

from ._models import Action, AttributeChange, Plan, PlanOperation

logger = get_logger(__name__)


class Planner:
    """Diff a desired graph against a state snapshot."""

    def plan(
        self,
        graph: Graph,
        snapshot: StateSnapshot,
        destroy: bool = False,
    ) -> Plan:
        """Compute the plan.

        Creates and updates come first, dependencies before dependents.
        Deletes follow, dependents before dependencies. Ties are broken by
        identity.

        Args:
            graph: Desired graph.
            snapshot: Current snapshot.
            destroy: Delete every managed resource instead.

        Returns:
            Plan bound to the snapshot version.
        """
        operations: list[PlanOperation] = []
        if not destroy:
            operations.extend(self._plan_changes(graph, snapshot))
            kept = {
                r.identity for r in graph.resources.values() if not r.external
            }
        else:
            kept = set()
        operations.extend(
            self._plan_deletes(graph, snapshot, kept, operations)
        )
        plan = Plan(
            base_version=snapshot.version,
            destroy=destroy,
            operations=operations,
        )
        logger.info("Planned %s", plan.summary())
        return plan

    def _plan_changes(
        self,
        graph: Graph,
        snapshot: StateSnapshot,
    ) -> list[PlanOperation]:
        operations: list[PlanOperation] = []
        pending: dict[str, Action] = {}
        desired: dict[str, dict[str, Any]] = {}

        for identity in graph.order():
            resource = graph.resources[identity]
            if resource.external:
                continue
            record = snapshot.get(identity)

            def resolve(reference: Reference) -> Any:
                return self._resolve(
                    identity, reference, graph, snapshot, pending, desired
                )

            attributes = substitute(resource.attributes, resolve)
            if record is None or (
                record.lifecycle == LifecycleState.FAILED
                and record.resource_id is None
            ):
                op = self._create(resource, attributes)
            else:
                op = self._update(resource, attributes, record)
            desired[identity] = attributes
            if op is None:
                continue
            op.depends_on = [d for d in resource.dependencies if d in pending]
            pending[identity] = op.action
            operations.append(op)
        return operations

    def _create(
        self,
        resource: Resource,
        attributes: dict[str, Any],
    ) -> PlanOperation:
        return PlanOperation(
            action=Action.CREATE,
            identity=resource.identity,
            type=resource.type,
            name=resource.name,
            attributes=_serializable(attributes),
            changes=[
                AttributeChange(name=k, after=_serializable(v))
                for k, v in sorted(attributes.items())
            ],
            dependencies=resource.dependencies,
            pinned=resource.pinned,
        )

    def _update(
        self,
        resource: Resource,
        attributes: dict[str, Any],
        record: ResourceState,
    ) -> PlanOperation | None:
        attributes = dict(attributes)
        for key in resource.pinned:
            if key in record.attributes:
                attributes[key] = record.attributes[key]
        changes: list[AttributeChange] = []
        for key in sorted(set(attributes) | set(record.attributes)):
            if key in resource.pinned:
                continue
            before = record.attributes.get(key)
            after = attributes.get(key)
            if find_references(after) or before != after:
                changes.append(
                    AttributeChange(
                        name=key,
                        before=before,
                        after=_serializable(after),
                    )
                )
        state_changes: list[AttributeChange] = []
        for key, before, after in (
            ("dependencies", record.dependencies, resource.dependencies),
            ("pinned", record.pinned, resource.pinned),
        ):
            if sorted(before) != sorted(after):
                state_changes.append(
                    AttributeChange(
                        name=key, before=sorted(before), after=sorted(after)
                    )
                )
        settled = record.lifecycle == LifecycleState.CREATED
        if not changes and settled and not state_changes:
            return None
        return PlanOperation(
            action=Action.UPDATE,
            identity=resource.identity,
            type=resource.type,
            name=resource.name,
            resource_id=record.resource_id,
            attributes=_serializable(attributes),
            changes=changes,
            state_changes=state_changes,
            state_only=settled and not changes,
            dependencies=resource.dependencies,
            pinned=resource.pinned,
        )

    def _plan_deletes(
        self,
        graph: Graph,
        snapshot: StateSnapshot,
        kept: set[str],
        planned: list[PlanOperation],
    ) -> list[PlanOperation]:
        removed = [i for i in snapshot.resources if i not in kept]
        dependencies = self._recorded_dependencies(graph, snapshot)
        try:
            order = topological_sort(removed, dependencies, reverse=True)
        except CycleError:
            logger.warning("Declared dependencies reverse recorded ones")
            dependencies = self._recorded_dependencies(graph, snapshot, False)
            order = topological_sort(removed, dependencies, reverse=True)
        scheduled = {op.identity for op in planned} | set(removed)
        operations: list[PlanOperation] = []
        for identity in order:
            record = snapshot.resources[identity]
            resource = graph.get(identity)
            forget = record.resource_id is None or (
                resource is not None and resource.external
            )
            dependents = sorted(
                other
                for other, deps in dependencies.items()
                if identity in deps
                and other in scheduled
                and other != identity
            )
            operations.append(
                PlanOperation(
                    action=Action.DELETE,
                    identity=identity,
                    type=record.type,
                    name=record.name,
                    resource_id=record.resource_id,
                    dependencies=record.dependencies,
                    depends_on=dependents,
                    forget=forget,
                )
            )
        return operations

    def _recorded_dependencies(
        self,
        graph: Graph,
        snapshot: StateSnapshot,
        declared: bool = True,
    ) -> dict[str, list[str]]:
        """Dependencies of every recorded resource.

        With declared=True a resource still in the graph contributes its
        declared dependencies too, so deletes stay ordered while a
        dependency added to the manifest is not yet applied to state.
        """
        dependencies: dict[str, list[str]] = {}
        for identity, record in snapshot.resources.items():
            merged = set(record.dependencies)
            resource = graph.get(identity)
            if declared and resource is not None and not resource.external:
                merged.update(resource.dependencies)
            merged.discard(identity)
            dependencies[identity] = sorted(merged)
        return dependencies

    def _resolve(
        self,
        identity: str,
        reference: Reference,
        graph: Graph,
        snapshot: StateSnapshot,
        pending: dict[str, Action],
        desired: dict[str, dict[str, Any]],
    ) -> Any:
        target = graph.get(reference.identity)
        if target is None:
            raise UnresolvedReferenceError(identity, str(reference))
        if target.external:
            if reference.attribute not in target.attributes:
                raise UnresolvedReferenceError(identity, str(reference))
            return target.attributes[reference.attribute]

        action = pending.get(target.identity)
        if action == Action.CREATE:
            return reference
        record = snapshot.get(target.identity)
        if action == Action.UPDATE:
            value = desired.get(target.identity, {}).get(reference.attribute)
            if value is not None and not find_references(value):
                return value
            if record is not None and reference.attribute in record.outputs:
                return record.outputs[reference.attribute]
            return reference
        if record is None:
            return reference
        found, value = record.value(reference.attribute)
        if not found:
            raise UnresolvedReferenceError(identity, str(reference))
        return value


def _serializable(value: Any) -> Any:
    return substitute(value, str)
