from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import Field

from strata.core import DataModel, Time
from strata.core.exceptions import BadRequestError


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


_SYMBOLS = {
    Action.CREATE: "+",
    Action.UPDATE: "~",
    Action.DELETE: "-",
}


class AttributeChange(DataModel):
    name: str
    before: Any = None
    after: Any = None


class PlanOperation(DataModel):
    """Single step of a plan.

    Attributes:
        action: Create, update or delete.
        identity: Resource identity.
        type: Resource type.
        name: Resource name.
        resource_id: Cloud id of the existing resource.
        attributes: Attributes to apply. References to resources created
            by this plan stay in ${...} form.
        changes: Attribute level changes.
        state_changes: Changes to recorded dependencies or pinned
            attributes.
        state_only: Only the state record changes, the cloud is not
            called.
        dependencies: Resource dependencies recorded into state.
        depends_on: Operations of this plan that must succeed first.
        pinned: Attributes owned by the operator.
        forget: Drop the record from state without calling the cloud.
    """

    action: Action
    identity: str
    type: str
    name: str
    resource_id: str | None = None
    attributes: dict[str, Any] = dict()
    changes: list[AttributeChange] = list()
    state_changes: list[AttributeChange] = list()
    state_only: bool = False
    dependencies: list[str] = list()
    depends_on: list[str] = list()
    pinned: list[str] = list()
    forget: bool = False

    def describe(self) -> str:
        label = "forget" if self.forget else self.action.value
        return f"{_SYMBOLS[self.action]} {label} {self.identity}"


class Plan(DataModel):
    """Ordered operations reconciling state with the desired graph."""

    base_version: int = 0
    destroy: bool = False
    operations: list[PlanOperation] = list()
    created: float = Field(default_factory=Time.now)

    @property
    def empty(self) -> bool:
        return len(self.operations) == 0

    def get(self, identity: str) -> PlanOperation | None:
        for op in self.operations:
            if op.identity == identity:
                return op
        return None

    def summary(self) -> dict[str, int]:
        counts = {action.value: 0 for action in Action}
        for op in self.operations:
            counts[op.action.value] += 1
        return counts

    def validate_order(self) -> None:
        """Check that no operation precedes one it depends on.

        Raises:
            BadRequestError: Unknown or out of order dependency.
        """
        seen: set[str] = set()
        identities = {op.identity for op in self.operations}
        if len(identities) != len(self.operations):
            raise BadRequestError("plan holds duplicate identities")
        for op in self.operations:
            for dependency in op.depends_on:
                if dependency not in identities:
                    raise BadRequestError(
                        f"depends on {dependency} outside the plan",
                        identity=op.identity,
                        action=op.action.value,
                    )
                if dependency not in seen:
                    raise BadRequestError(
                        f"scheduled before {dependency}",
                        identity=op.identity,
                        action=op.action.value,
                    )
            seen.add(op.identity)

    def render(self) -> str:
        if self.empty:
            return "No changes. Infrastructure matches the configuration.\n"
        lines: list[str] = []
        for op in self.operations:
            lines.append(op.describe())
            for change in op.changes + op.state_changes:
                if op.action == Action.CREATE:
                    lines.append(f"    {change.name} = {_fmt(change.after)}")
                elif op.action == Action.UPDATE:
                    lines.append(
                        f"    {change.name}: {_fmt(change.before)} -> "
                        f"{_fmt(change.after)}"
                    )
        counts = self.summary()
        lines.append("")
        lines.append(
            f"Plan: {counts['create']} to create, {counts['update']} to "
            f"update, {counts['delete']} to delete."
        )
        return "\n".join(lines) + "\n"


def _fmt(value: Any) -> str:
    if isinstance(value, str) and value.startswith("${"):
        return f"(known after apply: {value})"
    return json.dumps(value, default=str, sort_keys=True)
