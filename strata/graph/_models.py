from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable

from pydantic import ConfigDict

from strata.core import DataModel

from ._toposort import topological_sort

__all__ = [
    "Graph",
    "LifecycleState",
    "Reference",
    "Resource",
    "find_references",
    "identity_of",
    "split_identity",
    "substitute",
]

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")
REFERENCE_PATTERN = re.compile(
    r"^\$\{([A-Za-z0-9_\-]+)\.([A-Za-z0-9_\-]+)\.([A-Za-z0-9_\-\.]+)\}$"
)


class LifecycleState(str, Enum):
    PLANNED = "planned"
    CREATING = "creating"
    CREATED = "created"
    UPDATING = "updating"
    DELETED = "deleted"
    FAILED = "failed"


def identity_of(type: str, name: str) -> str:
    return f"{type}.{name}"


def split_identity(identity: str) -> tuple[str, str]:
    type, _, name = identity.partition(".")
    return type, name


class Reference(DataModel):
    """Attribute of another resource, known once that resource exists.

    Written as `${<type>.<name>.<attribute>}` in a manifest.
    """

    model_config = ConfigDict(frozen=True)

    type: str
    name: str
    attribute: str

    @property
    def identity(self) -> str:
        return identity_of(self.type, self.name)

    @staticmethod
    def parse(value: Any) -> Reference | None:
        if not isinstance(value, str):
            return None
        match = REFERENCE_PATTERN.match(value)
        if not match:
            return None
        return Reference(
            type=match.group(1),
            name=match.group(2),
            attribute=match.group(3),
        )

    def __str__(self) -> str:
        return "${" + f"{self.type}.{self.name}.{self.attribute}" + "}"


def find_references(value: Any) -> list[Reference]:
    references: list[Reference] = []
    if isinstance(value, Reference):
        references.append(value)
    elif isinstance(value, dict):
        for v in value.values():
            references.extend(find_references(v))
    elif isinstance(value, (list, tuple)):
        for v in value:
            references.extend(find_references(v))
    return references


def substitute(value: Any, func: Callable[[Reference], Any]) -> Any:
    """Copy of value with every reference replaced by func(reference)."""
    if isinstance(value, Reference):
        return func(value)
    elif isinstance(value, dict):
        return {k: substitute(v, func) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [substitute(v, func) for v in value]
    return value


class Resource(DataModel):
    """Single infrastructure object.

    Attributes:
        type: Resource type, e.g. aws_vpc.
        name: Logical name unique within the type.
        attributes: Declared attributes, possibly holding references.
        dependencies: Identities this resource depends on.
        pinned: Attributes owned by the operator once the resource exists.
        external: Pre-existing resource, referenced but never managed.
        lifecycle: Lifecycle state.
    """

    type: str
    name: str
    attributes: dict[str, Any] = dict()
    dependencies: list[str] = list()
    pinned: list[str] = list()
    external: bool = False
    lifecycle: LifecycleState = LifecycleState.PLANNED

    @property
    def identity(self) -> str:
        return identity_of(self.type, self.name)


class Graph(DataModel):
    """Validated, acyclic set of resources keyed by identity."""

    resources: dict[str, Resource] = dict()

    def __contains__(self, identity: str) -> bool:
        return identity in self.resources

    def get(self, identity: str) -> Resource | None:
        return self.resources.get(identity)

    def managed(self) -> list[Resource]:
        return [r for r in self.resources.values() if not r.external]

    def dependents(self, identity: str) -> list[str]:
        return sorted(
            r.identity
            for r in self.resources.values()
            if identity in r.dependencies
        )

    def order(self, reverse: bool = False) -> list[str]:
        """Identities in dependency order, ties broken by identity."""
        return topological_sort(
            self.resources.keys(),
            {k: r.dependencies for k, r in self.resources.items()},
            reverse=reverse,
        )

    def to_dot(self) -> str:
        lines = ["digraph strata {", "  rankdir=LR;"]
        for identity in self.order():
            resource = self.resources[identity]
            style = ' style="dashed"' if resource.external else ""
            lines.append(f'  "{identity}" [shape=box{style}];')
        for identity in self.order():
            for dependency in sorted(self.resources[identity].dependencies):
                lines.append(f'  "{identity}" -> "{dependency}";')
        lines.append("}")
        return "\n".join(lines) + "\n"
