from __future__ import annotations

from typing import Any, Mapping

from strata.core import get_logger
from strata.core.exceptions import (
    CycleError,
    GraphError,
    UnresolvedReferenceError,
)
from strata.core.manifest import Manifest, ResourceConfig

from ._models import (
    NAME_PATTERN,
    Graph,
    Reference,
    Resource,
    find_references,
    identity_of,
    split_identity,
)
from ._toposort import find_cycle

logger = get_logger(__name__)


class GraphBuilder:
    """Build a validated resource graph from declarative definitions."""

    def build(
        self,
        resources: Mapping[str, Mapping[str, ResourceConfig | dict]],
        external: Mapping[str, Mapping[str, dict[str, Any]]] | None = None,
    ) -> Graph:
        """Build the graph.

        Args:
            resources:
                Managed resource definitions keyed by type, then name.
            external:
                Attributes of pre-existing resources keyed by type, then
                name.

        Returns:
            Acyclic graph.

        Raises:
            GraphError: Malformed definition.
            UnresolvedReferenceError: Reference to an undeclared resource.
            CycleError: Dependency cycle.
        """
        graph = Graph()
        for type, named in (external or {}).items():
            for name, attributes in named.items():
                self._check_names(type, name)
                resource = Resource(
                    type=type,
                    name=name,
                    attributes=dict(attributes or {}),
                    external=True,
                )
                if self._parse_value(resource.identity, attributes):
                    raise GraphError(
                        "external resources cannot hold references",
                        identity=resource.identity,
                    )
                graph.resources[resource.identity] = resource

        for type, named in resources.items():
            for name, definition in named.items():
                self._check_names(type, name)
                identity = identity_of(type, name)
                if identity in graph.resources:
                    raise GraphError(
                        "declared both as external and managed",
                        identity=identity,
                    )
                graph.resources[identity] = self._build_resource(
                    type, name, definition
                )

        self._validate(graph)
        logger.debug("Built graph with %d resources", len(graph.resources))
        return graph

    def build_from_manifest(self, manifest: Manifest) -> Graph:
        return self.build(manifest.resources, manifest.external)

    def _build_resource(
        self,
        type: str,
        name: str,
        definition: ResourceConfig | dict | None,
    ) -> Resource:
        identity = identity_of(type, name)
        if definition is None:
            definition = ResourceConfig()
        elif isinstance(definition, dict):
            definition = ResourceConfig.from_dict(definition)
        attributes = {
            key: self._parse_value(identity, value, top=True)
            for key, value in definition.attributes.items()
        }
        dependencies = {r.identity for r in find_references(attributes)}
        for dependency in definition.depends_on:
            dep_type, dep_name = split_identity(dependency)
            if not dep_type or not dep_name:
                raise GraphError(
                    f"depends_on entry {dependency} is not <type>.<name>",
                    identity=identity,
                )
            dependencies.add(dependency)
        return Resource(
            type=type,
            name=name,
            attributes=attributes,
            dependencies=sorted(dependencies),
            pinned=sorted(set(definition.pinned)),
        )

    def _parse_value(
        self,
        identity: str,
        value: Any,
        top: bool = False,
    ) -> Any:
        """Replace reference strings by Reference values.

        With top=False only reports whether any reference was found.
        """
        if isinstance(value, dict):
            parsed = {
                k: self._parse_value(identity, v, top)
                for k, v in value.items()
            }
            return parsed if top else any(parsed.values())
        if isinstance(value, list):
            items = [self._parse_value(identity, v, top) for v in value]
            return items if top else any(items)
        if isinstance(value, str) and "${" in value:
            reference = Reference.parse(value)
            if reference is None:
                raise GraphError(
                    f"unsupported expression {value!r}, expected "
                    "${<type>.<name>.<attribute>}",
                    identity=identity,
                )
            return reference if top else True
        return value if top else False

    def _check_names(self, type: str, name: str) -> None:
        for part in (type, name):
            if not NAME_PATTERN.match(part):
                raise GraphError(
                    f"invalid name {part!r}",
                    identity=identity_of(type, name),
                )

    def _validate(self, graph: Graph) -> None:
        for identity in sorted(graph.resources):
            resource = graph.resources[identity]
            for dependency in resource.dependencies:
                if dependency not in graph.resources:
                    raise UnresolvedReferenceError(identity, dependency)
                if dependency == identity:
                    raise CycleError([identity, identity])
        cycle = find_cycle(
            graph.resources.keys(),
            {k: r.dependencies for k, r in graph.resources.items()},
        )
        if cycle:
            raise CycleError(cycle)
