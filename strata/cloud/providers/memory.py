"""
In Memory Cloud.

Simulates a cloud API: resources stay pending for a number of reads,
required attributes are validated per type and failures can be injected
per resource identity or type.
"""

from __future__ import annotations

__all__ = ["Memory"]

import copy
import uuid
from threading import Lock
from typing import Any, Literal

from strata.core import Context, DataModel, Provider, Response
from strata.core.exceptions import (
    NotFoundError,
    ProviderPermanentError,
    ProviderTransientError,
)

from .._models import ResourceItem, ResourceStatus

REQUIRED_ATTRIBUTES: dict[str, list[str]] = {
    "aws_vpc": ["cidr_block"],
    "aws_subnet": ["vpc_id", "cidr_block"],
    "aws_internet_gateway": [],
    "aws_eip": [],
    "aws_nat_gateway": ["subnet_id", "allocation_id"],
    "aws_route_table": ["vpc_id"],
    "aws_route": ["route_table_id", "destination_cidr_block"],
    "aws_route_table_association": ["route_table_id", "subnet_id"],
    "aws_route53_zone": ["name"],
    "aws_s3_bucket": [],
}

ID_PREFIXES: dict[str, str] = {
    "aws_vpc": "vpc",
    "aws_subnet": "subnet",
    "aws_internet_gateway": "igw",
    "aws_eip": "eipalloc",
    "aws_nat_gateway": "nat",
    "aws_route_table": "rtb",
    "aws_route": "r",
    "aws_route_table_association": "rtbassoc",
    "aws_route53_zone": "Z",
}


class FaultConfig(DataModel):
    """Injected failure.

    Attributes:
        kind: Transient failures are retryable, permanent ones are not.
        times: Number of failing calls, None for every call.
        on: Calls that fail.
    """

    kind: Literal["transient", "permanent"] = "permanent"
    times: int | None = None
    on: list[str] = ["create", "update", "delete"]


class Memory(Provider):
    pending_reads: int
    required: dict[str, list[str]]
    strict_types: bool
    faults: dict[str, FaultConfig]
    deferred: dict[str, list[str]]

    calls: list[tuple[str, str]]
    """(call, identity) for every call received."""

    # id -> resource record
    _resources: dict[str, dict[str, Any]]
    _lock: Lock

    def __init__(
        self,
        pending_reads: int = 1,
        required: dict[str, list[str]] | None = None,
        strict_types: bool = False,
        faults: dict[str, FaultConfig | dict] | None = None,
        deferred: dict[str, list[str]] | None = None,
        **kwargs,
    ):
        """Initialize.

        Args:
            pending_reads:
                Reads a created, updated or deleted resource stays
                pending before it settles.
            required:
                Required attributes per resource type.
            strict_types:
                Reject types missing from required.
            faults:
                Failures keyed by resource identity or type, e.g.
                {"aws_subnet.a": {"kind": "permanent"}}.
            deferred:
                Attributes per type a create leaves for a follow-up
                update, e.g. {"aws_vpc": ["enable_dns_hostnames"]}.
        """
        self.pending_reads = pending_reads
        self.required = (
            required if required is not None else dict(REQUIRED_ATTRIBUTES)
        )
        self.strict_types = strict_types
        self.faults = {
            k: v if isinstance(v, FaultConfig) else FaultConfig.from_dict(v)
            for k, v in (faults or {}).items()
        }
        self.deferred = dict(deferred or {})

        self.calls = []
        self._resources = dict()
        self._lock = Lock()

        super().__init__(**kwargs)

    def __setup__(self, context: Context | None = None) -> None:
        pass

    def create_resource(
        self,
        type: str,
        name: str,
        attributes: dict[str, Any],
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        identity = f"{type}.{name}"
        with self._lock:
            self._call("create", type, identity)
            self._validate(type, identity, attributes)
            id = self._new_id(type, attributes)
            pending = [
                k
                for k in self.deferred.get(type, [])
                if attributes.get(k) is not None
            ]
            self._resources[id] = {
                "type": type,
                "name": name,
                "attributes": {
                    k: copy.deepcopy(v)
                    for k, v in attributes.items()
                    if k not in pending
                },
                "status": self._settling(ResourceStatus.PENDING),
                "pending": self.pending_reads,
            }
            item = self._item(id)
            item.pending = pending
            return Response(result=item)

    def read_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        with self._lock:
            record = self._get(type, id)
            self._call("read", type, f"{type}.{record['name']}")
            if record["pending"] > 0:
                record["pending"] -= 1
            if record["pending"] == 0:
                if record["status"] == ResourceStatus.PENDING:
                    record["status"] = ResourceStatus.AVAILABLE
                elif record["status"] == ResourceStatus.DELETING:
                    self._resources.pop(id)
                    raise NotFoundError(
                        f"{id} not found", identity=f"{type}.{record['name']}"
                    )
            return Response(result=self._item(id))

    def update_resource(
        self,
        type: str,
        id: str,
        attributes: dict[str, Any],
        changes: list[str] | None = None,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        with self._lock:
            record = self._get(type, id)
            identity = f"{type}.{record['name']}"
            self._call("update", type, identity)
            self._validate(type, identity, attributes)
            record["attributes"] = copy.deepcopy(attributes)
            record["status"] = self._settling(ResourceStatus.PENDING)
            record["pending"] = self.pending_reads
            return Response(result=self._item(id))

    def delete_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        with self._lock:
            record = self._get(type, id)
            self._call("delete", type, f"{type}.{record['name']}")
            if self.pending_reads == 0:
                self._resources.pop(id)
                return Response(
                    result=ResourceItem(
                        id=id, type=type, status=ResourceStatus.DELETED
                    )
                )
            record["status"] = ResourceStatus.DELETING
            record["pending"] = self.pending_reads
            return Response(result=self._item(id))

    def close(self) -> None:
        pass

    def list_resources(self, type: str | None = None) -> list[dict[str, Any]]:
        """Snapshot of the simulated resources, for inspection."""
        with self._lock:
            return [
                {"id": id, **copy.deepcopy(record)}
                for id, record in self._resources.items()
                if type is None or record["type"] == type
            ]

    def _settling(self, status: ResourceStatus) -> ResourceStatus:
        if self.pending_reads == 0 and status == ResourceStatus.PENDING:
            return ResourceStatus.AVAILABLE
        return status

    def _get(self, type: str, id: str) -> dict[str, Any]:
        record = self._resources.get(id)
        if record is None or record["type"] != type:
            raise NotFoundError(f"{type} {id} not found")
        return record

    def _call(self, call: str, type: str, identity: str) -> None:
        self.calls.append((call, identity))
        for key in (identity, type):
            fault = self.faults.get(key)
            if fault is None or call not in fault.on:
                continue
            if fault.times is not None:
                if fault.times <= 0:
                    continue
                fault.times -= 1
            if fault.kind == "transient":
                raise ProviderTransientError(
                    "injected transient failure",
                    identity=identity,
                    action=call,
                )
            raise ProviderPermanentError(
                "injected permanent failure",
                identity=identity,
                action=call,
            )

    def _validate(
        self,
        type: str,
        identity: str,
        attributes: dict[str, Any],
    ) -> None:
        if type not in self.required:
            if self.strict_types:
                raise ProviderPermanentError(
                    f"unsupported resource type {type}", identity=identity
                )
            return
        missing = [
            a for a in self.required[type] if attributes.get(a) is None
        ]
        if missing:
            raise ProviderPermanentError(
                "missing required attributes " + ", ".join(missing),
                identity=identity,
            )

    def _new_id(self, type: str, attributes: dict[str, Any]) -> str:
        if type == "aws_s3_bucket" and attributes.get("bucket"):
            return str(attributes["bucket"])
        prefix = ID_PREFIXES.get(type, type.split("_")[-1])
        suffix = uuid.uuid4().hex[:17]
        if prefix == "Z":
            return f"Z{suffix.upper()}"
        return f"{prefix}-{suffix}"

    def _item(self, id: str) -> ResourceItem:
        record = self._resources[id]
        outputs: dict[str, Any] = {
            "id": id,
            "arn": f"arn:aws:memory:::{record['type']}/{id}",
        }
        if record["type"] == "aws_route53_zone":
            outputs["name_servers"] = [
                f"ns-{i}.memory.example" for i in range(1, 5)
            ]
        return ResourceItem(
            id=id,
            type=record["type"],
            status=record["status"],
            outputs=outputs,
        )
