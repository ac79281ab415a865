"""
Amazon Web Services cloud.

Covers the network a Kops cluster is installed into: VPC, subnets,
internet and NAT gateways, elastic IPs, route tables, routes and their
associations, a Route53 hosted zone and the S3 bucket holding Kops state.
"""

from __future__ import annotations

__all__ = ["AWS"]

import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import boto3
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
)

from strata.core import Context, Provider, Response, get_logger
from strata.core.exceptions import (
    NotFoundError,
    ProviderPermanentError,
    ProviderTransientError,
)

from .._models import ResourceItem, ResourceStatus

logger = get_logger(__name__)

TRANSIENT_CODES = {
    "DependencyViolation",
    "IncorrectState",
    "InternalError",
    "InternalFailure",
    "OperationAborted",
    "PriorRequestNotComplete",
    "RequestLimitExceeded",
    "RequestThrottled",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
    "Unavailable",
}
NOT_FOUND_CODES = {
    "404",
    "NoSuchBucket",
    "NoSuchHostedZone",
    "NotFound",
}


def classify_error(
    error: Exception,
    action: str,
    identity: str | None,
    missing_is_transient: bool,
) -> Exception:
    """Map a botocore error to the engine error taxonomy.

    Args:
        error: Error raised by boto3.
        action: Call being made.
        identity: Resource the call was made for.
        missing_is_transient: Treat "not found" as eventual consistency
            lag instead of a missing resource.
    """
    if isinstance(error, (EndpointConnectionError, ConnectionClosedError)):
        return ProviderTransientError(
            str(error), identity=identity, action=action
        )
    if not isinstance(error, ClientError):
        return error
    code = error.response.get("Error", {}).get("Code", "")
    message = error.response.get("Error", {}).get("Message", "") or code
    if code.endswith(".NotFound") or code in NOT_FOUND_CODES:
        if missing_is_transient:
            return ProviderTransientError(
                f"{code}: {message}", identity=identity, action=action
            )
        return NotFoundError(
            f"{code}: {message}", identity=identity, action=action
        )
    if code in TRANSIENT_CODES:
        return ProviderTransientError(
            f"{code}: {message}", identity=identity, action=action
        )
    return ProviderPermanentError(
        f"{code}: {message}", identity=identity, action=action
    )


class AWS(Provider):
    region: str | None
    profile_name: str | None
    aws_access_key_id: str | None
    aws_secret_access_key: str | None
    aws_session_token: str | None
    tags: dict[str, str]
    nparams: dict[str, Any]

    _ec2: Any
    _route53: Any
    _s3: Any
    _init: bool
    _handlers: dict[str, _Handler]

    def __init__(
        self,
        region: str | None = None,
        profile_name: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        aws_session_token: str | None = None,
        tags: dict[str, str] | None = None,
        nparams: dict[str, Any] = dict(),
        **kwargs,
    ):
        """Initialize.

        Args:
            region:
                AWS region name.
            profile_name:
                AWS profile name.
            aws_access_key_id:
                AWS access key id.
            aws_secret_access_key:
                AWS secret access key.
            aws_session_token:
                AWS session token.
            tags:
                Tags added to every taggable resource.
            nparams:
                Native parameters to the boto3 clients.
        """
        self.region = region
        self.profile_name = profile_name
        self.aws_access_key_id = aws_access_key_id
        self.aws_secret_access_key = aws_secret_access_key
        self.aws_session_token = aws_session_token
        self.tags = tags or dict()
        self.nparams = nparams

        self._ec2 = None
        self._route53 = None
        self._s3 = None
        self._init = False
        self._handlers = {
            "aws_vpc": _Vpc(self),
            "aws_subnet": _Subnet(self),
            "aws_internet_gateway": _InternetGateway(self),
            "aws_eip": _Eip(self),
            "aws_nat_gateway": _NatGateway(self),
            "aws_route_table": _RouteTable(self),
            "aws_route": _Route(self),
            "aws_route_table_association": _RouteTableAssociation(self),
            "aws_route53_zone": _HostedZone(self),
            "aws_s3_bucket": _Bucket(self),
        }

        super().__init__(**kwargs)

    def __setup__(self, context: Context | None = None) -> None:
        if self._init:
            return

        session_kwargs: dict[str, Any] = {}
        if self.aws_access_key_id:
            session_kwargs["aws_access_key_id"] = self.aws_access_key_id
        if self.aws_secret_access_key:
            session_kwargs["aws_secret_access_key"] = (
                self.aws_secret_access_key
            )
        if self.aws_session_token:
            session_kwargs["aws_session_token"] = self.aws_session_token
        if self.profile_name:
            session_kwargs["profile_name"] = self.profile_name

        session = boto3.Session(**session_kwargs)
        self._ec2 = session.client(
            "ec2", region_name=self.region, **self.nparams
        )
        self._route53 = session.client(
            "route53", region_name=self.region, **self.nparams
        )
        self._s3 = session.client(
            "s3", region_name=self.region, **self.nparams
        )
        self._init = True

    def create_resource(
        self,
        type: str,
        name: str,
        attributes: dict[str, Any],
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        self.__setup__()
        handler = self._handler(type, name)
        with self._errors("create", f"{type}.{name}", True):
            item = handler.create(name, attributes)
        item.pending = handler.pending(attributes)
        logger.debug("Created %s %s", type, item.id)
        return Response(result=item)

    def read_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        self.__setup__()
        handler = self._handler(type, id)
        with self._errors("read", f"{type}.{id}", False):
            item = handler.read(id)
        return Response(result=item)

    def update_resource(
        self,
        type: str,
        id: str,
        attributes: dict[str, Any],
        changes: list[str] | None = None,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        self.__setup__()
        handler = self._handler(type, id)
        changed = list(changes) if changes is not None else list(attributes)
        unsupported = [
            c for c in changed if c not in handler.updatable and c != "tags"
        ]
        if unsupported:
            raise ProviderPermanentError(
                f"cannot change {', '.join(sorted(unsupported))} in place",
                identity=f"{type}.{id}",
                action="update",
            )
        with self._errors("update", f"{type}.{id}", True):
            item = handler.update(id, attributes, changed)
        return Response(result=item)

    def delete_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        self.__setup__()
        handler = self._handler(type, id)
        with self._errors("delete", f"{type}.{id}", False):
            item = handler.delete(id)
        return Response(result=item)

    def close(self) -> None:
        self._init = False

    def _handler(self, type: str, ref: str) -> _Handler:
        if type not in self._handlers:
            raise ProviderPermanentError(
                f"unsupported resource type {type}",
                identity=f"{type}.{ref}",
            )
        return self._handlers[type]

    @contextmanager
    def _errors(
        self,
        action: str,
        identity: str,
        missing_is_transient: bool,
    ) -> Iterator[None]:
        try:
            yield
        except (
            ClientError,
            EndpointConnectionError,
            ConnectionClosedError,
        ) as e:
            raise classify_error(e, action, identity, missing_is_transient)

    def tag_list(self, name: str, attributes: dict[str, Any]) -> list[dict]:
        tags = {"Name": name} | self.tags | dict(attributes.get("tags") or {})
        return [{"Key": k, "Value": str(v)} for k, v in tags.items()]

    def tag_specifications(
        self,
        resource_type: str,
        name: str,
        attributes: dict[str, Any],
    ) -> list[dict]:
        return [
            {
                "ResourceType": resource_type,
                "Tags": self.tag_list(name, attributes),
            }
        ]


class _Handler:
    """Calls for one resource type.

    `create` makes exactly one creating call. Attributes listed in
    `deferred` are applied afterwards through `update`, once the new id
    is recorded.
    """

    provider: AWS
    type: str = ""
    updatable: tuple[str, ...] = ()
    deferred: tuple[str, ...] = ()

    def __init__(self, provider: AWS):
        self.provider = provider

    @property
    def ec2(self) -> Any:
        return self.provider._ec2

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        raise NotImplementedError

    def pending(self, attributes: dict[str, Any]) -> list[str]:
        return [k for k in self.deferred if attributes.get(k) is not None]

    def read(self, id: str) -> ResourceItem:
        raise NotImplementedError

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        if "tags" in changes:
            self.retag(id, attributes)
        return self.read(id)

    def delete(self, id: str) -> ResourceItem:
        raise NotImplementedError

    def retag(self, id: str, attributes: dict[str, Any]) -> None:
        tags = self.provider.tag_list(
            attributes.get("name") or id, attributes
        )
        self.ec2.create_tags(Resources=[id], Tags=tags)

    def item(
        self,
        id: str,
        status: ResourceStatus,
        message: str | None = None,
        **outputs: Any,
    ) -> ResourceItem:
        return ResourceItem(
            id=id,
            type=self.type,
            status=status,
            outputs={"id": id} | outputs,
            message=message,
        )

    def not_found(self, id: str) -> NotFoundError:
        return NotFoundError(f"{id} not found", identity=f"{self.type}.{id}")


def _state(value: str | None) -> ResourceStatus:
    mapping = {
        "pending": ResourceStatus.PENDING,
        "available": ResourceStatus.AVAILABLE,
        "attached": ResourceStatus.AVAILABLE,
        "associated": ResourceStatus.AVAILABLE,
        "active": ResourceStatus.AVAILABLE,
        "associating": ResourceStatus.PENDING,
        "attaching": ResourceStatus.PENDING,
        "deleting": ResourceStatus.DELETING,
        "detaching": ResourceStatus.DELETING,
        "disassociating": ResourceStatus.DELETING,
        "deleted": ResourceStatus.DELETED,
        "disassociated": ResourceStatus.DELETED,
        "failed": ResourceStatus.FAILED,
        "blackhole": ResourceStatus.FAILED,
    }
    return mapping.get((value or "").lower(), ResourceStatus.PENDING)


class _Vpc(_Handler):
    type = "aws_vpc"
    updatable = ("enable_dns_hostnames", "enable_dns_support")
    deferred = updatable

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        response = self.ec2.create_vpc(
            CidrBlock=attributes["cidr_block"],
            TagSpecifications=self.provider.tag_specifications(
                "vpc", name, attributes
            ),
        )
        vpc = response["Vpc"]
        return self.item(
            vpc["VpcId"],
            _state(vpc.get("State")),
            cidr_block=vpc.get("CidrBlock"),
        )

    def read(self, id: str) -> ResourceItem:
        vpcs = self.ec2.describe_vpcs(VpcIds=[id]).get("Vpcs", [])
        if not vpcs:
            raise self.not_found(id)
        vpc = vpcs[0]
        return self.item(
            id,
            _state(vpc.get("State")),
            cidr_block=vpc.get("CidrBlock"),
            owner_id=vpc.get("OwnerId"),
        )

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        self._modify(id, attributes, changes)
        return super().update(id, attributes, changes)

    def delete(self, id: str) -> ResourceItem:
        self.ec2.delete_vpc(VpcId=id)
        return self.item(id, ResourceStatus.DELETED)

    def _modify(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> None:
        # one attribute per call
        if "enable_dns_support" in changes and (
            attributes.get("enable_dns_support") is not None
        ):
            self.ec2.modify_vpc_attribute(
                VpcId=id,
                EnableDnsSupport={
                    "Value": bool(attributes["enable_dns_support"])
                },
            )
        if "enable_dns_hostnames" in changes and (
            attributes.get("enable_dns_hostnames") is not None
        ):
            self.ec2.modify_vpc_attribute(
                VpcId=id,
                EnableDnsHostnames={
                    "Value": bool(attributes["enable_dns_hostnames"])
                },
            )


class _Subnet(_Handler):
    type = "aws_subnet"
    updatable = ("map_public_ip_on_launch",)
    deferred = updatable

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        args: dict[str, Any] = {
            "VpcId": attributes["vpc_id"],
            "CidrBlock": attributes["cidr_block"],
            "TagSpecifications": self.provider.tag_specifications(
                "subnet", name, attributes
            ),
        }
        if attributes.get("availability_zone"):
            args["AvailabilityZone"] = attributes["availability_zone"]
        return self._item(self.ec2.create_subnet(**args)["Subnet"])

    def read(self, id: str) -> ResourceItem:
        subnets = self.ec2.describe_subnets(SubnetIds=[id]).get("Subnets", [])
        if not subnets:
            raise self.not_found(id)
        return self._item(subnets[0])

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        self._modify(id, attributes, changes)
        return super().update(id, attributes, changes)

    def delete(self, id: str) -> ResourceItem:
        self.ec2.delete_subnet(SubnetId=id)
        return self.item(id, ResourceStatus.DELETED)

    def _modify(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> None:
        if "map_public_ip_on_launch" in changes and (
            attributes.get("map_public_ip_on_launch") is not None
        ):
            self.ec2.modify_subnet_attribute(
                SubnetId=id,
                MapPublicIpOnLaunch={
                    "Value": bool(attributes["map_public_ip_on_launch"])
                },
            )

    def _item(self, subnet: dict[str, Any]) -> ResourceItem:
        return self.item(
            subnet["SubnetId"],
            _state(subnet.get("State")),
            vpc_id=subnet.get("VpcId"),
            cidr_block=subnet.get("CidrBlock"),
            availability_zone=subnet.get("AvailabilityZone"),
        )


class _InternetGateway(_Handler):
    type = "aws_internet_gateway"
    updatable = ("vpc_id",)
    deferred = updatable

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        gateway = self.ec2.create_internet_gateway(
            TagSpecifications=self.provider.tag_specifications(
                "internet-gateway", name, attributes
            ),
        )["InternetGateway"]
        return self.item(
            gateway["InternetGatewayId"], ResourceStatus.AVAILABLE
        )

    def read(self, id: str) -> ResourceItem:
        gateway = self._describe(id)
        attachments = gateway.get("Attachments", [])
        if not attachments:
            return self.item(id, ResourceStatus.AVAILABLE)
        attachment = attachments[0]
        return self.item(
            id,
            _state(attachment.get("State")),
            vpc_id=attachment.get("VpcId"),
        )

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        if "vpc_id" in changes:
            self._detach(id)
            if attributes.get("vpc_id"):
                self.ec2.attach_internet_gateway(
                    InternetGatewayId=id, VpcId=attributes["vpc_id"]
                )
        return super().update(id, attributes, changes)

    def delete(self, id: str) -> ResourceItem:
        self._detach(id)
        self.ec2.delete_internet_gateway(InternetGatewayId=id)
        return self.item(id, ResourceStatus.DELETED)

    def _describe(self, id: str) -> dict[str, Any]:
        gateways = self.ec2.describe_internet_gateways(
            InternetGatewayIds=[id]
        ).get("InternetGateways", [])
        if not gateways:
            raise self.not_found(id)
        return gateways[0]

    def _detach(self, id: str) -> None:
        for attachment in self._describe(id).get("Attachments", []):
            self.ec2.detach_internet_gateway(
                InternetGatewayId=id, VpcId=attachment["VpcId"]
            )


class _Eip(_Handler):
    type = "aws_eip"

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        address = self.ec2.allocate_address(
            Domain="vpc",
            TagSpecifications=self.provider.tag_specifications(
                "elastic-ip", name, attributes
            ),
        )
        return self.item(
            address["AllocationId"],
            ResourceStatus.AVAILABLE,
            public_ip=address.get("PublicIp"),
        )

    def read(self, id: str) -> ResourceItem:
        addresses = self.ec2.describe_addresses(AllocationIds=[id]).get(
            "Addresses", []
        )
        if not addresses:
            raise self.not_found(id)
        return self.item(
            id,
            ResourceStatus.AVAILABLE,
            public_ip=addresses[0].get("PublicIp"),
        )

    def delete(self, id: str) -> ResourceItem:
        self.ec2.release_address(AllocationId=id)
        return self.item(id, ResourceStatus.DELETED)


class _NatGateway(_Handler):
    type = "aws_nat_gateway"

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        # stable across retries of the same gateway
        token = uuid.uuid5(
            uuid.NAMESPACE_OID,
            f"{name}:{attributes['subnet_id']}:{attributes['allocation_id']}",
        )
        gateway = self.ec2.create_nat_gateway(
            SubnetId=attributes["subnet_id"],
            AllocationId=attributes["allocation_id"],
            ClientToken=str(token),
            TagSpecifications=self.provider.tag_specifications(
                "natgateway", name, attributes
            ),
        )["NatGateway"]
        return self._item(gateway)

    def read(self, id: str) -> ResourceItem:
        gateways = self.ec2.describe_nat_gateways(NatGatewayIds=[id]).get(
            "NatGateways", []
        )
        if not gateways:
            raise self.not_found(id)
        return self._item(gateways[0])

    def delete(self, id: str) -> ResourceItem:
        self.ec2.delete_nat_gateway(NatGatewayId=id)
        return self.item(id, ResourceStatus.DELETING)

    def _item(self, gateway: dict[str, Any]) -> ResourceItem:
        addresses = gateway.get("NatGatewayAddresses", [])
        return self.item(
            gateway["NatGatewayId"],
            _state(gateway.get("State")),
            message=gateway.get("FailureMessage"),
            subnet_id=gateway.get("SubnetId"),
            public_ip=addresses[0].get("PublicIp") if addresses else None,
        )


class _RouteTable(_Handler):
    type = "aws_route_table"

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        table = self.ec2.create_route_table(
            VpcId=attributes["vpc_id"],
            TagSpecifications=self.provider.tag_specifications(
                "route-table", name, attributes
            ),
        )["RouteTable"]
        return self.item(
            table["RouteTableId"],
            ResourceStatus.AVAILABLE,
            vpc_id=table.get("VpcId"),
        )

    def read(self, id: str) -> ResourceItem:
        tables = self.ec2.describe_route_tables(RouteTableIds=[id]).get(
            "RouteTables", []
        )
        if not tables:
            raise self.not_found(id)
        return self.item(
            id, ResourceStatus.AVAILABLE, vpc_id=tables[0].get("VpcId")
        )

    def delete(self, id: str) -> ResourceItem:
        self.ec2.delete_route_table(RouteTableId=id)
        return self.item(id, ResourceStatus.DELETED)


class _Route(_Handler):
    """Routes have no cloud id; the id is <route table>_<destination>."""

    type = "aws_route"
    updatable = ("gateway_id", "nat_gateway_id")

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        table_id = attributes["route_table_id"]
        destination = attributes["destination_cidr_block"]
        self.ec2.create_route(
            RouteTableId=table_id,
            DestinationCidrBlock=destination,
            **self._target(attributes),
        )
        return self.item(f"{table_id}_{destination}", ResourceStatus.PENDING)

    def read(self, id: str) -> ResourceItem:
        table_id, destination = self._split(id)
        tables = self.ec2.describe_route_tables(RouteTableIds=[table_id]).get(
            "RouteTables", []
        )
        for table in tables:
            for route in table.get("Routes", []):
                if route.get("DestinationCidrBlock") == destination:
                    return self.item(
                        id,
                        _state(route.get("State")),
                        route_table_id=table_id,
                    )
        raise self.not_found(id)

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        table_id, destination = self._split(id)
        self.ec2.replace_route(
            RouteTableId=table_id,
            DestinationCidrBlock=destination,
            **self._target(attributes),
        )
        return self.read(id)

    def delete(self, id: str) -> ResourceItem:
        table_id, destination = self._split(id)
        self.ec2.delete_route(
            RouteTableId=table_id, DestinationCidrBlock=destination
        )
        return self.item(id, ResourceStatus.DELETED)

    def _target(self, attributes: dict[str, Any]) -> dict[str, Any]:
        if attributes.get("nat_gateway_id"):
            return {"NatGatewayId": attributes["nat_gateway_id"]}
        if attributes.get("gateway_id"):
            return {"GatewayId": attributes["gateway_id"]}
        raise ProviderPermanentError(
            "route needs gateway_id or nat_gateway_id",
            identity=f"{self.type}.{attributes.get('route_table_id')}",
        )

    def _split(self, id: str) -> tuple[str, str]:
        table_id, _, destination = id.partition("_")
        return table_id, destination

    def retag(self, id: str, attributes: dict[str, Any]) -> None:
        pass


class _RouteTableAssociation(_Handler):
    type = "aws_route_table_association"
    updatable = ("route_table_id",)

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        response = self.ec2.associate_route_table(
            RouteTableId=attributes["route_table_id"],
            SubnetId=attributes["subnet_id"],
        )
        return self.item(
            response["AssociationId"],
            _state(response.get("AssociationState", {}).get("State")),
        )

    def read(self, id: str) -> ResourceItem:
        tables = self.ec2.describe_route_tables(
            Filters=[
                {
                    "Name": "association.route-table-association-id",
                    "Values": [id],
                }
            ]
        ).get("RouteTables", [])
        for table in tables:
            for association in table.get("Associations", []):
                if association.get("RouteTableAssociationId") == id:
                    return self.item(
                        id,
                        _state(
                            association.get("AssociationState", {}).get(
                                "State", "associated"
                            )
                        ),
                        route_table_id=table.get("RouteTableId"),
                        subnet_id=association.get("SubnetId"),
                    )
        raise self.not_found(id)

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        response = self.ec2.replace_route_table_association(
            AssociationId=id,
            RouteTableId=attributes["route_table_id"],
        )
        return self.item(
            response["NewAssociationId"],
            _state(response.get("AssociationState", {}).get("State")),
        )

    def delete(self, id: str) -> ResourceItem:
        self.ec2.disassociate_route_table(AssociationId=id)
        return self.item(id, ResourceStatus.DELETED)

    def retag(self, id: str, attributes: dict[str, Any]) -> None:
        pass


class _HostedZone(_Handler):
    type = "aws_route53_zone"
    updatable = ("comment",)

    @property
    def route53(self) -> Any:
        return self.provider._route53

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        args: dict[str, Any] = {
            "Name": attributes["name"],
            "CallerReference": f"strata-{name}-{uuid.uuid4().hex}",
            "HostedZoneConfig": {
                "Comment": attributes.get("comment") or "",
                "PrivateZone": bool(attributes.get("vpc_id")),
            },
        }
        if attributes.get("vpc_id"):
            args["VPC"] = {
                "VPCRegion": attributes.get("vpc_region")
                or self.provider.region,
                "VPCId": attributes["vpc_id"],
            }
        response = self.route53.create_hosted_zone(**args)
        zone = response["HostedZone"]
        status = (
            ResourceStatus.AVAILABLE
            if response.get("ChangeInfo", {}).get("Status") == "INSYNC"
            else ResourceStatus.PENDING
        )
        return self.item(
            self._short_id(zone["Id"]),
            status,
            zone_name=zone.get("Name"),
            name_servers=response.get("DelegationSet", {}).get(
                "NameServers", []
            ),
        )

    def read(self, id: str) -> ResourceItem:
        response = self.route53.get_hosted_zone(Id=id)
        zone = response["HostedZone"]
        return self.item(
            id,
            ResourceStatus.AVAILABLE,
            zone_name=zone.get("Name"),
            name_servers=response.get("DelegationSet", {}).get(
                "NameServers", []
            ),
        )

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        if "comment" in changes:
            self.route53.update_hosted_zone_comment(
                Id=id, Comment=attributes.get("comment") or ""
            )
        return self.read(id)

    def delete(self, id: str) -> ResourceItem:
        self.route53.delete_hosted_zone(Id=id)
        return self.item(id, ResourceStatus.DELETED)

    def _short_id(self, id: str) -> str:
        return id.rsplit("/", 1)[-1]


class _Bucket(_Handler):
    type = "aws_s3_bucket"
    updatable = ("versioning",)
    deferred = updatable

    @property
    def s3(self) -> Any:
        return self.provider._s3

    def create(self, name: str, attributes: dict[str, Any]) -> ResourceItem:
        bucket = attributes.get("bucket") or name
        args: dict[str, Any] = {"Bucket": bucket}
        region = self.provider.region
        if region and region != "us-east-1":
            args["CreateBucketConfiguration"] = {"LocationConstraint": region}
        self.s3.create_bucket(**args)
        return self.item(
            bucket, ResourceStatus.PENDING, **self._outputs(bucket)
        )

    def read(self, id: str) -> ResourceItem:
        self.s3.head_bucket(Bucket=id)
        return self.item(id, ResourceStatus.AVAILABLE, **self._outputs(id))

    def update(
        self,
        id: str,
        attributes: dict[str, Any],
        changes: list[str],
    ) -> ResourceItem:
        if "versioning" in changes:
            self._versioning(id, attributes)
        return self.read(id)

    def delete(self, id: str) -> ResourceItem:
        self.s3.delete_bucket(Bucket=id)
        return self.item(id, ResourceStatus.DELETED)

    def retag(self, id: str, attributes: dict[str, Any]) -> None:
        pass

    def _versioning(self, bucket: str, attributes: dict[str, Any]) -> None:
        status = "Enabled" if attributes.get("versioning") else "Suspended"
        self.s3.put_bucket_versioning(
            Bucket=bucket,
            VersioningConfiguration={"Status": status},
        )

    def _outputs(self, bucket: str) -> dict[str, Any]:
        return {"arn": f"arn:aws:s3:::{bucket}", "bucket": bucket}
