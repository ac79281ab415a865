import datetime

import pytest
from botocore.exceptions import EndpointConnectionError
from botocore.stub import ANY, Stubber

from strata.cloud import (
    Cloud,
    NotFoundError,
    ProviderPermanentError,
    ProviderTransientError,
    ResourceStatus,
)
from strata.cloud.providers.aws import AWS, classify_error
from strata.core.manifest import BackoffConfig
from strata.engine import Executor, OperationStatus
from strata.graph import GraphBuilder, LifecycleState
from strata.plan import Action, Planner
from strata.state import StateSnapshot, StateStore

from ._providers import CloudProvider, provider_parameters


def get_cloud(**parameters) -> tuple[Cloud, AWS]:
    provider = AWS(**(provider_parameters[CloudProvider.AWS] | parameters))
    provider.__setup__()
    return Cloud(__provider__=provider), provider


def test_create_vpc():
    cloud, provider = get_cloud(tags={"KubernetesCluster": "k8s"})
    with Stubber(provider._ec2) as stubber:
        stubber.add_response(
            "create_vpc",
            {
                "Vpc": {
                    "VpcId": "vpc-123",
                    "CidrBlock": "10.0.0.0/16",
                    "State": "pending",
                }
            },
            {
                "CidrBlock": "10.0.0.0/16",
                "TagSpecifications": [
                    {
                        "ResourceType": "vpc",
                        "Tags": [
                            {"Key": "Name", "Value": "main"},
                            {"Key": "KubernetesCluster", "Value": "k8s"},
                        ],
                    }
                ],
            },
        )
        item = cloud.create_resource(
            type="aws_vpc",
            name="main",
            attributes={
                "cidr_block": "10.0.0.0/16",
                "enable_dns_hostnames": True,
            },
        ).result
        stubber.assert_no_pending_responses()

    assert item.id == "vpc-123"
    assert item.status == ResourceStatus.PENDING
    assert item.outputs["cidr_block"] == "10.0.0.0/16"
    assert item.pending == ["enable_dns_hostnames"]


def test_read_missing_vpc():
    cloud, provider = get_cloud()
    with Stubber(provider._ec2) as stubber:
        stubber.add_client_error(
            "describe_vpcs",
            service_error_code="InvalidVpcID.NotFound",
            http_status_code=400,
        )
        with pytest.raises(NotFoundError) as e:
            cloud.read_resource(type="aws_vpc", id="vpc-123")

    assert e.value.identity == "aws_vpc.vpc-123"


@pytest.mark.parametrize(
    "code, error",
    [
        ("RequestLimitExceeded", ProviderTransientError),
        ("InvalidVpcID.NotFound", ProviderTransientError),
        ("InvalidSubnet.Conflict", ProviderPermanentError),
        ("UnauthorizedOperation", ProviderPermanentError),
    ],
)
def test_create_subnet_errors(code: str, error: type):
    cloud, provider = get_cloud()
    with Stubber(provider._ec2) as stubber:
        stubber.add_client_error(
            "create_subnet", service_error_code=code, http_status_code=400
        )
        with pytest.raises(error) as e:
            cloud.create_resource(
                type="aws_subnet",
                name="a",
                attributes={"vpc_id": "vpc-123", "cidr_block": "10.0.1.0/24"},
            )

    assert code in str(e.value)
    assert e.value.action == "create"


def test_delete_dependency_violation_is_transient():
    cloud, provider = get_cloud()
    with Stubber(provider._ec2) as stubber:
        stubber.add_client_error(
            "delete_vpc",
            service_error_code="DependencyViolation",
            http_status_code=400,
        )
        with pytest.raises(ProviderTransientError):
            cloud.delete_resource(type="aws_vpc", id="vpc-123")


def test_route_lifecycle():
    cloud, provider = get_cloud()
    with Stubber(provider._ec2) as stubber:
        stubber.add_response(
            "create_route",
            {"Return": True},
            {
                "RouteTableId": "rtb-1",
                "DestinationCidrBlock": "0.0.0.0/0",
                "NatGatewayId": "nat-1",
            },
        )
        stubber.add_response(
            "describe_route_tables",
            {
                "RouteTables": [
                    {
                        "RouteTableId": "rtb-1",
                        "Routes": [
                            {
                                "DestinationCidrBlock": "0.0.0.0/0",
                                "NatGatewayId": "nat-1",
                                "State": "active",
                            }
                        ],
                    }
                ]
            },
            {"RouteTableIds": ["rtb-1"]},
        )
        stubber.add_response(
            "delete_route",
            {},
            {"RouteTableId": "rtb-1", "DestinationCidrBlock": "0.0.0.0/0"},
        )
        item = cloud.create_resource(
            type="aws_route",
            name="private_nat",
            attributes={
                "route_table_id": "rtb-1",
                "destination_cidr_block": "0.0.0.0/0",
                "nat_gateway_id": "nat-1",
            },
        ).result
        assert item.id == "rtb-1_0.0.0.0/0"
        assert item.status == ResourceStatus.PENDING

        read = cloud.read_resource(type="aws_route", id=item.id).result
        assert read.status == ResourceStatus.AVAILABLE

        deleted = cloud.delete_resource(type="aws_route", id=item.id).result
        assert deleted.status == ResourceStatus.DELETED
        stubber.assert_no_pending_responses()


def test_route_needs_target():
    cloud, _ = get_cloud()

    with pytest.raises(ProviderPermanentError):
        cloud.create_resource(
            type="aws_route",
            name="broken",
            attributes={
                "route_table_id": "rtb-1",
                "destination_cidr_block": "0.0.0.0/0",
            },
        )


def test_update_in_place():
    cloud, provider = get_cloud()
    with Stubber(provider._ec2) as stubber:
        stubber.add_response(
            "modify_subnet_attribute",
            {},
            {"SubnetId": "subnet-1", "MapPublicIpOnLaunch": {"Value": True}},
        )
        stubber.add_response(
            "describe_subnets",
            {
                "Subnets": [
                    {
                        "SubnetId": "subnet-1",
                        "VpcId": "vpc-123",
                        "CidrBlock": "10.0.100.0/24",
                        "State": "available",
                    }
                ]
            },
            {"SubnetIds": ["subnet-1"]},
        )
        item = cloud.update_resource(
            type="aws_subnet",
            id="subnet-1",
            attributes={
                "vpc_id": "vpc-123",
                "cidr_block": "10.0.100.0/24",
                "map_public_ip_on_launch": True,
            },
            changes=["map_public_ip_on_launch"],
        ).result
        stubber.assert_no_pending_responses()

    assert item.status == ResourceStatus.AVAILABLE
    assert item.outputs["vpc_id"] == "vpc-123"


def test_update_requiring_replacement():
    cloud, provider = get_cloud()
    with Stubber(provider._ec2):
        with pytest.raises(ProviderPermanentError) as e:
            cloud.update_resource(
                type="aws_vpc",
                id="vpc-123",
                attributes={"cidr_block": "10.1.0.0/16"},
                changes=["cidr_block"],
            )

    assert "cidr_block" in str(e.value)


def test_create_hosted_zone():
    cloud, provider = get_cloud()
    with Stubber(provider._route53) as stubber:
        stubber.add_response(
            "create_hosted_zone",
            {
                "HostedZone": {
                    "Id": "/hostedzone/Z0123456789",
                    "Name": "k8s.example.com.",
                    "CallerReference": "ref",
                },
                "ChangeInfo": {
                    "Id": "/change/C1",
                    "Status": "PENDING",
                    "SubmittedAt": datetime.datetime(2024, 1, 1),
                },
                "DelegationSet": {"NameServers": ["ns-1.awsdns.com"]},
                "Location": "https://route53.amazonaws.com/hostedzone/Z01",
            },
            {
                "Name": "k8s.example.com",
                "CallerReference": ANY,
                "HostedZoneConfig": {"Comment": "", "PrivateZone": False},
            },
        )
        item = cloud.create_resource(
            type="aws_route53_zone",
            name="cluster",
            attributes={"name": "k8s.example.com"},
        ).result

    assert item.id == "Z0123456789"
    assert item.status == ResourceStatus.PENDING
    assert item.outputs["name_servers"] == ["ns-1.awsdns.com"]


def test_create_bucket_outside_us_east_1():
    cloud, provider = get_cloud()
    with Stubber(provider._s3) as stubber:
        stubber.add_response(
            "create_bucket",
            {"Location": "/kops-state"},
            {
                "Bucket": "kops-state",
                "CreateBucketConfiguration": {
                    "LocationConstraint": "eu-west-1"
                },
            },
        )
        item = cloud.create_resource(
            type="aws_s3_bucket",
            name="state",
            attributes={"bucket": "kops-state", "versioning": True},
        ).result
        stubber.assert_no_pending_responses()

    assert item.id == "kops-state"
    assert item.outputs["arn"] == "arn:aws:s3:::kops-state"
    assert item.pending == ["versioning"]


def test_unsupported_type():
    cloud, _ = get_cloud()

    with pytest.raises(ProviderPermanentError):
        cloud.create_resource(type="aws_instance", name="a", attributes={})


def test_connection_errors_are_transient():
    error = EndpointConnectionError(endpoint_url="https://ec2.amazonaws.com")

    classified = classify_error(error, "create", "aws_vpc.main", False)
    assert isinstance(classified, ProviderTransientError)
    assert classified.identity == "aws_vpc.main"


def test_throttled_vpc_configuration_keeps_the_created_vpc():
    _, provider = get_cloud()
    cloud = Cloud(__provider__=provider)
    state = StateStore(__provider__="memory")
    executor = Executor(
        cloud=cloud,
        state=state,
        retry=BackoffConfig(max_attempts=2, initial_delay=0.01),
        sleep=lambda seconds: None,
    )
    resources = {
        "aws_vpc": {
            "main": {
                "attributes": {
                    "cidr_block": "10.0.0.0/16",
                    "enable_dns_hostnames": True,
                }
            }
        }
    }
    plan = Planner().plan(GraphBuilder().build(resources), StateSnapshot())

    with Stubber(provider._ec2) as stubber:
        stubber.add_response(
            "create_vpc",
            {"Vpc": {"VpcId": "vpc-1", "State": "pending"}},
            {"CidrBlock": "10.0.0.0/16", "TagSpecifications": ANY},
        )
        for _ in range(2):
            stubber.add_client_error(
                "modify_vpc_attribute",
                service_error_code="Throttling",
                http_status_code=400,
                expected_params={
                    "VpcId": "vpc-1",
                    "EnableDnsHostnames": {"Value": True},
                },
            )
        result = executor.execute(plan, StateSnapshot())
        stubber.assert_no_pending_responses()

    vpc = result.get("aws_vpc.main")
    assert vpc.status == OperationStatus.FAILED
    assert vpc.resource_id == "vpc-1"
    record = state.get_snapshot().result.resources["aws_vpc.main"]
    assert record.lifecycle == LifecycleState.FAILED
    assert record.resource_id == "vpc-1"
    assert "enable_dns_hostnames" not in record.attributes

    replan = Planner().plan(
        GraphBuilder().build(resources), state.get_snapshot().result
    )
    assert [(op.action, op.identity) for op in replan.operations] == [
        (Action.UPDATE, "aws_vpc.main")
    ]
    assert [c.name for c in replan.operations[0].changes] == [
        "enable_dns_hostnames"
    ]


def test_nat_gateway_retry_reuses_client_token():
    cloud, provider = get_cloud()
    attributes = {"subnet_id": "subnet-1", "allocation_id": "eipalloc-1"}
    tokens = []

    def capture(params, **kwargs):
        tokens.append(params.get("ClientToken"))

    provider._ec2.meta.events.register(
        "provide-client-params.ec2.CreateNatGateway", capture
    )
    with Stubber(provider._ec2) as stubber:
        stubber.add_client_error(
            "create_nat_gateway",
            service_error_code="RequestLimitExceeded",
            http_status_code=400,
        )
        stubber.add_response(
            "create_nat_gateway",
            {
                "NatGateway": {
                    "NatGatewayId": "nat-1",
                    "SubnetId": "subnet-1",
                    "State": "pending",
                }
            },
        )
        with pytest.raises(ProviderTransientError):
            cloud.create_resource(
                type="aws_nat_gateway", name="main", attributes=attributes
            )
        item = cloud.create_resource(
            type="aws_nat_gateway", name="main", attributes=attributes
        ).result
        stubber.assert_no_pending_responses()

    assert item.id == "nat-1"
    assert len(tokens) == 2
    assert tokens[0] is not None
    assert tokens[0] == tokens[1]
