from typing import Any


def vpc_and_subnet() -> dict[str, Any]:
    return {
        "aws_vpc": {
            "main": {
                "attributes": {
                    "cidr_block": "10.0.0.0/16",
                    "enable_dns_hostnames": True,
                },
            },
        },
        "aws_subnet": {
            "a": {
                "attributes": {
                    "vpc_id": "${aws_vpc.main.id}",
                    "cidr_block": "10.0.1.0/24",
                    "availability_zone": "us-east-1a",
                },
            },
        },
    }


def network() -> dict[str, Any]:
    """VPC with one public and one private subnet behind a NAT gateway."""
    resources = vpc_and_subnet()
    resources["aws_subnet"]["utility"] = {
        "attributes": {
            "vpc_id": "${aws_vpc.main.id}",
            "cidr_block": "10.0.100.0/24",
            "map_public_ip_on_launch": True,
        },
    }
    resources["aws_internet_gateway"] = {
        "main": {"attributes": {"vpc_id": "${aws_vpc.main.id}"}},
    }
    resources["aws_eip"] = {"nat": {"attributes": {}}}
    resources["aws_nat_gateway"] = {
        "main": {
            "attributes": {
                "subnet_id": "${aws_subnet.utility.id}",
                "allocation_id": "${aws_eip.nat.id}",
            },
            "depends_on": ["aws_internet_gateway.main"],
        },
    }
    resources["aws_route_table"] = {
        "private": {"attributes": {"vpc_id": "${aws_vpc.main.id}"}},
    }
    resources["aws_route"] = {
        "private_nat": {
            "attributes": {
                "route_table_id": "${aws_route_table.private.id}",
                "destination_cidr_block": "0.0.0.0/0",
                "nat_gateway_id": "${aws_nat_gateway.main.id}",
            },
        },
    }
    resources["aws_route_table_association"] = {
        "a": {
            "attributes": {
                "route_table_id": "${aws_route_table.private.id}",
                "subnet_id": "${aws_subnet.a.id}",
            },
        },
    }
    return resources


def manifest(
    resources: dict[str, Any] | None = None,
    external: dict[str, Any] | None = None,
    outputs: dict[str, Any] | None = None,
    faults: dict[str, Any] | None = None,
    pending_reads: int = 1,
) -> dict[str, Any]:
    return {
        "metadata": {"name": "test"},
        "settings": {
            "workers": 2,
            "retry": {"max_attempts": 3, "initial_delay": 0.01},
            "poll": {"max_attempts": 5, "initial_delay": 0.01},
        },
        "state": {"type": "memory"},
        "cloud": {
            "type": "memory",
            "parameters": {
                "pending_reads": pending_reads,
                "faults": faults or {},
            },
        },
        "external": external or {},
        "resources": resources if resources is not None else vpc_and_subnet(),
        "outputs": outputs or {},
    }
