from typing import Any

from strata.cloud import Cloud


class CloudProvider:
    MEMORY = "memory"
    AWS = "aws"


provider_parameters: dict[str, dict[str, Any]] = {
    CloudProvider.MEMORY: {"pending_reads": 1},
    CloudProvider.AWS: {
        "region": "eu-west-1",
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
    },
}


def get_component(provider_type: str, **parameters: Any) -> Cloud:
    return Cloud(
        __provider__=dict(
            type=provider_type,
            parameters=provider_parameters[provider_type] | parameters,
        ),
    )
