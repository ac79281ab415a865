from __future__ import annotations

from enum import Enum
from typing import Any

from strata.core import DataModel


class ResourceStatus(str, Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    DELETING = "deleting"
    DELETED = "deleted"
    FAILED = "failed"


class ResourceItem(DataModel):
    """Resource as reported by the cloud.

    Attributes:
        id: Cloud assigned identifier.
        type: Resource type.
        status: Provisioning status.
        outputs: Computed attributes such as id or arn.
        message: Status detail reported by the cloud.
        pending: Attributes a create left for a follow-up
            update_resource call.
    """

    id: str
    type: str
    status: ResourceStatus = ResourceStatus.AVAILABLE
    outputs: dict[str, Any] = dict()
    message: str | None = None
    pending: list[str] = list()
