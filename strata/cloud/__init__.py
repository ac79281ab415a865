from strata.core.exceptions import (
    NotFoundError,
    ProviderError,
    ProviderPermanentError,
    ProviderTransientError,
)

from ._models import ResourceItem, ResourceStatus
from .component import Cloud

__all__ = [
    "Cloud",
    "NotFoundError",
    "ProviderError",
    "ProviderPermanentError",
    "ProviderTransientError",
    "ResourceItem",
    "ResourceStatus",
]
