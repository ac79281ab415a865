from typing import Any

from strata.core import Component, Response, operation

from ._models import ResourceItem


class Cloud(Component):
    """Create, read, update and delete resources by type."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

    @operation()
    def create_resource(
        self,
        type: str,
        name: str,
        attributes: dict[str, Any],
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Create a resource.

        Args:
            type: Resource type.
            name: Logical name, used for tagging.
            attributes: Resolved attributes.

        Returns:
            Created resource, possibly still pending.

        Raises:
            ProviderTransientError: Retryable failure.
            ProviderPermanentError: Invalid request.
        """
        ...

    @operation()
    def read_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Read a resource.

        Args:
            type: Resource type.
            id: Cloud id.

        Returns:
            Resource.

        Raises:
            NotFoundError: Resource does not exist.
        """
        ...

    @operation()
    def update_resource(
        self,
        type: str,
        id: str,
        attributes: dict[str, Any],
        changes: list[str] | None = None,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Update a resource in place.

        Args:
            type: Resource type.
            id: Cloud id.
            attributes: Full set of resolved attributes.
            changes: Names of the attributes that changed.

        Returns:
            Updated resource. The id can change for resources the cloud
            replaces on update.
        """
        ...

    @operation()
    def delete_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Delete a resource.

        Args:
            type: Resource type.
            id: Cloud id.

        Returns:
            Resource, deleting or deleted.

        Raises:
            NotFoundError: Resource does not exist.
        """
        ...

    @operation()
    def close(self) -> None:
        """Close the component."""
        ...

    @operation()
    async def acreate_resource(
        self,
        type: str,
        name: str,
        attributes: dict[str, Any],
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Create a resource."""
        ...

    @operation()
    async def aread_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Read a resource."""
        ...

    @operation()
    async def aupdate_resource(
        self,
        type: str,
        id: str,
        attributes: dict[str, Any],
        changes: list[str] | None = None,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Update a resource in place."""
        ...

    @operation()
    async def adelete_resource(
        self,
        type: str,
        id: str,
        **kwargs: Any,
    ) -> Response[ResourceItem]:
        """Delete a resource."""
        ...

    @operation()
    async def aclose(self) -> None:
        """Close the component."""
        ...
