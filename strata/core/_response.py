from typing import Any, Generic, TypeVar

from ._context import Context
from .data_model import DataModel

T = TypeVar("T")


class Response(DataModel, Generic[T]):
    result: T
    """Result of the operation."""

    context: Context | None = None
    """Operation context."""


def unwrap(response: Any) -> Any:
    """Result of a Response, or the value itself."""
    if isinstance(response, Response):
        return response.result
    return response
