from __future__ import annotations

import uuid
from typing import Any

from ._context import Context
from ._log_helper import get_logger
from ._operation import Operation
from ._provider import Provider
from .exceptions import NotSupportedError

logger = get_logger(__name__)


class Component:
    """Base for strata components.

    A component declares its operations with `@operation()`. When a
    provider is bound, each call is dispatched to the provider method of
    the same name. The provider is given as an instance, a type name
    such as "memory", or a dict with `type` and `parameters`.
    """

    __provider__: Provider
    __type__: str

    def __init__(self, **kwargs):
        self.__type__ = kwargs.pop("__type__", self.__class__.__module__)
        if "__provider__" in kwargs:
            self.__bind__(kwargs.pop("__provider__"))

    def __bind__(self, provider: Provider | dict | str | None) -> None:
        if provider is None:
            return
        if isinstance(provider, Provider):
            provider.__component__ = self
            self.__provider__ = provider
            return
        if isinstance(provider, dict):
            provider = dict(provider)
            type = provider.pop("type")
            parameters = provider.pop("parameters", None) or dict()
        else:
            type = provider
            parameters = dict()
        from ._loader import Loader

        package_name = self.__class__.__module__.rsplit(".", 1)[0]
        path = Loader.get_provider_path(package_name, type)
        logger.debug("Binding %s to %s", self.__class__.__name__, path)
        self.__bind__(Loader.load_provider_instance(path, parameters))

    def __run__(
        self,
        operation: dict | str | Operation | None = None,
        context: dict | Context | None = None,
    ) -> Any:
        op = self._convert_operation(operation)
        if not hasattr(self, "__provider__"):
            raise NotSupportedError(
                f"{self.__class__.__name__} has no provider for {op}"
            )
        return self.__provider__.__run__(
            operation=op,
            context=self._init_context(context),
        )

    async def __arun__(
        self,
        operation: dict | str | Operation | None = None,
        context: dict | Context | None = None,
    ) -> Any:
        op = self._convert_operation(operation)
        if not hasattr(self, "__provider__"):
            raise NotSupportedError(
                f"{self.__class__.__name__} has no provider for {op}"
            )
        return await self.__provider__.__arun__(
            operation=op,
            context=self._init_context(context),
        )

    def _convert_operation(
        self,
        operation: dict | str | Operation | None,
    ) -> Operation | None:
        if isinstance(operation, dict):
            return Operation.from_dict(operation)
        elif isinstance(operation, str):
            return Operation(name=operation)
        return operation

    def _init_context(self, context: dict | Context | None) -> Context:
        if isinstance(context, dict):
            context = Context.from_dict(context)
        if context is not None and context.id is not None:
            return context
        return Context(
            id=str(uuid.uuid4()),
            data=context.data if context else None,
        )
