from typing import Any

from ._async_helper import run_async, run_sync
from ._context import Context
from ._operation import Operation
from ._type_converter import TypeConverter
from .exceptions import NotSupportedError


class Provider:
    """Base for providers bound to a component.

    Subclasses implement the component operations they support under the
    same names, sync or `a`-prefixed async. Lazy client creation goes in
    `__setup__`, which runs before every dispatched call and must be
    idempotent.
    """

    __component__: Any
    __type__: str

    def __init__(self, **kwargs):
        self.__type__ = kwargs.pop("__type__", self.__class__.__module__)
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __setup__(self, context: Context | None = None) -> None:
        pass

    async def __asetup__(self, context: Context | None = None) -> None:
        await run_async(self.__setup__, context=context)

    def __run__(
        self,
        operation: Operation | None = None,
        context: Context | None = None,
    ) -> Any:
        name = operation.name if operation else None
        func = getattr(self, name, None) if name else None
        if callable(func):
            self.__setup__(context=context)
            return func(**self._args(func, operation))
        afunc = getattr(self, f"a{name}", None) if name else None
        if callable(afunc):
            run_sync(self.__asetup__, context=context)
            return run_sync(afunc, **self._args(afunc, operation))
        raise NotSupportedError(
            f"{self.__type__} does not support {operation}"
        )

    async def __arun__(
        self,
        operation: Operation | None = None,
        context: Context | None = None,
    ) -> Any:
        name = operation.name if operation else None
        afunc = getattr(self, f"a{name}", None) if name else None
        if callable(afunc):
            await self.__asetup__(context=context)
            return await afunc(**self._args(afunc, operation))
        return await run_async(
            self.__run__,
            operation=operation,
            context=context,
        )

    def _args(self, func: Any, operation: Operation | None) -> dict:
        args = operation.args if operation else None
        return TypeConverter.convert_args(func, args or {})
