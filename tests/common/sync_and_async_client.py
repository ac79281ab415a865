import inspect
from typing import Any

from strata.core import Response


class SyncAndAsyncClient:
    """Calls either `name` or `aname` on the wrapped component.

    Subclasses declare one coroutine per operation that forwards to
    `_execute_method`; the caller's name selects the operation.
    """

    client: Any
    async_call: bool

    async def _execute_method(self, **kwargs):
        method_name = inspect.stack()[1].function
        return await self._call(method_name, **kwargs)

    async def _call(self, method_name: str, **kwargs):
        if self.async_call:
            return await getattr(self.client, f"a{method_name}")(**kwargs)
        return getattr(self.client, method_name)(**kwargs)

    @staticmethod
    def result(response: Any) -> Any:
        if isinstance(response, Response):
            return response.result
        return response
