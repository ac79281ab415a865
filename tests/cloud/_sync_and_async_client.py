from common.sync_and_async_client import SyncAndAsyncClient

from ._providers import get_component


class CloudSyncAndAsyncClient(SyncAndAsyncClient):
    def __init__(self, provider_type: str, async_call: bool, **parameters):
        self.client = get_component(provider_type, **parameters)
        self.async_call = async_call
        self.provider_type = provider_type

    async def create_resource(self, **kwargs):
        return await self._execute_method(**kwargs)

    async def read_resource(self, **kwargs):
        return await self._execute_method(**kwargs)

    async def update_resource(self, **kwargs):
        return await self._execute_method(**kwargs)

    async def delete_resource(self, **kwargs):
        return await self._execute_method(**kwargs)

    async def close(self, **kwargs):
        return await self._execute_method(**kwargs)
