import asyncio
from typing import Any, List


class LoadSession:
    """
    The one transactional connection of a load.

    asyncpg runs a single operation at a time per connection, so statements
    issued by concurrent branches of the load are queued on a lock and reach
    the server one after another. A COPY holds the lock until its source is
    exhausted.
    """

    def __init__(self, connection):
        self.connection = connection
        self._lock = asyncio.Lock()

    async def execute(self, query: str, *args) -> str:
        async with self._lock:
            return await self.connection.execute(query, *args)

    async def fetch(self, query: str, *args) -> List[Any]:
        async with self._lock:
            return await self.connection.fetch(query, *args)

    async def copy_to_table(self, table_name: str, **kwargs) -> str:
        async with self._lock:
            return await self.connection.copy_to_table(table_name, **kwargs)
