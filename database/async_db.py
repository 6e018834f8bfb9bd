from typing import Any, List, Optional

import asyncpg
from asyncpg.pool import Pool

from utils.logger import get_logger

log = get_logger("[DB]")


class AsyncDatabase:
    """
    Thin asyncpg wrapper around the Postgres instance behind the Supabase project.
    Every call borrows a connection from the pool and runs in its own transaction.
    """

    def __init__(
            self,
            db_name: str,
            user: str,
            password: str,
            host: str = "localhost",
            port: int = 5432,
            min_size: int = 2,
            max_size: int = 10
    ):
        self.db_name = db_name
        self.user = user
        self.password = password
        self.host = host
        self.port = port
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[Pool] = None

    async def connect(self) -> None:
        # Supabase pooler runs in transaction mode: prepared statements must be off
        self.pool = await asyncpg.create_pool(
            database=self.db_name,
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            min_size=self.min_size,
            max_size=self.max_size,
            statement_cache_size=0,
        )
        log.debug("[DB] Connection pool ready [✓]")

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            log.debug("[DB] Connection pool closed [✓]")

    async def execute(self, query: str, *args: Any) -> str:
        """Runs a statement without a result set, returns the command tag ("UPDATE 1")."""
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                return await connection.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                return await connection.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                return await connection.fetchrow(query, *args)
