"""Shared asyncpg pool for every Postgres-backed store.

Similarity search over apps and pages needs the pgvector extension;
`has_pgvector` records whether it is installed.
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from toolgate.config.models.storage import PostgresConfig
from toolgate.db.errors import ConnectionError
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

APPLICATION_NAME = "toolgate"
PGVECTOR_INSTALLED = "SELECT EXISTS (SELECT 1 FROM pg_extension WHERE extname = 'vector')"


def database_url_from_env() -> str:
    """TOOLGATE_DATABASE_URL, then DATABASE_URL, then POSTGRES_* parts."""
    dsn = os.environ.get("TOOLGATE_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if dsn:
        return dsn

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    user = os.environ.get("POSTGRES_USER", "toolgate")
    password = os.environ.get("POSTGRES_PASSWORD", "toolgate")
    database = os.environ.get("POSTGRES_DB", "toolgate")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


class PostgresPool:
    """Lazily connected asyncpg pool sized by ``[storage.postgres]``.

        pool = PostgresPool(get_settings().storage.postgres)
        async with pool.acquire() as conn:
            await conn.fetch("SELECT id FROM apps")
    """

    def __init__(self, config: PostgresConfig | None = None) -> None:
        self._config = config or PostgresConfig()
        self._dsn = self._config.dsn or database_url_from_env()
        self._pool: asyncpg.Pool | None = None
        self.has_pgvector = False

    async def connect(self) -> None:
        if self._pool is not None:
            return

        config = self._config
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=config.min_pool_size,
                max_size=config.max_pool_size,
                max_inactive_connection_lifetime=config.max_inactive_connection_lifetime,
                command_timeout=config.command_timeout,
                server_settings={"application_name": APPLICATION_NAME},
            )
        except Exception as e:
            logger.error("postgres_pool_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}", cause=e) from e

        async with self._pool.acquire() as conn:
            self.has_pgvector = bool(await conn.fetchval(PGVECTOR_INSTALLED))
        if not self.has_pgvector:
            logger.warning("postgres_pgvector_missing", hint="run alembic upgrade head")
        logger.info(
            "postgres_pool_connected",
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            pgvector=self.has_pgvector,
        )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("postgres_pool_closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection, connecting first if needed."""
        if self._pool is None:
            await self.connect()

        try:
            async with self._pool.acquire() as connection:
                yield connection
        except asyncpg.PostgresError as e:
            logger.error("postgres_connection_error", error=str(e))
            raise ConnectionError(f"PostgreSQL error: {e}", cause=e) from e

    async def health_check(self) -> bool:
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.warning("postgres_health_check_failed", error=str(e))
            return False


def affected_rows(status: str) -> int:
    """Row count from an asyncpg command tag such as 'DELETE 3'."""
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0
