"""asyncpg pool shared by the PostgreSQL version store, index and audit log."""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from orderledger.config.models.storage import PostgresConfig
from orderledger.db.errors import ConnectionError
from orderledger.observability.logging import get_logger

logger = get_logger(__name__)

DATABASE_URL_VARS = ("ORDERLEDGER_DATABASE_URL", "DATABASE_URL")


def resolve_database_url(configured: str | None = None, fallback: str | None = None) -> str:
    """Pick the DSN used by the pool and by migrations.

    Order: the configured URL, ORDERLEDGER_DATABASE_URL, DATABASE_URL,
    then `fallback`. Credentials never have a built-in default.

    Raises:
        ConnectionError: If none of them is set
    """
    candidates = [configured, *(os.environ.get(var) for var in DATABASE_URL_VARS), fallback]
    for url in candidates:
        if url:
            return url
    raise ConnectionError(
        "No database URL configured; set ORDERLEDGER_DATABASE_URL "
        "or storage.postgres.connection_url"
    )


class PostgresPool:
    """Lazily connected asyncpg pool.

    Usage:
        pool = PostgresPool.from_config(settings.storage.postgres)
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch("SELECT * FROM record_versions")
        finally:
            await pool.close()

    Driver errors raised inside acquire() become ConnectionError, except
    unique violations, which stores translate to ConflictError.
    """

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 5,
        max_size: int = 20,
        max_inactive_connection_lifetime: float = 300.0,
        command_timeout: float = 60.0,
    ) -> None:
        self._dsn = dsn
        self._pool_kwargs = {
            "min_size": min_size,
            "max_size": max_size,
            "max_inactive_connection_lifetime": max_inactive_connection_lifetime,
            "command_timeout": command_timeout,
        }
        self._pool: asyncpg.Pool | None = None
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: PostgresConfig) -> "PostgresPool":
        """Build a pool from the storage.postgres settings section."""
        return cls(
            resolve_database_url(config.connection_url),
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            max_inactive_connection_lifetime=config.max_inactive_connection_lifetime,
            command_timeout=config.command_timeout,
        )

    async def connect(self) -> None:
        """Create the pool. Concurrent first callers share one pool."""
        async with self._connect_lock:
            if self._pool is not None:
                return
            try:
                self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._pool_kwargs)
            except (OSError, asyncpg.PostgresError) as e:
                logger.error("postgres_pool_connection_failed", error=str(e))
                raise ConnectionError(f"Failed to connect to PostgreSQL: {e}", cause=e) from e
        logger.info("postgres_pool_connected", **self._pool_kwargs)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("postgres_pool_closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection, connecting on first use."""
        if self._pool is None:
            await self.connect()

        try:
            async with self._pool.acquire() as connection:
                yield connection
        except asyncpg.UniqueViolationError:
            raise
        except asyncpg.PostgresError as e:
            logger.error("postgres_query_failed", error=str(e))
            raise ConnectionError(f"PostgreSQL error: {e}", cause=e) from e

    async def health_check(self) -> bool:
        """True when a connection can run a trivial query."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning("postgres_health_check_failed", error=str(e))
            return False
        return True
