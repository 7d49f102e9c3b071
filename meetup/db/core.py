"""PostgreSQL connection pool.

Every pooled connection runs with ``TimeZone=UTC`` so ``TIMESTAMPTZ`` columns
come back as UTC datetimes. Without a pool (scripts, one-off tools) a fresh
connection is opened per call.
"""

import logging
from contextlib import asynccontextmanager

import psycopg
from psycopg_pool import AsyncConnectionPool

from meetup.config import get_settings

_logger = logging.getLogger(__name__)

APPLICATION_NAME = "meetup"

_pool: AsyncConnectionPool | None = None


async def _configure(conn: psycopg.AsyncConnection) -> None:
    await conn.execute("SET TIME ZONE 'UTC'")
    await conn.commit()


async def init_pool() -> None:
    """Open the pool and bring the schema up to date."""
    global _pool
    if _pool is not None:
        return
    settings = get_settings().postgres
    _pool = AsyncConnectionPool(
        settings.get_dsn(),
        kwargs={"application_name": APPLICATION_NAME},
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.pool_timeout,
        max_lifetime=settings.pool_max_lifetime,
        max_idle=settings.pool_max_idle,
        reconnect_timeout=settings.pool_reconnect_timeout,
        configure=_configure,
        check=AsyncConnectionPool.check_connection,
        open=False,
    )
    await _pool.open()
    _logger.info(
        "Database pool open host=%s db=%s (min=%d, max=%d)",
        settings.host,
        settings.database,
        settings.pool_min_size,
        settings.pool_max_size,
    )
    # Import here to avoid circular imports
    from meetup.db.schema import _ensure_schema

    await _ensure_schema()


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        _logger.info("Database pool closed")


@asynccontextmanager
async def _get_connection(autocommit: bool = True):
    if _pool is not None:
        async with _pool.connection() as conn:
            if autocommit:
                await conn.set_autocommit(True)
            yield conn
    else:
        dsn = get_settings().postgres.get_dsn()
        async with await psycopg.AsyncConnection.connect(
            dsn, autocommit=autocommit, application_name=APPLICATION_NAME
        ) as conn:
            await conn.execute("SET TIME ZONE 'UTC'")
            yield conn


async def ping() -> bool:
    """True when a connection can be checked out and answers ``SELECT 1``."""
    try:
        async with _get_connection() as conn:
            await conn.execute("SELECT 1")
        return True
    except psycopg.Error as e:
        _logger.warning("Database ping failed: %s", e)
        return False


__all__ = ["_get_connection", "close_pool", "init_pool", "ping"]
