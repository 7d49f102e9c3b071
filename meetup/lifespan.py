"""Lifespan management for the FastAPI application.

Builds the shared resources on startup (Redis, event bus, store), publishes
them into ``meetup.state`` and tears them down on shutdown.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import redis.asyncio as redis
from fastapi import FastAPI
from redis.asyncio import BlockingConnectionPool as RedisConnectionPool

from meetup import db, state
from meetup.bus import EventBus
from meetup.config import get_settings
from meetup.store import Store, build_store

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    """Container for resources initialized during lifespan."""

    redis_client: redis.Redis | None = None
    event_bus: EventBus | None = None
    store: Store | None = None
    db_enabled: bool = False


async def init_redis() -> redis.Redis:
    """Initialize Redis connection with connection pool."""
    settings = get_settings()

    redis_pool = RedisConnectionPool(
        host=settings.redis.host,
        port=settings.redis.port,
        password=settings.redis.password if settings.redis.password else None,
        max_connections=settings.redis.max_connections,
        timeout=settings.redis.pool_timeout_sec,
        health_check_interval=settings.redis.health_check_interval,
        socket_timeout=settings.redis.socket_timeout,
        socket_connect_timeout=settings.redis.socket_connect_timeout,
        retry_on_timeout=settings.redis.retry_on_timeout,
        decode_responses=True,
    )

    candidate_client = redis.Redis(connection_pool=redis_pool, decode_responses=True)
    if hasattr(candidate_client, "__await__"):
        return await candidate_client
    return candidate_client


async def init_store() -> tuple[Store, bool]:
    """Build the configured store; open the database pool when it is PostgreSQL.

    Returns:
        The store and whether a database pool was opened.
    """
    backend = get_settings().store.backend
    store = build_store(backend)
    if backend != "postgres":
        return store, False
    await db.init_pool()
    return store, True


async def setup_resources() -> LifespanResources:
    resources = LifespanResources()

    resources.redis_client = await init_redis()
    resources.event_bus = EventBus(resources.redis_client)
    resources.store, resources.db_enabled = await init_store()

    state.redis_client = resources.redis_client
    state.event_bus = resources.event_bus
    state.store = resources.store

    logger.info("Resources ready (store=%s)", get_settings().store.backend)
    return resources


async def cleanup_resources(resources: LifespanResources) -> None:
    if resources.store is not None:
        try:
            await resources.store.close()
        except Exception:
            logger.exception("Failed to close store")

    if resources.redis_client:
        aclose = getattr(resources.redis_client, "aclose", None)
        if callable(aclose):
            await aclose()
        else:
            close = getattr(resources.redis_client, "close", None)
            if callable(close):
                await close()

    state.redis_client = None
    state.event_bus = None
    state.store = None


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    resources = await setup_resources()
    try:
        yield
    finally:
        await cleanup_resources(resources)
