"""Dependency injection for FastAPI endpoints.

This module provides FastAPI dependencies for accessing shared resources
like Redis, the EventBus and the store, instead of reaching into global state.

Usage in controllers:
    from meetup.dependencies import StoreDep, OptionalBus

    @router.get("/events/{event_id}")
    async def get_event(event_id: str, store: StoreDep):
        return await store.fetch_all(event_id)
"""

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Header

from meetup import state
from meetup.bus import EventBus
from meetup.errors import ServiceUnavailableError, UnauthorizedError
from meetup.store import Store


def get_optional_redis() -> redis.Redis | None:
    return state.redis_client


def get_optional_event_bus() -> EventBus | None:
    return state.event_bus


def get_store() -> Store:
    """Get the active store.

    Raises:
        ServiceUnavailableError: If the store is not initialized.
    """
    if state.store is None:
        raise ServiceUnavailableError(detail="Store not initialized")
    return state.store


def get_creator_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Opaque user id set by the authenticating proxy. Only needed to create events."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError(detail="X-User-Id header required")
    return x_user_id.strip()


OptionalRedis = Annotated[redis.Redis | None, Depends(get_optional_redis)]
OptionalBus = Annotated[EventBus | None, Depends(get_optional_event_bus)]
StoreDep = Annotated[Store, Depends(get_store)]
CreatorId = Annotated[str, Depends(get_creator_id)]
