from typing import Dict

from fastapi import APIRouter
from redis.exceptions import RedisError

from meetup import state
from meetup.dependencies import OptionalRedis

router = APIRouter()


@router.get("/health")
async def health(redis_client: OptionalRedis) -> Dict[str, str]:
    redis_status = "disconnected"
    if redis_client is not None:
        try:
            await redis_client.ping()
            redis_status = "healthy"
        except (RedisError, OSError):
            redis_status = "unhealthy"

    store_status = "disconnected"
    if state.store is not None:
        store_status = "healthy" if await state.store.ping() else "unhealthy"

    return {"status": "ok", "redis": redis_status, "store": store_status}
