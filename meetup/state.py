from typing import Optional
import redis.asyncio as redis
from meetup.bus import EventBus
from meetup.store import Store

# Global runtime state initialized in main.lifespan
redis_client: Optional[redis.Redis] = None
event_bus: Optional[EventBus] = None
store: Optional[Store] = None
