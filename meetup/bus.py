"""
Event bus for the API, backed by Redis.

Rows are published only after the store has committed them, so a subscriber
sees them in commit order per channel.
"""
import json
from typing import Final

import redis.asyncio as redis

from meetup.events import ChatMessageEvent, ResponsesEvent
from meetup.models.scheduling import ChatMessage, Response

CHANNEL_EVENT_PREFIX: Final[str] = "event:"
KIND_RESPONSES: Final[str] = "responses"
KIND_MESSAGES: Final[str] = "messages"


class EventBus:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    @staticmethod
    def channel(event_id: str, kind: str) -> str:
        return f"{CHANNEL_EVENT_PREFIX}{event_id}:{kind}"

    async def publish_responses(self, event_id: str, rows: list[Response]) -> None:
        event: ResponsesEvent = {
            "type": "responses",
            "event_id": event_id,
            "rows": [r.model_dump(mode="json") for r in rows],
        }
        await self.redis_client.publish(self.channel(event_id, KIND_RESPONSES), json.dumps(event))

    async def publish_message(self, event_id: str, message: ChatMessage) -> None:
        event: ChatMessageEvent = {
            "type": "chat_message",
            "event_id": event_id,
            "message": message.model_dump(mode="json"),
        }
        await self.redis_client.publish(self.channel(event_id, KIND_MESSAGES), json.dumps(event))
