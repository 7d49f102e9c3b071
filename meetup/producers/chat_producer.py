import logging

from redis.exceptions import RedisError

from meetup.bus import EventBus
from meetup.errors import ValidationError
from meetup.models.scheduling import ChatMessage
from meetup.store import Store

logger = logging.getLogger("meetup.chat")

MAX_TEXT_LENGTH = 2000
MAX_NAME_LENGTH = 100


def validate_chat_message(user_name: str | None, text: str | None) -> tuple[str, str]:
    """Strip and check a chat submission. Raises before anything touches the network."""
    name = (user_name or "").strip()
    body = (text or "").strip()
    if not name:
        raise ValidationError(detail="user_name must not be empty", field="user_name")
    if not body:
        raise ValidationError(detail="text must not be empty", field="text")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(detail=f"user_name must be at most {MAX_NAME_LENGTH} characters", field="user_name")
    if len(body) > MAX_TEXT_LENGTH:
        raise ValidationError(detail=f"text must be at most {MAX_TEXT_LENGTH} characters", field="text")
    return name, body


async def send_chat_message(
    store: Store,
    event_bus: EventBus | None,
    event_id: str,
    user_name: str | None,
    text: str | None,
) -> tuple[ChatMessage, bool]:
    """Persist then publish a message. Returns the stored row and whether subscribers were notified."""
    name, body = validate_chat_message(user_name, text)
    message = await store.insert_message(event_id, name, body)
    logger.info("chat.append event=%s id=%s user=%s", event_id, message.id, name)
    return message, await _publish(event_bus, event_id, message)


async def _publish(event_bus: EventBus | None, event_id: str, message: ChatMessage) -> bool:
    if event_bus is None:
        return False
    try:
        await event_bus.publish_message(event_id, message)
        return True
    except (RedisError, OSError):
        # The row is committed; subscribers catch up on their next re-fetch.
        logger.exception("chat.publish_failed event=%s id=%s", event_id, message.id)
        return False
