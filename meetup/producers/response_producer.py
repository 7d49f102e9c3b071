import logging

from redis.exceptions import RedisError

from meetup.bus import EventBus
from meetup.models.scheduling import Response
from meetup.store import Store

logger = logging.getLogger("meetup.events")


async def submit_availability(
    store: Store,
    event_bus: EventBus | None,
    event_id: str,
    user_name: str,
    answers: dict[str, bool],
) -> tuple[list[Response], bool]:
    """Upsert one user's answers and announce the written rows.

    Returns the rows as stored and whether the notification went out.
    """
    rows = await store.submit_responses(event_id, user_name, answers)
    logger.info("availability.upsert event=%s user=%s slots=%d", event_id, user_name, len(rows))
    if event_bus is None:
        return rows, False
    try:
        await event_bus.publish_responses(event_id, rows)
    except (RedisError, OSError):
        logger.exception("availability.publish_failed event=%s user=%s", event_id, user_name)
        return rows, False
    return rows, True
