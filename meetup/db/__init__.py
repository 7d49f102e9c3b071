"""PostgreSQL persistence for events, time slots, responses and chat messages."""

from meetup.db.core import close_pool, init_pool, ping
from meetup.db.scheduling import (
    create_event,
    fetch_snapshot,
    get_event,
    list_responses,
    list_snapshots,
    list_time_slots,
    upsert_responses,
)
from meetup.db.chat import fetch_messages, insert_message

__all__ = [
    "close_pool",
    "create_event",
    "fetch_messages",
    "fetch_snapshot",
    "get_event",
    "init_pool",
    "insert_message",
    "list_responses",
    "list_snapshots",
    "list_time_slots",
    "ping",
    "upsert_responses",
]
