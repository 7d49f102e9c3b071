from datetime import UTC, datetime

from meetup.db.core import _get_connection
from meetup.models.scheduling import ChatMessage

_MESSAGE_COLUMNS = "id, event_id, user_name, text, created_at"


def _message_from_row(row: tuple) -> ChatMessage:
    return ChatMessage(
        id=row[0],
        event_id=row[1],
        user_name=row[2],
        text=row[3],
        created_at=row[4].astimezone(UTC),
    )


async def insert_message(event_id: str, user_name: str, text: str) -> ChatMessage:
    """Append a message. ``created_at`` never goes below the event's latest message."""
    now = datetime.now(UTC)
    async with _get_connection() as conn:
        row = await (
            await conn.execute(
                f"""INSERT INTO chat_messages (event_id, user_name, text, created_at)
                   VALUES (%s, %s, %s, GREATEST(%s, COALESCE(
                       (SELECT MAX(created_at) FROM chat_messages WHERE event_id = %s), %s)))
                   RETURNING {_MESSAGE_COLUMNS}""",
                (event_id, user_name, text, now, event_id, now),
            )
        ).fetchone()
        return _message_from_row(row)


async def fetch_messages(event_id: str, after_id: int | None, limit: int) -> list[ChatMessage]:
    """Oldest first. Without ``after_id`` the newest ``limit`` messages; with it the next ``limit`` by id."""
    async with _get_connection() as conn:
        if after_id is None:
            rows = await conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages WHERE event_id = %s "
                "ORDER BY created_at DESC, id DESC LIMIT %s",
                (event_id, limit),
            )
            out = [_message_from_row(row) async for row in rows]
            out.reverse()
            return out
        rows = await conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages WHERE event_id = %s AND id > %s "
            "ORDER BY id LIMIT %s",
            (event_id, after_id, limit),
        )
        return [_message_from_row(row) async for row in rows]
