"""Response store backends.

``PostgresStore`` is the durable backend. ``MemoryStore`` keeps everything in
process and is used for local development and tests. Both expose the same
coroutine API so controllers and the sync layer never care which one is live.
"""

import functools
import itertools
import logging
from datetime import UTC, datetime
from typing import Protocol

import psycopg
from psycopg import errors as pg_errors

from meetup import db
from meetup.db.scheduling import generate_id
from meetup.errors import NotFoundError, TransportError, ValidationError
from meetup.models.scheduling import ChatMessage, Event, PhoneContact, Response, Snapshot, TimeSlot

logger = logging.getLogger("meetup.store")


class Store(Protocol):
    async def create_event(
        self,
        name: str,
        creator_id: str,
        time_slots: list[tuple[str, str]],
        location: str | None = None,
        phone_contacts: list[tuple[str, str | None]] | None = None,
    ) -> Snapshot: ...

    async def get_event(self, event_id: str) -> Event: ...

    async def list_events(self, creator_id: str | None = None, limit: int = 50) -> list[Snapshot]: ...

    async def list_time_slots(self, event_id: str) -> list[TimeSlot]: ...

    async def submit_responses(self, event_id: str, user_name: str, answers: dict[str, bool]) -> list[Response]: ...

    async def list_responses(self, event_id: str) -> list[Response]: ...

    async def fetch_all(self, event_id: str) -> Snapshot: ...

    async def insert_message(self, event_id: str, user_name: str, text: str) -> ChatMessage: ...

    async def list_messages(self, event_id: str, after_id: int | None = None, limit: int = 200) -> list[ChatMessage]:
        """Without ``after_id``: the newest ``limit`` messages. With it: the next ``limit`` by id.

        Both come back oldest first.
        """
        ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def _not_found(event_id: str) -> NotFoundError:
    return NotFoundError(detail="Event not found", resource_type="event", resource_id=event_id)


def _transport_errors(func):
    """Surface driver failures as TransportError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except psycopg.Error as e:
            logger.exception("Store call %s failed", func.__name__)
            raise TransportError(detail=f"Store request failed: {e.__class__.__name__}") from e

    return wrapper


class PostgresStore:
    @_transport_errors
    async def create_event(self, name, creator_id, time_slots, location=None, phone_contacts=None) -> Snapshot:
        return await db.create_event(
            name=name,
            creator_id=creator_id,
            time_slots=time_slots,
            location=location,
            phone_contacts=phone_contacts,
        )

    @_transport_errors
    async def get_event(self, event_id: str) -> Event:
        event = await db.get_event(event_id)
        if event is None:
            raise _not_found(event_id)
        return event

    @_transport_errors
    async def list_events(self, creator_id: str | None = None, limit: int = 50) -> list[Snapshot]:
        return await db.list_snapshots(creator_id, limit)

    @_transport_errors
    async def list_time_slots(self, event_id: str) -> list[TimeSlot]:
        slots = await db.list_time_slots(event_id)
        if not slots and await db.get_event(event_id) is None:
            raise _not_found(event_id)
        return slots

    @_transport_errors
    async def submit_responses(self, event_id: str, user_name: str, answers: dict[str, bool]) -> list[Response]:
        return await db.upsert_responses(event_id, user_name, answers)

    @_transport_errors
    async def list_responses(self, event_id: str) -> list[Response]:
        return await db.list_responses(event_id)

    @_transport_errors
    async def fetch_all(self, event_id: str) -> Snapshot:
        snapshot = await db.fetch_snapshot(event_id)
        if snapshot is None:
            raise _not_found(event_id)
        return snapshot

    @_transport_errors
    async def insert_message(self, event_id: str, user_name: str, text: str) -> ChatMessage:
        try:
            return await db.insert_message(event_id, user_name, text)
        except pg_errors.ForeignKeyViolation:
            raise _not_found(event_id)

    @_transport_errors
    async def list_messages(self, event_id: str, after_id: int | None = None, limit: int = 200) -> list[ChatMessage]:
        messages = await db.fetch_messages(event_id, after_id, limit)
        if not messages and await db.get_event(event_id) is None:
            raise _not_found(event_id)
        return messages

    async def ping(self) -> bool:
        return await db.ping()

    async def close(self) -> None:
        await db.close_pool()


class MemoryStore:
    """In-process store. Each operation finishes without yielding, so batches are atomic."""

    def __init__(self) -> None:
        self._events: dict[str, Event] = {}
        self._slots: dict[str, list[TimeSlot]] = {}
        self._contacts: dict[str, list[PhoneContact]] = {}
        self._responses: dict[str, dict[tuple[str, str], Response]] = {}
        self._messages: dict[str, list[ChatMessage]] = {}
        self._message_ids = itertools.count(1)
        self._revisions = itertools.count(1)

    def _require(self, event_id: str) -> Event:
        event = self._events.get(event_id)
        if event is None:
            raise _not_found(event_id)
        return event

    async def create_event(self, name, creator_id, time_slots, location=None, phone_contacts=None) -> Snapshot:
        event_id = generate_id(10)
        while event_id in self._events:
            event_id = generate_id(10)
        event = Event(id=event_id, name=name, location=location, creator_id=creator_id, created_at=datetime.now(UTC))
        slots = [
            TimeSlot(id=generate_id(12), event_id=event_id, date=d, time=t, position=i)
            for i, (d, t) in enumerate(time_slots)
        ]
        contacts = [
            PhoneContact(id=generate_id(12), event_id=event_id, number=n, name=cn)
            for n, cn in (phone_contacts or [])
        ]
        self._events[event_id] = event
        self._slots[event_id] = slots
        self._contacts[event_id] = contacts
        self._responses[event_id] = {}
        self._messages[event_id] = []
        return Snapshot(event=event, time_slots=list(slots), responses=[], phone_contacts=list(contacts))

    async def get_event(self, event_id: str) -> Event:
        return self._require(event_id)

    async def list_events(self, creator_id: str | None = None, limit: int = 50) -> list[Snapshot]:
        events = [e for e in self._events.values() if not creator_id or e.creator_id == creator_id]
        events.sort(key=lambda e: e.created_at, reverse=True)
        return [
            Snapshot(
                event=e,
                time_slots=list(self._slots[e.id]),
                responses=list(self._responses[e.id].values()),
            )
            for e in events[:limit]
        ]

    async def list_time_slots(self, event_id: str) -> list[TimeSlot]:
        self._require(event_id)
        return list(self._slots[event_id])

    async def submit_responses(self, event_id: str, user_name: str, answers: dict[str, bool]) -> list[Response]:
        self._require(event_id)
        if not answers:
            raise ValidationError(detail="mark availability for at least one time slot")
        valid = {s.id for s in self._slots[event_id]}
        unknown = sorted(set(answers) - valid)
        if unknown:
            raise ValidationError(detail=f"Invalid slot: {unknown[0]}", slot_ids=unknown)
        now = datetime.now(UTC)
        cells = self._responses[event_id]
        written = []
        for slot_id, available in answers.items():
            previous = cells.get((slot_id, user_name))
            row = Response(
                event_id=event_id,
                time_slot_id=slot_id,
                user_name=user_name,
                is_available=bool(available),
                created_at=previous.created_at if previous else now,
                updated_at=now,
                revision=next(self._revisions),
            )
            cells[(slot_id, user_name)] = row
            written.append(row)
        return written

    async def list_responses(self, event_id: str) -> list[Response]:
        self._require(event_id)
        return list(self._responses[event_id].values())

    async def fetch_all(self, event_id: str) -> Snapshot:
        event = self._require(event_id)
        return Snapshot(
            event=event,
            time_slots=list(self._slots[event_id]),
            responses=list(self._responses[event_id].values()),
            phone_contacts=list(self._contacts[event_id]),
        )

    async def insert_message(self, event_id: str, user_name: str, text: str) -> ChatMessage:
        self._require(event_id)
        log = self._messages[event_id]
        created_at = datetime.now(UTC)
        if log and log[-1].created_at > created_at:
            created_at = log[-1].created_at
        message = ChatMessage(
            id=next(self._message_ids),
            event_id=event_id,
            user_name=user_name,
            text=text,
            created_at=created_at,
        )
        log.append(message)
        return message

    async def list_messages(self, event_id: str, after_id: int | None = None, limit: int = 200) -> list[ChatMessage]:
        self._require(event_id)
        if limit <= 0:
            return []
        log = self._messages[event_id]
        if after_id is None:
            return list(log[-limit:])
        return [m for m in log if m.id > after_id][:limit]

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def build_store(backend: str) -> Store:
    if backend == "memory":
        logger.info("Using in-memory store")
        return MemoryStore()
    return PostgresStore()
