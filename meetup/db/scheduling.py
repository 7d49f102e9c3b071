import secrets
import string
from datetime import UTC, datetime
from typing import Any

from psycopg import errors as pg_errors

from meetup.db.core import _get_connection
from meetup.errors import NotFoundError, TransportError, ValidationError
from meetup.models.scheduling import Event, PhoneContact, Response, Snapshot, TimeSlot

_EVENT_COLUMNS = "id, name, location, creator_id, created_at"
_SLOT_COLUMNS = "id, event_id, date, time, position"
_CONTACT_COLUMNS = "id, event_id, number, name"
_RESPONSE_COLUMNS = "event_id, time_slot_id, user_name, is_available, created_at, updated_at, revision"

MAX_ID_ATTEMPTS = 10


def generate_id(length: int = 10) -> str:
    """Random lowercase alphanumeric token used for event, slot and contact ids."""
    chars = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(chars) for _ in range(length))


def _event_from_row(row: tuple) -> Event:
    return Event(
        id=row[0],
        name=row[1],
        location=row[2],
        creator_id=row[3],
        created_at=row[4].astimezone(UTC),
    )


def _slot_from_row(row: tuple) -> TimeSlot:
    return TimeSlot(id=row[0], event_id=row[1], date=row[2], time=row[3], position=row[4])


def _contact_from_row(row: tuple) -> PhoneContact:
    return PhoneContact(id=row[0], event_id=row[1], number=row[2], name=row[3])


def _response_from_row(row: tuple) -> Response:
    return Response(
        event_id=row[0],
        time_slot_id=row[1],
        user_name=row[2],
        is_available=row[3],
        created_at=row[4].astimezone(UTC),
        updated_at=row[5].astimezone(UTC),
        revision=row[6],
    )


async def create_event(
    name: str,
    creator_id: str,
    time_slots: list[tuple[str, str]],
    location: str | None = None,
    phone_contacts: list[tuple[str, str | None]] | None = None,
) -> Snapshot:
    """Insert an event with its slots and contacts in a single transaction."""
    now = datetime.now(UTC)
    async with _get_connection() as conn:
        for _ in range(MAX_ID_ATTEMPTS):
            event_id = generate_id()
            try:
                async with conn.transaction():
                    await conn.execute(
                        f"INSERT INTO events ({_EVENT_COLUMNS}) VALUES (%s, %s, %s, %s, %s)",
                        (event_id, name, location, creator_id, now),
                    )
                    slots = [
                        TimeSlot(id=generate_id(12), event_id=event_id, date=d, time=t, position=i)
                        for i, (d, t) in enumerate(time_slots)
                    ]
                    contacts = [
                        PhoneContact(id=generate_id(12), event_id=event_id, number=n, name=cn)
                        for n, cn in (phone_contacts or [])
                    ]
                    async with conn.cursor() as cur:
                        await cur.executemany(
                            f"INSERT INTO time_slots ({_SLOT_COLUMNS}) VALUES (%s, %s, %s, %s, %s)",
                            [(s.id, s.event_id, s.date, s.time, s.position) for s in slots],
                        )
                        if contacts:
                            await cur.executemany(
                                f"INSERT INTO phone_contacts ({_CONTACT_COLUMNS}) VALUES (%s, %s, %s, %s)",
                                [(c.id, c.event_id, c.number, c.name) for c in contacts],
                            )
            except pg_errors.UniqueViolation:
                continue
            event = Event(id=event_id, name=name, location=location, creator_id=creator_id, created_at=now)
            return Snapshot(event=event, time_slots=slots, responses=[], phone_contacts=contacts)
        raise TransportError(detail="Could not allocate a unique event id", attempts=MAX_ID_ATTEMPTS)


async def get_event(event_id: str) -> Event | None:
    async with _get_connection() as conn:
        row = await (
            await conn.execute(f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,))
        ).fetchone()
        return _event_from_row(row) if row else None


async def list_time_slots(event_id: str) -> list[TimeSlot]:
    async with _get_connection() as conn:
        rows = await conn.execute(
            f"SELECT {_SLOT_COLUMNS} FROM time_slots WHERE event_id = %s ORDER BY position, id",
            (event_id,),
        )
        return [_slot_from_row(row) async for row in rows]


async def list_responses(event_id: str) -> list[Response]:
    async with _get_connection() as conn:
        rows = await conn.execute(
            f"SELECT {_RESPONSE_COLUMNS} FROM responses WHERE event_id = %s ORDER BY created_at, id",
            (event_id,),
        )
        return [_response_from_row(row) async for row in rows]


async def fetch_snapshot(event_id: str) -> Snapshot | None:
    """Read an event and all of its child rows from one consistent view."""
    async with _get_connection() as conn:
        async with conn.transaction():
            await conn.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ READ ONLY")
            row = await (
                await conn.execute(f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,))
            ).fetchone()
            if not row:
                return None
            slots = await conn.execute(
                f"SELECT {_SLOT_COLUMNS} FROM time_slots WHERE event_id = %s ORDER BY position, id",
                (event_id,),
            )
            time_slots = [_slot_from_row(r) async for r in slots]
            responses = await conn.execute(
                f"SELECT {_RESPONSE_COLUMNS} FROM responses WHERE event_id = %s ORDER BY created_at, id",
                (event_id,),
            )
            response_rows = [_response_from_row(r) async for r in responses]
            contacts = await conn.execute(
                f"SELECT {_CONTACT_COLUMNS} FROM phone_contacts WHERE event_id = %s ORDER BY id",
                (event_id,),
            )
            phone_contacts = [_contact_from_row(r) async for r in contacts]
    return Snapshot(
        event=_event_from_row(row),
        time_slots=time_slots,
        responses=response_rows,
        phone_contacts=phone_contacts,
    )


async def list_snapshots(creator_id: str | None = None, limit: int = 50) -> list[Snapshot]:
    """Newest events first, each with its slots and responses (contacts omitted)."""
    clauses: list[str] = []
    params: list[Any] = []
    if creator_id:
        clauses.append("creator_id = %s")
        params.append(creator_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    params.append(limit)
    async with _get_connection() as conn:
        async with conn.transaction():
            await conn.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ READ ONLY")
            rows = await conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events {where} ORDER BY created_at DESC LIMIT %s",
                tuple(params),
            )
            events = [_event_from_row(r) async for r in rows]
            ids = [e.id for e in events]
            slots_by_event: dict[str, list[TimeSlot]] = {i: [] for i in ids}
            responses_by_event: dict[str, list[Response]] = {i: [] for i in ids}
            if ids:
                slots = await conn.execute(
                    f"SELECT {_SLOT_COLUMNS} FROM time_slots WHERE event_id = ANY(%s) ORDER BY position, id",
                    (ids,),
                )
                async for r in slots:
                    slots_by_event[r[1]].append(_slot_from_row(r))
                responses = await conn.execute(
                    f"SELECT {_RESPONSE_COLUMNS} FROM responses WHERE event_id = ANY(%s) ORDER BY created_at, id",
                    (ids,),
                )
                async for r in responses:
                    responses_by_event[r[0]].append(_response_from_row(r))
    return [
        Snapshot(event=e, time_slots=slots_by_event[e.id], responses=responses_by_event[e.id])
        for e in events
    ]


async def upsert_responses(event_id: str, user_name: str, answers: dict[str, bool]) -> list[Response]:
    """Insert or replace the given cells for one user in a single transaction.

    Only the slots present in ``answers`` are written. Cells the user answered
    earlier for other slots are left as they are. ``updated_at`` and
    ``revision`` come from the database so writes from different app servers
    order correctly.
    """
    if not answers:
        raise ValidationError(detail="mark availability for at least one time slot")
    async with _get_connection() as conn:
        async with conn.transaction():
            exists = await (
                await conn.execute("SELECT 1 FROM events WHERE id = %s", (event_id,))
            ).fetchone()
            if not exists:
                raise NotFoundError(detail="Event not found", resource_type="event", resource_id=event_id)
            rows = await conn.execute("SELECT id FROM time_slots WHERE event_id = %s", (event_id,))
            valid = {r[0] async for r in rows}
            unknown = sorted(set(answers) - valid)
            if unknown:
                raise ValidationError(detail=f"Invalid slot: {unknown[0]}", slot_ids=unknown)
            written: list[Response] = []
            async with conn.cursor() as cur:
                for slot_id, available in answers.items():
                    await cur.execute(
                        f"""INSERT INTO responses (event_id, time_slot_id, user_name, is_available, created_at, updated_at)
                           VALUES (%s, %s, %s, %s, clock_timestamp(), clock_timestamp())
                           ON CONFLICT (event_id, time_slot_id, user_name)
                           DO UPDATE SET is_available = EXCLUDED.is_available,
                                         updated_at = clock_timestamp(),
                                         revision = nextval('response_revision_seq')
                           RETURNING {_RESPONSE_COLUMNS}""",
                        (event_id, slot_id, user_name, bool(available)),
                    )
                    written.append(_response_from_row(await cur.fetchone()))
    return written
