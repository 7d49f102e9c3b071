"""Availability aggregation and consensus detection.

Everything here is a pure function of an event's time slots and its response
rows. Derived views are always recomputed from the full row set handed in;
nothing is cached or updated incrementally.

A missing row means "no opinion". It is kept apart from an explicit
``is_available=False`` in the per-slot user lists, but consensus is measured
against every respondent of the event, so a respondent who skipped a slot
blocks consensus on it.
"""

from collections.abc import Iterable, Sequence

from meetup.models.scheduling import (
    Availability,
    EventStatus,
    EventSummary,
    Response,
    SlotSummary,
    StatusKind,
    TimeSlot,
)


def index_responses(responses: Iterable[Response]) -> dict[tuple[str, str], bool]:
    """Map ``(time_slot_id, user_name)`` to the recorded answer. Later rows win."""
    index: dict[tuple[str, str], bool] = {}
    for r in responses:
        index[(r.time_slot_id, r.user_name)] = r.is_available
    return index


def respondents(responses: Iterable[Response]) -> list[str]:
    """Distinct user names with at least one row, in first-appearance order."""
    seen: dict[str, None] = {}
    for r in responses:
        seen.setdefault(r.user_name, None)
    return list(seen)


def respondent_count(responses: Iterable[Response]) -> int:
    return len(respondents(responses))


def slot_answer(responses: Iterable[Response], slot_id: str, user_name: str) -> Availability:
    answer = index_responses(responses).get((slot_id, user_name))
    if answer is None:
        return Availability.NO_OPINION
    return Availability.AVAILABLE if answer else Availability.UNAVAILABLE


def _users_with(responses: Sequence[Response], slot_id: str, wanted: Availability) -> list[str]:
    index = index_responses(responses)
    out = []
    for user in respondents(responses):
        answer = index.get((slot_id, user))
        if answer is None:
            continue
        if (Availability.AVAILABLE if answer else Availability.UNAVAILABLE) is wanted:
            out.append(user)
    return out


def available_users(responses: Sequence[Response], slot_id: str) -> list[str]:
    return _users_with(responses, slot_id, Availability.AVAILABLE)


def unavailable_users(responses: Sequence[Response], slot_id: str) -> list[str]:
    """Users who explicitly marked the slot unavailable. Non-answerers are excluded."""
    return _users_with(responses, slot_id, Availability.UNAVAILABLE)


def availability_count(responses: Sequence[Response], slot_id: str) -> int:
    return sum(
        1
        for (sid, _user), available in index_responses(responses).items()
        if sid == slot_id and available
    )


def consensus_slot_ids(time_slots: Sequence[TimeSlot], responses: Sequence[Response]) -> list[str]:
    """Slots every respondent of the event marked available."""
    total = respondent_count(responses)
    if total == 0:
        return []
    return [s.id for s in time_slots if availability_count(responses, s.id) == total]


def has_consensus(time_slots: Sequence[TimeSlot], responses: Sequence[Response]) -> bool:
    return bool(consensus_slot_ids(time_slots, responses))


def event_status(time_slots: Sequence[TimeSlot], responses: Sequence[Response]) -> EventStatus:
    total = respondent_count(responses)
    if total == 0:
        return EventStatus(kind=StatusKind.NO_RESPONSES)
    if has_consensus(time_slots, responses):
        return EventStatus(kind=StatusKind.CONFIRMED, count=total)
    return EventStatus(kind=StatusKind.RESPONDED, count=total)


def summarize(event_id: str, time_slots: Sequence[TimeSlot], responses: Sequence[Response]) -> EventSummary:
    """Build the full per-slot view in one pass over the rows."""
    index = index_responses(responses)
    users = respondents(responses)
    total = len(users)

    slots: list[SlotSummary] = []
    for slot in sorted(time_slots, key=lambda s: s.position):
        yes: list[str] = []
        no: list[str] = []
        for user in users:
            answer = index.get((slot.id, user))
            if answer is True:
                yes.append(user)
            elif answer is False:
                no.append(user)
        slots.append(
            SlotSummary(
                slot=slot,
                available_count=len(yes),
                available_users=yes,
                unavailable_users=no,
                everyone_available=total > 0 and len(yes) == total,
            )
        )

    consensus_ids = [s.slot.id for s in slots if s.everyone_available]
    if total == 0:
        status = EventStatus(kind=StatusKind.NO_RESPONSES)
    elif consensus_ids:
        status = EventStatus(kind=StatusKind.CONFIRMED, count=total)
    else:
        status = EventStatus(kind=StatusKind.RESPONDED, count=total)

    return EventSummary(
        event_id=event_id,
        respondent_count=total,
        respondents=users,
        has_consensus=bool(consensus_ids),
        consensus_slot_ids=consensus_ids,
        status=status,
        status_label=status.label,
        slots=slots,
    )
