import logging
from typing import Any, Dict

from fastapi import APIRouter, Query

from meetup import aggregation
from meetup.dependencies import CreatorId, OptionalBus, StoreDep
from meetup.models.scheduling import (
    AvailabilityRequest,
    CreateEventRequest,
    EventListItem,
    EventSummary,
    Snapshot,
    TimeSlot,
)
from meetup.producers.response_producer import submit_availability as produce_availability

logger = logging.getLogger("meetup.events")
router = APIRouter(tags=["events"])


@router.post("/events", status_code=201, response_model=Snapshot)
async def create_event(req: CreateEventRequest, creator_id: CreatorId, store: StoreDep) -> Snapshot:
    logger.info("POST /events name=%s time_slots=%d contacts=%d", req.name, len(req.time_slots), len(req.phone_contacts))
    snapshot = await store.create_event(
        name=req.name,
        creator_id=creator_id,
        time_slots=[(s.date, s.time) for s in req.time_slots],
        location=req.location,
        phone_contacts=[(c.number, c.name) for c in req.phone_contacts],
    )
    logger.info("Created event id=%s", snapshot.event.id)
    return snapshot


@router.get("/events", response_model=list[EventListItem])
async def list_events(
    store: StoreDep,
    creator_id: str | None = Query(None, description="Only events created by this user"),
    limit: int = Query(50, ge=1, le=200),
) -> list[EventListItem]:
    snapshots = await store.list_events(creator_id, limit)
    items = []
    for snap in snapshots:
        status = aggregation.event_status(snap.time_slots, snap.responses)
        items.append(EventListItem(event=snap.event, status=status, status_label=status.label))
    return items


@router.get("/events/{event_id}", response_model=Snapshot)
async def get_event(event_id: str, store: StoreDep) -> Snapshot:
    logger.info("GET /events/%s", event_id)
    return await store.fetch_all(event_id)


@router.get("/events/{event_id}/slots", response_model=list[TimeSlot])
async def list_time_slots(event_id: str, store: StoreDep) -> list[TimeSlot]:
    return await store.list_time_slots(event_id)


@router.get("/events/{event_id}/summary", response_model=EventSummary)
async def fetch_summary(event_id: str, store: StoreDep) -> EventSummary:
    snapshot = await store.fetch_all(event_id)
    summary = aggregation.summarize(event_id, snapshot.time_slots, snapshot.responses)
    logger.info(
        "GET /events/%s/summary respondents=%d consensus=%s",
        event_id,
        summary.respondent_count,
        summary.has_consensus,
    )
    return summary


@router.post("/events/{event_id}/availability")
async def submit_availability(
    event_id: str,
    req: AvailabilityRequest,
    store: StoreDep,
    event_bus: OptionalBus,
) -> Dict[str, Any]:
    logger.info("POST /events/%s/availability user=%s slots=%d", event_id, req.user_name, len(req.responses))
    rows, notified = await produce_availability(store, event_bus, event_id, req.user_name, req.responses)
    return {
        "event_id": event_id,
        "user_name": req.user_name,
        "responses": [r.model_dump(mode="json") for r in rows],
        "notified": notified,
    }
