import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query

from meetup.dependencies import OptionalBus, StoreDep
from meetup.models.scheduling import SendMessageRequest
from meetup.producers.chat_producer import send_chat_message

logger = logging.getLogger("meetup.chat")
router = APIRouter(tags=["chat"])


@router.post("/events/{event_id}/messages", status_code=201)
async def send_message(
    event_id: str,
    req: SendMessageRequest,
    store: StoreDep,
    event_bus: OptionalBus,
) -> Dict[str, Any]:
    message, notified = await send_chat_message(store, event_bus, event_id, req.user_name, req.text)
    return {"message": message.model_dump(mode="json"), "notified": notified}


@router.get("/events/{event_id}/messages")
async def list_messages(
    event_id: str,
    store: StoreDep,
    after_id: Optional[int] = Query(None, ge=0, description="Page forward: the next messages with a larger id"),
    limit: int = Query(200, ge=1, le=500),
) -> Dict[str, Any]:
    messages = await store.list_messages(event_id, after_id, limit)
    last_id = max((m.id for m in messages), default=after_id)
    return {"messages": [m.model_dump(mode="json") for m in messages], "last_id": last_id}
