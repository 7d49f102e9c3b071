import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from meetup import state
from meetup.config import get_settings
from meetup.dependencies import get_store
from meetup.errors import APIError
from meetup.events import SyncFrame
from meetup.producers.chat_producer import send_chat_message
from meetup.sync import LiveSync, SyncUpdate

router = APIRouter()

logger = logging.getLogger("meetup.ws.events")


def _frame(update: SyncUpdate) -> SyncFrame:
    frame: SyncFrame = {"type": update.kind, "event_id": update.event_id, "state": update.state.value}
    if update.snapshot is not None:
        frame["snapshot"] = update.snapshot.model_dump(mode="json")
    if update.rows:
        frame["rows"] = [r.model_dump(mode="json") for r in update.rows]
    if update.messages or update.kind == "snapshot":
        frame["messages"] = [m.model_dump(mode="json") for m in update.messages]
    if update.summary is not None:
        frame["summary"] = update.summary.model_dump(mode="json")
    return frame


@router.websocket("/ws/events/{event_id}")
async def websocket_event(websocket: WebSocket, event_id: str):
    await websocket.accept()
    settings = get_settings()
    try:
        store = get_store()
    except APIError as e:
        logger.warning("ws_events.unavailable event=%s detail=%s", event_id, e.detail)
        await websocket.send_text(json.dumps({"type": "error", **e.to_response().model_dump(exclude_none=True)}))
        await websocket.close(code=1011)
        return
    send_lock = asyncio.Lock()
    client = websocket.client.host if websocket.client else "-"
    logger.info("ws_events.accept event=%s client=%s", event_id, client)

    async def send(payload: dict) -> None:
        async with send_lock:
            await websocket.send_text(json.dumps(payload))

    async def deliver(update: SyncUpdate) -> None:
        await send(_frame(update))

    sync = LiveSync(state.redis_client, store, event_id, deliver, settings.sync)
    sync.start()

    async def heartbeat():
        try:
            while True:
                await asyncio.sleep(settings.sync.heartbeat_sec)
                await send({"type": "ping"})
        except Exception as e:
            logger.debug("ws_events.heartbeat_stopped event=%s err=%r", event_id, e)

    heartbeat_task = asyncio.create_task(heartbeat())

    try:
        while True:
            raw = await websocket.receive_text()
            if raw == "pong":
                continue
            try:
                payload = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(payload, dict) or payload.get("type") != "chat_message":
                continue
            try:
                await send_chat_message(
                    store, state.event_bus, event_id, payload.get("user_name"), payload.get("text")
                )
            except APIError as e:
                await send({"type": "error", **e.to_response().model_dump(exclude_none=True)})
    except WebSocketDisconnect:
        pass
    finally:
        heartbeat_task.cancel()
        await sync.close()
        logger.info("ws_events.close event=%s client=%s", event_id, client)
