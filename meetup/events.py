from typing import Any, Literal, Optional, TypedDict


class ResponseRow(TypedDict):
    event_id: str
    time_slot_id: str
    user_name: str
    is_available: bool
    created_at: str
    updated_at: str
    revision: int


class MessageRow(TypedDict):
    id: int
    event_id: str
    user_name: str
    text: str
    created_at: str


# Published on event:{id}:responses, one per submitted batch
class ResponsesEvent(TypedDict):
    type: Literal["responses"]
    event_id: str
    rows: list[ResponseRow]


# Published on event:{id}:messages
class ChatMessageEvent(TypedDict):
    type: Literal["chat_message"]
    event_id: str
    message: MessageRow


# Frames pushed to websocket subscribers
class SyncFrame(TypedDict, total=False):
    type: Literal["snapshot", "responses", "chat_message", "not_found", "state", "ping"]
    event_id: str
    state: str
    snapshot: dict[str, Any]
    rows: list[dict[str, Any]]
    messages: list[dict[str, Any]]
    summary: Optional[dict[str, Any]]
