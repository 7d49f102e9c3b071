import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


class Event(BaseModel):
    id: str
    name: str
    location: str | None = None
    creator_id: str
    created_at: datetime


class TimeSlot(BaseModel):
    id: str
    event_id: str
    date: str
    time: str
    position: int = 0


class PhoneContact(BaseModel):
    id: str
    event_id: str
    number: str
    name: str | None = None


class Response(BaseModel):
    event_id: str
    time_slot_id: str
    user_name: str
    is_available: bool
    created_at: datetime
    updated_at: datetime
    revision: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.time_slot_id, self.user_name)

    @property
    def version(self) -> tuple[int, datetime]:
        """Orders writes to one cell. ``revision`` is assigned by the store, never by a client clock."""
        return (self.revision, self.updated_at)


class ChatMessage(BaseModel):
    id: int
    event_id: str
    user_name: str
    text: str
    created_at: datetime

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.id)


class Snapshot(BaseModel):
    event: Event
    time_slots: list[TimeSlot]
    responses: list[Response]
    phone_contacts: list[PhoneContact] = []


class Availability(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    NO_OPINION = "no_opinion"


class StatusKind(str, Enum):
    NO_RESPONSES = "no_responses"
    CONFIRMED = "confirmed"
    RESPONDED = "responded"


class EventStatus(BaseModel):
    kind: StatusKind
    count: int = 0

    @property
    def label(self) -> str:
        if self.kind is StatusKind.NO_RESPONSES:
            return "No responses"
        if self.kind is StatusKind.CONFIRMED:
            return f"{self.count} confirmed"
        return f"{self.count} responded"


class SlotSummary(BaseModel):
    slot: TimeSlot
    available_count: int
    available_users: list[str]
    unavailable_users: list[str]
    everyone_available: bool


class EventSummary(BaseModel):
    event_id: str
    respondent_count: int
    respondents: list[str]
    has_consensus: bool
    consensus_slot_ids: list[str]
    status: EventStatus
    status_label: str
    slots: list[SlotSummary]


class EventListItem(BaseModel):
    event: Event
    status: EventStatus
    status_label: str


# Requests


class TimeSlotIn(BaseModel):
    date: str
    time: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        v = v.strip()
        if not DATE_RE.match(v):
            raise ValueError(f"invalid date format: {v}")
        try:
            datetime.strptime(v, "%Y-%m-%d")
        except ValueError:
            raise ValueError(f"invalid date: {v}")
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        v = v.strip()
        if not TIME_RE.match(v):
            raise ValueError(f"invalid time format: {v}")
        return v


class PhoneContactIn(BaseModel):
    number: str
    name: str | None = None

    @field_validator("number")
    @classmethod
    def validate_number(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 40:
            raise ValueError("number must be 1-40 characters")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class CreateEventRequest(BaseModel):
    name: str
    location: str | None = None
    time_slots: list[TimeSlotIn]
    phone_contacts: list[PhoneContactIn] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 200:
            raise ValueError("name must be 1-200 characters")
        return v

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) > 200:
            raise ValueError("location must be at most 200 characters")
        return v or None

    @field_validator("time_slots")
    @classmethod
    def validate_time_slots(cls, v: list[TimeSlotIn]) -> list[TimeSlotIn]:
        if not v:
            raise ValueError("time_slots must not be empty")
        return v


class AvailabilityRequest(BaseModel):
    user_name: str
    responses: dict[str, bool] = Field(description="Map of time slot id to availability")

    @field_validator("user_name")
    @classmethod
    def validate_user_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 100:
            raise ValueError("user_name must be 1-100 characters")
        return v

    @field_validator("responses")
    @classmethod
    def validate_responses(cls, v: dict[str, bool]) -> dict[str, bool]:
        if not v:
            raise ValueError("mark availability for at least one time slot")
        return v


class SendMessageRequest(BaseModel):
    user_name: str
    text: str
