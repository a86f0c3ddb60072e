# schemas.py

from pydantic import BaseModel, computed_field, field_validator
from datetime import date, time, datetime
from typing import List, Literal, Optional

from scheduler.recurrence import humanize, parse, serialize

EventStatus = Literal["upcoming", "completed", "cancelled"]
RecurringStatus = Literal["active", "paused", "cancelled"]

_ORM_CONFIG = {
    "from_attributes": True,  # ORM mode
    "json_encoders": {
        date: lambda v: v.isoformat(),
        time: lambda v: v.strftime("%H:%M"),
        datetime: lambda v: v.isoformat(),
    },
}


def _blank_to_none(v):
    # HTML forms post "" for untouched optional inputs
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _canonical_rrule(v):
    """Reject rules that do not parse; store the canonical text."""
    if v is None:
        return v
    return serialize(parse(v))


def _as_date(v):
    # the recurrence form posts dtstart as a full ISO timestamp
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, str) and len(v.strip()) > 10:
        return datetime.fromisoformat(v.strip().replace("Z", "+00:00")).date()
    return v


# -----------------------------
# Events
# -----------------------------
class EventBase(BaseModel):
    title: str
    event_date: date

    description: Optional[str] = None
    location: Optional[str] = None
    event_time: Optional[time] = None
    featured_image_url: Optional[str] = None

    model_config = _ORM_CONFIG

    @field_validator("description", "location", "event_time", "featured_image_url", mode="before")
    @classmethod
    def _blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("title")
    @classmethod
    def _title_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class EventCreate(EventBase):
    """Payload for creating a one-off event."""
    status: EventStatus = "upcoming"


class EventUpdate(BaseModel):
    title: Optional[str] = None
    event_date: Optional[date] = None
    description: Optional[str] = None
    location: Optional[str] = None
    event_time: Optional[time] = None
    featured_image_url: Optional[str] = None
    status: Optional[EventStatus] = None

    model_config = _ORM_CONFIG

    @field_validator("event_time", mode="before")
    @classmethod
    def _blank_time(cls, v):
        return _blank_to_none(v)


class Event(EventBase):
    id: int
    status: EventStatus = "upcoming"
    source_recurring_event_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# -----------------------------
# Recurring events
# -----------------------------
class RecurringEventBase(BaseModel):
    title: str
    rrule: str
    dtstart: date

    description: Optional[str] = None
    location: Optional[str] = None
    event_time: Optional[time] = None
    featured_image_url: Optional[str] = None

    model_config = _ORM_CONFIG

    @field_validator("description", "location", "event_time", "featured_image_url", mode="before")
    @classmethod
    def _blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("dtstart", mode="before")
    @classmethod
    def _dtstart_date(cls, v):
        return _as_date(v)

    @field_validator("title")
    @classmethod
    def _title_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class RecurringEventCreate(RecurringEventBase):
    status: Literal["active", "paused"] = "active"

    @field_validator("rrule")
    @classmethod
    def _valid_rrule(cls, v):
        return _canonical_rrule(v)


class RecurringEventUpdate(BaseModel):
    title: Optional[str] = None
    rrule: Optional[str] = None
    dtstart: Optional[date] = None
    description: Optional[str] = None
    location: Optional[str] = None
    event_time: Optional[time] = None
    featured_image_url: Optional[str] = None
    status: Optional[RecurringStatus] = None

    model_config = _ORM_CONFIG

    @field_validator("rrule")
    @classmethod
    def _valid_rrule(cls, v):
        return _canonical_rrule(v)

    @field_validator("dtstart", mode="before")
    @classmethod
    def _dtstart_date(cls, v):
        return _as_date(v)

    @field_validator("event_time", mode="before")
    @classmethod
    def _blank_time(cls, v):
        return _blank_to_none(v)


class RecurringEvent(RecurringEventBase):
    id: int
    status: RecurringStatus = "active"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def summary(self) -> str:
        return humanize(self.rrule)


# -----------------------------
# Recurrence preview (builder)
# -----------------------------
class RecurrencePreviewRequest(BaseModel):
    rrule: Optional[str] = None
    dtstart: Optional[date] = None
    count: Optional[int] = None

    @field_validator("dtstart", mode="before")
    @classmethod
    def _dtstart_date(cls, v):
        return _as_date(_blank_to_none(v))

    @field_validator("count")
    @classmethod
    def _count_range(cls, v):
        if v is not None and not (1 <= v <= 50):
            raise ValueError("count must be between 1 and 50")
        return v


class RecurrencePreview(BaseModel):
    rrule: str
    dtstart: date
    summary: str
    occurrences: List[date]
    warnings: List[str] = []
