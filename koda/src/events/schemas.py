from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from koda.core.timeutils import ensure_utc
from koda.src.events.models import (
    AttendeeAnonymity,
    AttendeeRole,
    AttendeeStatus,
    EventSource,
    EventVisibility,
)

NON_NULLABLE_FIELDS = (
    "title",
    "start_at",
    "end_at",
    "timezone",
    "is_all_day",
    "visibility",
    "sync_to_google",
)


class EventCreate(BaseModel):
    """Event creation model."""
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    location_name: str | None = None
    start_at: datetime
    end_at: datetime
    timezone: str = "UTC"
    is_all_day: bool = False
    visibility: EventVisibility = EventVisibility.FRIENDS
    sync_to_google: bool = False

    @model_validator(mode="after")
    def check_range(self) -> "EventCreate":
        if ensure_utc(self.end_at) < ensure_utc(self.start_at):
            raise ValueError("end_at must not be before start_at")
        return self


class EventUpdate(BaseModel):
    """Partial event update model."""
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    location_name: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    timezone: str | None = None
    is_all_day: bool | None = None
    visibility: EventVisibility | None = None
    sync_to_google: bool | None = None

    @model_validator(mode="after")
    def check_not_null(self) -> "EventUpdate":
        # Omit a field to leave it unchanged; only the text fields may be cleared
        for name in NON_NULLABLE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self


class EventResponse(BaseModel):
    """Event response model."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: int
    title: str
    description: str | None = None
    location_name: str | None = None
    start_at: datetime
    end_at: datetime
    timezone: str
    is_all_day: bool
    visibility: EventVisibility
    source: EventSource
    external_id: str | None = None
    sync_to_google: bool
    created_at: datetime
    updated_at: datetime


class EventListResponse(BaseModel):
    """Events in a window."""
    count: int
    events: list[EventResponse]


class AttendeeResponse(BaseModel):
    """An attendee as shown to a viewer. Anonymous attendees carry no identity."""
    user_id: int | None = None
    name: str
    username: str | None = None
    role: AttendeeRole
    status: AttendeeStatus
    anonymity: AttendeeAnonymity


class AttendeeListResponse(BaseModel):
    event_id: str
    attendees: list[AttendeeResponse]


class RsvpUpdate(BaseModel):
    status: AttendeeStatus

    @model_validator(mode="after")
    def check_status(self) -> "RsvpUpdate":
        if self.status == AttendeeStatus.INVITED:
            raise ValueError("status must be GOING or DECLINED")
        return self


class AnonymityUpdate(BaseModel):
    anonymity: AttendeeAnonymity


class SlotConfirm(BaseModel):
    """A chosen find-time slot to turn into an event with invites."""
    title: str = Field(min_length=1, max_length=500)
    start_at: datetime
    end_at: datetime
    timezone: str = "UTC"
    visibility: EventVisibility = EventVisibility.FRIENDS
    invitee_ids: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_range(self) -> "SlotConfirm":
        if ensure_utc(self.end_at) <= ensure_utc(self.start_at):
            raise ValueError("end_at must be after start_at")
        return self


class SlotConfirmResponse(BaseModel):
    event: EventResponse
    attendees: list[AttendeeResponse]
