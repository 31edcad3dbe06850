import enum
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from koda.core.timeutils import ensure_utc


class SuggestionSource(str, enum.Enum):
    TICKETMASTER = "TICKETMASTER"
    OSM = "OSM"


class OpenState(str, enum.Enum):
    """Whether a venue is open at the requested slot."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    UNKNOWN = "UNKNOWN"


class Confidence(str, enum.Enum):
    HIGH = "HIGH"
    LOW = "LOW"


class Suggestion(BaseModel):
    """A thing to do near the user during a time slot."""
    source: SuggestionSource
    title: str
    external_id: str | None = None
    venue_name: str | None = None
    address: str | None = None
    url: str | None = None
    category: str | None = None
    is_open_at_time: OpenState = OpenState.UNKNOWN
    confidence: Confidence = Confidence.LOW
    slot_start_at: datetime
    slot_end_at: datetime


class SuggestionQuery(BaseModel):
    """Where, when and what the user wants to do."""
    city: str = Field(min_length=1)
    radius_miles: float = Field(default=10, gt=0, le=100)
    interests: list[str] = []
    slot_start: datetime
    slot_end: datetime
    # IANA zone of the venues; opening hours are local wall-clock times
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    @model_validator(mode="after")
    def check_slot(self) -> "SuggestionQuery":
        if self.slot_end <= self.slot_start:
            raise ValueError("slot_end must be after slot_start")
        return self

    def cache_key(self, prefix: str) -> str:
        interests = ",".join(sorted(i.strip().lower() for i in self.interests))
        return (
            f"{prefix}:{self.city.strip().lower()}:{self.radius_miles:g}:{interests}:"
            f"{self.slot_start.isoformat()}:{self.slot_end.isoformat()}:{self.timezone or ''}"
        )

    def local_slot_start(self) -> datetime:
        """The slot start as wall-clock time at the venues.

        Without a timezone the slot's own offset is taken as local time.
        """
        if self.timezone is None:
            return self.slot_start
        return ensure_utc(self.slot_start).astimezone(ZoneInfo(self.timezone))
