from datetime import datetime

from pydantic import BaseModel, ConfigDict

from koda.src.friends.models import FriendshipStatus
from koda.src.users.models import DetailLevel


class CalendarPermission(BaseModel):
    """What a viewer may see of an owner's calendar."""
    allowed: bool
    detail_level: DetailLevel | None = None


class RedactedEvent(BaseModel):
    """An event as shown to a friend."""
    id: str
    start_at: datetime
    end_at: datetime
    title: str
    description: str | None = None
    location_name: str | None = None
    redacted: bool


class FriendCalendarResponse(BaseModel):
    owner_id: int
    detail_level: DetailLevel | None = None
    events: list[RedactedEvent]


class FeedFriend(BaseModel):
    """A friend and their upcoming events."""
    id: int
    name: str | None = None
    username: str | None = None
    detail_level: DetailLevel
    event_count: int
    events: list[RedactedEvent]


class FeedResponse(BaseModel):
    friends: list[FeedFriend]


class FriendRequestCreate(BaseModel):
    user_id: int


class FriendshipResponse(BaseModel):
    """A friend request or friendship."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_id: int
    addressee_id: int
    status: FriendshipStatus
    can_view_calendar: bool
    detail_level: DetailLevel | None = None
    created_at: datetime
