"""Calendar access rules between friends.

A viewer sees an owner's calendar only when neither has blocked the other,
they are accepted friends, and the friendship allows calendar viewing. The
detail level is the friendship's override, else the owner's default, else
busy-only. PRIVATE events always show as busy.
"""

from collections.abc import Iterable

from koda.src.events.models import Event, EventVisibility
from koda.src.friends.repository import FriendshipRepository
from koda.src.friends.schemas import CalendarPermission, RedactedEvent
from koda.src.users.models import DetailLevel
from koda.src.users.repository import UserRepository

BUSY_TITLE = "Busy"

DENIED = CalendarPermission(allowed=False, detail_level=None)


async def get_friend_calendar_permission(
    friendships: FriendshipRepository,
    users: UserRepository,
    owner_id: int,
    viewer_id: int,
) -> CalendarPermission:
    """Effective permission for ``viewer_id`` on ``owner_id``'s calendar."""
    if await friendships.is_blocked(viewer_id, owner_id):
        return DENIED

    friendship = await friendships.get_accepted(viewer_id, owner_id)
    if friendship is None or not friendship.can_view_calendar:
        return DENIED

    detail_level = friendship.detail_level
    if detail_level is None:
        owner = await users.find_by_id(owner_id)
        detail_level = owner.default_detail_level if owner else None
    return CalendarPermission(allowed=True, detail_level=detail_level or DetailLevel.BUSY_ONLY)


def redact_event(event: Event, detail_level: DetailLevel) -> RedactedEvent:
    redacted = (
        event.visibility == EventVisibility.PRIVATE
        or detail_level == DetailLevel.BUSY_ONLY
    )
    return RedactedEvent(
        id=event.id,
        start_at=event.start_at,
        end_at=event.end_at,
        title=BUSY_TITLE if redacted else event.title,
        description=None if redacted else event.description,
        location_name=None if redacted else event.location_name,
        redacted=redacted,
    )


def filter_events_for_viewer(
    events: Iterable[Event], permission: CalendarPermission
) -> list[RedactedEvent]:
    """Events a viewer may see, redacted to their permission."""
    if not permission.allowed:
        return []
    detail_level = permission.detail_level or DetailLevel.BUSY_ONLY
    return [redact_event(event, detail_level) for event in events]
