import asyncio
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.config import settings
from koda.core.exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    ProviderError,
)
from koda.core.logging import get_logger
from koda.core.timeutils import ensure_utc
from koda.src.events.models import (
    Attendee,
    AttendeeAnonymity,
    AttendeeRole,
    AttendeeStatus,
    Event,
    EventSource,
)
from koda.src.events.repository import AttendeeRepository, EventRepository
from koda.src.events.schemas import (
    AttendeeResponse,
    EventCreate,
    EventUpdate,
    SlotConfirm,
)
from koda.src.friends.repository import FriendshipRepository
from koda.src.google_sync.repository import MappingRepository
from koda.src.google_sync.service import CalendarProvider
from koda.src.users.models import User

logger = get_logger(__name__)

ANONYMOUS_NAME = "Anonymous attendee"


class EventService:
    """Service for event business logic."""

    def __init__(self, session: AsyncSession, client: CalendarProvider | None = None):
        self.session = session
        self.client = client
        self.repository = EventRepository(session)
        self.attendees = AttendeeRepository(session)
        self.mappings = MappingRepository(session)

    async def create_event(self, owner_id: int, event_data: EventCreate) -> Event:
        """Create a locally authored event."""
        event = await self.repository.create(
            owner_id, source=EventSource.KODA, **event_data.model_dump()
        )
        await self._add_host(event)
        await self.session.commit()
        logger.info(f"Created event {event.id} for user {owner_id}")
        return event

    async def list_events(self, owner_id: int, start: datetime, end: datetime) -> list[Event]:
        """Get a user's events overlapping a window."""
        return await self.repository.get_events_in_window(owner_id, start, end)

    async def get_event(self, owner_id: int, event_id: str) -> Event:
        event = await self.repository.get_owned(owner_id, event_id)
        if event is None:
            raise NotFoundException("Event not found")
        return event

    async def update_event(self, owner_id: int, event_id: str, changes: EventUpdate) -> Event:
        """Update a locally authored event.

        Raises:
            NotFoundException: If the event does not exist for this user
            ForbiddenException: If the event was imported from Google
        """
        event = await self.get_event(owner_id, event_id)
        if event.source == EventSource.GOOGLE:
            raise ForbiddenException("Imported Google events are read-only")

        fields = changes.model_dump(exclude_unset=True)
        start_at = fields.get("start_at", event.start_at)
        end_at = fields.get("end_at", event.end_at)
        if ensure_utc(end_at) < ensure_utc(start_at):
            raise BadRequestException("end_at must not be before start_at")

        event = await self.repository.update(event, **fields)
        await self.session.commit()
        return event

    async def delete_event(self, owner_id: int, event_id: str) -> None:
        """Delete an event, and its Google copy when it was pushed."""
        event = await self.get_event(owner_id, event_id)

        if event.source == EventSource.KODA and self.client is not None:
            mapping = await self.mappings.get_by_koda_event(event.id)
            if mapping is not None:
                await self._delete_remote(owner_id, mapping.google_event_id)
                await self.mappings.delete(mapping)

        await self.repository.delete(event)
        await self.session.commit()
        logger.info(f"Deleted event {event_id} for user {owner_id}")

    async def _delete_remote(self, owner_id: int, google_event_id: str) -> None:
        try:
            await asyncio.wait_for(
                self.client.delete_event(owner_id, google_event_id),
                timeout=settings.GOOGLE_REQUEST_TIMEOUT_SECONDS,
            )
        except (ProviderError, asyncio.TimeoutError) as e:
            # The local delete still goes ahead
            logger.warning(f"Could not delete Google event {google_event_id}: {e}")

    async def _add_host(self, event: Event) -> Attendee:
        return await self.attendees.add(
            event.id,
            event.owner_id,
            role=AttendeeRole.HOST,
            status=AttendeeStatus.GOING,
            anonymity=AttendeeAnonymity.NAMED,
        )

    async def _get_visible_event(self, viewer_id: int, event_id: str) -> Event:
        # Guest lists are visible to the owner and to the guests themselves
        event = await self.repository.get_by_id(event_id)
        if event is None:
            raise NotFoundException("Event not found")
        if event.owner_id != viewer_id and await self.attendees.get(event_id, viewer_id) is None:
            raise NotFoundException("Event not found")
        return event

    async def list_attendees(self, viewer_id: int, event_id: str) -> list[AttendeeResponse]:
        """An event's guest list as the viewer may see it.

        Anonymous attendees are shown without identity to everyone except
        the event owner and the attendee themself.
        """
        event = await self._get_visible_event(viewer_id, event_id)
        rows = await self.attendees.list_with_users(event.id)
        return [
            attendee_view(attendee, user, viewer_id, event.owner_id) for attendee, user in rows
        ]

    async def rsvp(self, user_id: int, event_id: str, status: AttendeeStatus) -> Attendee:
        """Answer an invite. Only invited users have an RSVP to change."""
        attendee = await self.attendees.get(event_id, user_id)
        if attendee is None:
            raise NotFoundException("You are not invited to this event")
        if attendee.role == AttendeeRole.HOST:
            raise BadRequestException("The host cannot RSVP to their own event")

        attendee.status = status
        await self.session.commit()
        logger.info(f"User {user_id} RSVP'd {status.value} to event {event_id}")
        return attendee

    async def set_anonymity(
        self, user_id: int, event_id: str, anonymity: AttendeeAnonymity
    ) -> Attendee:
        attendee = await self.attendees.get(event_id, user_id)
        if attendee is None:
            raise NotFoundException("You are not invited to this event")

        attendee.anonymity = anonymity
        await self.session.commit()
        return attendee

    async def confirm_slot(self, owner_id: int, slot: SlotConfirm) -> Event:
        """Create an event for a chosen slot and invite friends to it.

        Raises:
            BadRequestException: If an invitee is the owner, is not an
                accepted friend, or either side has blocked the other
        """
        invitee_ids = list(dict.fromkeys(slot.invitee_ids))
        friendships = FriendshipRepository(self.session)
        for invitee_id in invitee_ids:
            if invitee_id == owner_id:
                raise BadRequestException("You cannot invite yourself")
            if await friendships.is_blocked(owner_id, invitee_id):
                raise BadRequestException(f"Cannot invite user {invitee_id}")
            if await friendships.get_accepted(owner_id, invitee_id) is None:
                raise BadRequestException(f"User {invitee_id} is not your friend")

        event = await self.repository.create(
            owner_id,
            source=EventSource.KODA,
            title=slot.title,
            start_at=slot.start_at,
            end_at=slot.end_at,
            timezone=slot.timezone,
            visibility=slot.visibility,
        )
        await self._add_host(event)
        for invitee_id in invitee_ids:
            await self.attendees.add(
                event.id,
                invitee_id,
                role=AttendeeRole.ATTENDEE,
                status=AttendeeStatus.INVITED,
                anonymity=AttendeeAnonymity.NAMED,
            )
        await self.session.commit()
        logger.info(
            f"Confirmed slot as event {event.id} for user {owner_id} "
            f"with {len(invitee_ids)} invitees"
        )
        return event


def attendee_view(
    attendee: Attendee, user: User, viewer_id: int, owner_id: int
) -> AttendeeResponse:
    """Redact an anonymous attendee unless the viewer is the owner or the attendee."""
    hidden = (
        attendee.anonymity == AttendeeAnonymity.ANONYMOUS
        and viewer_id not in (owner_id, attendee.user_id)
    )
    return AttendeeResponse(
        user_id=None if hidden else attendee.user_id,
        name=ANONYMOUS_NAME if hidden else (user.name or user.username or "Unknown"),
        username=None if hidden else user.username,
        role=attendee.role,
        status=attendee.status,
        anonymity=attendee.anonymity,
    )
