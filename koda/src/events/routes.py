from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.database import get_session
from koda.core.logging import get_logger
from koda.core.security import get_current_user
from koda.core.timeutils import utcnow
from koda.src.events.schemas import (
    AnonymityUpdate,
    AttendeeListResponse,
    AttendeeResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
    RsvpUpdate,
    SlotConfirm,
    SlotConfirmResponse,
)
from koda.src.events.service import EventService
from koda.src.google_sync.client import GoogleCalendarClient, get_google_client
from koda.src.users.models import User

logger = get_logger(__name__)

router = APIRouter(prefix="/events", tags=["events"])
find_time_router = APIRouter(prefix="/find-time", tags=["find-time"])


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> EventResponse:
    """Create an event."""
    logger.debug(f"Create event request from user {current_user.id}")
    return await EventService(session).create_event(current_user.id, event_data)


@router.get("", response_model=EventListResponse)
async def list_events(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> EventListResponse:
    """List the current user's events in a window (default: the next 7 days)."""
    start = start or utcnow()
    end = end or start + timedelta(days=7)
    events = await EventService(session).list_events(current_user.id, start, end)
    return EventListResponse(
        count=len(events),
        events=[EventResponse.model_validate(event) for event in events],
    )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> EventResponse:
    """Get one of the current user's events."""
    return await EventService(session).get_event(current_user.id, event_id)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    changes: EventUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> EventResponse:
    """Update an event. The next sync pushes the change to Google."""
    return await EventService(session).update_event(current_user.id, event_id, changes)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    client: GoogleCalendarClient = Depends(get_google_client),
) -> None:
    """Delete an event and its Google copy."""
    await EventService(session, client).delete_event(current_user.id, event_id)


@router.get("/{event_id}/attendees", response_model=AttendeeListResponse)
async def list_attendees(
    event_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AttendeeListResponse:
    """An event's guest list, with anonymous attendees redacted."""
    attendees = await EventService(session).list_attendees(current_user.id, event_id)
    return AttendeeListResponse(event_id=event_id, attendees=attendees)


@router.post("/{event_id}/rsvp", response_model=AttendeeResponse)
async def rsvp(
    event_id: str,
    answer: RsvpUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AttendeeResponse:
    """Answer an invite with GOING or DECLINED."""
    service = EventService(session)
    await service.rsvp(current_user.id, event_id, answer.status)
    return await _own_attendee(service, current_user.id, event_id)


@router.patch("/{event_id}/anonymity", response_model=AttendeeResponse)
async def set_anonymity(
    event_id: str,
    change: AnonymityUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AttendeeResponse:
    """Show or hide the current user's name on an event's guest list."""
    service = EventService(session)
    await service.set_anonymity(current_user.id, event_id, change.anonymity)
    return await _own_attendee(service, current_user.id, event_id)


async def _own_attendee(service: EventService, user_id: int, event_id: str) -> AttendeeResponse:
    attendees = await service.list_attendees(user_id, event_id)
    return next(a for a in attendees if a.user_id == user_id)


@find_time_router.post(
    "/confirm", response_model=SlotConfirmResponse, status_code=status.HTTP_201_CREATED
)
async def confirm_slot(
    slot: SlotConfirm,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SlotConfirmResponse:
    """Book a found slot as an event and invite friends to it."""
    service = EventService(session)
    event = await service.confirm_slot(current_user.id, slot)
    return SlotConfirmResponse(
        event=EventResponse.model_validate(event),
        attendees=await service.list_attendees(current_user.id, event.id),
    )
