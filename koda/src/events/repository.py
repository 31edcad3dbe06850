from datetime import datetime
from typing import Any

from sqlalchemy import case, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.timeutils import ensure_utc, utcnow
from koda.src.events.models import (
    Attendee,
    AttendeeRole,
    Event,
    EventSource,
    EventVisibility,
)
from koda.src.users.models import User

TIMESTAMP_FIELDS = ("start_at", "end_at")


def _normalize(fields: dict[str, Any]) -> dict[str, Any]:
    # Stored as UTC; SQLite keeps no offset
    return {
        name: ensure_utc(value) if name in TIMESTAMP_FIELDS and value is not None else value
        for name, value in fields.items()
    }


class EventRepository:
    """Repository for event database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, owner_id: int, **fields: Any) -> Event:
        """Create a new event."""
        now = utcnow()
        event = Event(owner_id=owner_id, created_at=now, updated_at=now, **_normalize(fields))
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_by_id(self, event_id: str) -> Event | None:
        """Get event by ID."""
        result = await self.session.execute(
            select(Event).where(Event.id == event_id)
        )
        return result.scalar_one_or_none()

    async def get_owned(self, owner_id: int, event_id: str) -> Event | None:
        """Get an event only if it belongs to the owner."""
        result = await self.session.execute(
            select(Event).where(Event.id == event_id, Event.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def get_events_in_window(
        self,
        owner_id: int,
        start: datetime,
        end: datetime,
        visibilities: list[EventVisibility] | None = None,
    ) -> list[Event]:
        """Get a user's events overlapping [start, end]."""
        start, end = ensure_utc(start), ensure_utc(end)
        query = select(Event).where(
            Event.owner_id == owner_id,
            Event.start_at <= end,
            Event.end_at >= start,
        )
        if visibilities is not None:
            query = query.where(Event.visibility.in_(visibilities))
        result = await self.session.execute(query.order_by(Event.start_at))
        return list(result.scalars().all())

    async def get_events_for_owners(
        self,
        owner_ids: list[int],
        start: datetime,
        end: datetime,
        visibilities: list[EventVisibility],
    ) -> list[Event]:
        """Get events of several owners overlapping [start, end] in one query."""
        if not owner_ids:
            return []
        start, end = ensure_utc(start), ensure_utc(end)
        result = await self.session.execute(
            select(Event)
            .where(
                Event.owner_id.in_(owner_ids),
                Event.start_at <= end,
                Event.end_at >= start,
                Event.visibility.in_(visibilities),
            )
            .order_by(Event.start_at)
        )
        return list(result.scalars().all())

    async def update(self, event: Event, **fields: Any) -> Event:
        """Apply field changes and stamp updated_at. Returns the event."""
        for name, value in _normalize(fields).items():
            setattr(event, name, value)
        event.updated_at = utcnow()
        await self.session.flush()
        return event

    async def delete(self, event: Event) -> None:
        """Delete an event."""
        await self.session.delete(event)
        await self.session.flush()

    async def delete_by_id(self, event_id: str) -> int:
        """Delete an event by ID. Returns count of deleted events."""
        result = await self.session.execute(delete(Event).where(Event.id == event_id))
        return result.rowcount

    async def delete_by_source(self, owner_id: int, source: EventSource) -> int:
        """Delete a user's events of one source. Returns count of deleted events."""
        result = await self.session.execute(
            delete(Event).where(Event.owner_id == owner_id, Event.source == source)
        )
        return result.rowcount


class AttendeeRepository:
    """Repository for event guest lists."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, event_id: str, user_id: int, **fields: Any) -> Attendee:
        attendee = Attendee(event_id=event_id, user_id=user_id, created_at=utcnow(), **fields)
        self.session.add(attendee)
        await self.session.flush()
        return attendee

    async def get(self, event_id: str, user_id: int) -> Attendee | None:
        """A user's attendee row on an event."""
        result = await self.session.execute(
            select(Attendee).where(Attendee.event_id == event_id, Attendee.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_with_users(self, event_id: str) -> list[tuple[Attendee, User]]:
        """An event's attendees with their users, host first."""
        result = await self.session.execute(
            select(Attendee, User)
            .join(User, User.id == Attendee.user_id)
            .where(Attendee.event_id == event_id)
            .order_by(case((Attendee.role == AttendeeRole.HOST, 0), else_=1), Attendee.id)
        )
        return [(attendee, user) for attendee, user in result.all()]
