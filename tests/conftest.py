"""Shared fixtures: an in-memory database and a fake Google Calendar."""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from koda.core.database import Base
from koda.core.exceptions import ProviderError
from koda.core.timeutils import utcnow
from koda.src.events.models import Attendee, Event, EventSource, EventVisibility  # noqa: F401
from koda.src.friends.models import Block, Friendship, FriendshipStatus  # noqa: F401
from koda.src.google_sync.models import GoogleCalendarConnection, GoogleEventMapping  # noqa: F401
from koda.src.google_sync.schemas import RemoteEvent
from koda.src.users.models import User, UserSettings  # noqa: F401


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def user(async_session) -> User:
    user = User(email="ada@example.com", name="Ada", username="ada", is_active=True)
    async_session.add(user)
    await async_session.commit()
    return user


@pytest.fixture
async def connection(async_session, user) -> GoogleCalendarConnection:
    connection = GoogleCalendarConnection(
        user_id=user.id,
        access_token="token",
        push_enabled=True,
        sync_window_past_days=30,
        sync_window_future_days=90,
    )
    async_session.add(connection)
    await async_session.commit()
    return connection


async def make_event(session: AsyncSession, owner_id: int, **overrides: Any) -> Event:
    """Insert a local event with sensible defaults."""
    start = datetime(2026, 11, 2, 14, 0, tzinfo=timezone.utc)
    now = utcnow()
    fields: dict[str, Any] = {
        "owner_id": owner_id,
        "title": "Koda Meeting",
        "description": "Planning",
        "location_name": "Office",
        "start_at": start,
        "end_at": start + timedelta(hours=1),
        "timezone": "UTC",
        "visibility": EventVisibility.FRIENDS,
        "source": EventSource.KODA,
        "sync_to_google": True,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    event = Event(**fields)
    session.add(event)
    await session.commit()
    return event


async def add_user(session: AsyncSession, username: str, **fields: Any) -> User:
    user = User(email=f"{username}@example.com", name=username.title(), username=username, **fields)
    session.add(user)
    await session.commit()
    return user


async def befriend(session: AsyncSession, a: User, b: User, **fields: Any) -> Friendship:
    """An accepted friendship from ``a`` to ``b``."""
    values = {"status": FriendshipStatus.ACCEPTED, "can_view_calendar": True}
    values.update(fields)
    friendship = Friendship(requester_id=a.id, addressee_id=b.id, **values)
    session.add(friendship)
    await session.commit()
    return friendship


class FakeGoogleCalendar:
    """In-memory stand-in for GoogleCalendarClient.

    Every mutation hands out a fresh etag, like Google does.
    """

    def __init__(self):
        self.events: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.fail_ids: set[str] = set()
        self.fail_inserts = False
        self.fail_listing = False
        self._ids = itertools.count(1)
        self._etags = itertools.count(1)

    def _etag(self) -> str:
        return f'"etag-{next(self._etags)}"'

    def add_remote(
        self,
        event_id: str,
        summary: str = "Team Standup",
        start: dict | None = None,
        end: dict | None = None,
        status: str = "confirmed",
    ) -> dict[str, Any]:
        event = {
            "id": event_id,
            "summary": summary,
            "start": start if start is not None else {"dateTime": "2026-11-03T09:00:00Z", "timeZone": "UTC"},
            "end": end if end is not None else {"dateTime": "2026-11-03T09:30:00Z", "timeZone": "UTC"},
            "etag": self._etag(),
            "status": status,
        }
        self.events[event_id] = event
        return event

    def edit_remote(self, event_id: str, **changes: Any) -> None:
        self.events[event_id].update(changes, etag=self._etag())

    def cancel_remote(self, event_id: str) -> None:
        self.events[event_id] = {"id": event_id, "status": "cancelled", "etag": self._etag()}

    @property
    def mutating_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] != "list"]

    async def list_events(self, user_id, time_min, time_max) -> list[RemoteEvent]:
        self.calls.append(("list", user_id))
        if self.fail_listing:
            raise ProviderError("HTTP 503: backend error", 503)
        return [RemoteEvent.model_validate(e) for e in self.events.values()]

    async def insert_event(self, user_id, body) -> RemoteEvent:
        self.calls.append(("insert", user_id, body))
        if self.fail_inserts:
            raise ProviderError("HTTP 500: insert failed", 500)
        event_id = f"g-created-{next(self._ids)}"
        self.events[event_id] = {**body, "id": event_id, "etag": self._etag(), "status": "confirmed"}
        return RemoteEvent.model_validate(self.events[event_id])

    async def update_event(self, user_id, google_event_id, body) -> RemoteEvent:
        self.calls.append(("update", user_id, google_event_id, body))
        if google_event_id in self.fail_ids or google_event_id not in self.events:
            raise ProviderError("HTTP 404: Not Found", 404)
        self.events[google_event_id].update(body, etag=self._etag())
        return RemoteEvent.model_validate(self.events[google_event_id])

    async def delete_event(self, user_id, google_event_id) -> None:
        self.calls.append(("delete", user_id, google_event_id))
        if google_event_id in self.fail_ids:
            raise ProviderError("HTTP 500: delete failed", 500)
        self.events.pop(google_event_id, None)


@pytest.fixture
def google() -> FakeGoogleCalendar:
    return FakeGoogleCalendar()
