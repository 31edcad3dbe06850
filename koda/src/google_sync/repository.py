from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from koda.src.events.models import Event, EventSource
from koda.src.google_sync.models import GoogleCalendarConnection, GoogleEventMapping


def _dialect_insert(session: AsyncSession, model: type) -> Any:
    """INSERT construct that supports ON CONFLICT for the session's backend."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert is not supported on {dialect}")


class ConnectionRepository:
    """Repository for Google Calendar connections."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user(self, user_id: int) -> GoogleCalendarConnection | None:
        result = await self.session.execute(
            select(GoogleCalendarConnection).where(
                GoogleCalendarConnection.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, user_id: int, **values: Any) -> GoogleCalendarConnection:
        """Insert or update the connection keyed by user_id."""
        stmt = _dialect_insert(self.session, GoogleCalendarConnection).values(
            user_id=user_id, **values
        )
        if values:
            stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=values)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
        await self.session.execute(stmt)

        result = await self.session.execute(
            select(GoogleCalendarConnection)
            .where(GoogleCalendarConnection.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def update(
        self, connection: GoogleCalendarConnection, **values: Any
    ) -> GoogleCalendarConnection:
        for name, value in values.items():
            setattr(connection, name, value)
        await self.session.flush()
        return connection

    async def store_access_token(
        self,
        connection: GoogleCalendarConnection,
        access_token: str,
        expires_at: datetime,
    ) -> None:
        connection.access_token = access_token
        connection.token_expires_at = expires_at
        await self.session.flush()

    async def delete(self, connection: GoogleCalendarConnection) -> None:
        await self.session.delete(connection)
        await self.session.flush()

    async def get_connected_user_ids(self) -> list[int]:
        result = await self.session.execute(
            select(GoogleCalendarConnection.user_id).order_by(
                GoogleCalendarConnection.user_id
            )
        )
        return list(result.scalars().all())


class MappingRepository:
    """Repository for local/Google event mappings."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_google_id(
        self, user_id: int, google_event_id: str
    ) -> GoogleEventMapping | None:
        result = await self.session.execute(
            select(GoogleEventMapping).where(
                GoogleEventMapping.user_id == user_id,
                GoogleEventMapping.google_event_id == google_event_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_koda_event(self, koda_event_id: str) -> GoogleEventMapping | None:
        result = await self.session.execute(
            select(GoogleEventMapping).where(
                GoogleEventMapping.koda_event_id == koda_event_id
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        user_id: int,
        koda_event_id: str,
        google_event_id: str,
        google_etag: str | None,
        last_pushed_at: datetime | None = None,
    ) -> GoogleEventMapping:
        """Insert or update the mapping keyed by koda_event_id."""
        values = {
            "google_event_id": google_event_id,
            "google_etag": google_etag,
            "last_pushed_at": last_pushed_at,
        }
        stmt = (
            _dialect_insert(self.session, GoogleEventMapping)
            .values(user_id=user_id, koda_event_id=koda_event_id, **values)
            .on_conflict_do_update(index_elements=["koda_event_id"], set_=values)
        )
        await self.session.execute(stmt)

        result = await self.session.execute(
            select(GoogleEventMapping)
            .where(GoogleEventMapping.koda_event_id == koda_event_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def update(self, mapping: GoogleEventMapping, **values: Any) -> GoogleEventMapping:
        for name, value in values.items():
            setattr(mapping, name, value)
        await self.session.flush()
        return mapping

    async def delete(self, mapping: GoogleEventMapping) -> None:
        await self.session.delete(mapping)
        await self.session.flush()

    async def delete_for_user(self, user_id: int) -> int:
        """Delete all mappings of a user. Returns count of deleted rows."""
        result = await self.session.execute(
            delete(GoogleEventMapping).where(GoogleEventMapping.user_id == user_id)
        )
        return result.rowcount

    async def get_push_candidates(
        self, user_id: int
    ) -> list[tuple[Event, GoogleEventMapping | None]]:
        """Locally authored events marked for Google, with their mapping if any.

        The source filter lives in the query itself: GOOGLE events are never
        loaded here.
        """
        result = await self.session.execute(
            select(Event, GoogleEventMapping)
            .outerjoin(GoogleEventMapping, GoogleEventMapping.koda_event_id == Event.id)
            .where(
                Event.owner_id == user_id,
                Event.source == EventSource.KODA,
                Event.sync_to_google.is_(True),
            )
            .order_by(Event.created_at, Event.id)
        )
        return [(event, mapping) for event, mapping in result.all()]

    async def get_unpushed(self, user_id: int) -> list[GoogleEventMapping]:
        """Mappings of KODA events that are no longer marked for Google."""
        result = await self.session.execute(
            select(GoogleEventMapping)
            .join(Event, GoogleEventMapping.koda_event_id == Event.id)
            .where(
                GoogleEventMapping.user_id == user_id,
                Event.source == EventSource.KODA,
                Event.sync_to_google.is_(False),
            )
            .order_by(GoogleEventMapping.id)
        )
        return list(result.scalars().all())
