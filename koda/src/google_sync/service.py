"""Two-way Google Calendar sync.

``pull`` imports Google changes, ``push`` exports local changes, and
``sync_all`` runs them in that order. Both directions guard against
re-processing their own output:

* pull skips a mapped event whose etag equals the stored etag;
* push skips a mapped event whose ``updated_at`` is not after
  ``last_pushed_at``.

When pull applies a Google edit to a local event it also advances
``last_pushed_at`` to the event's new ``updated_at``, so the import is not
echoed back to Google by the following push.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.config import settings
from koda.core.exceptions import ConfigurationError, ProviderError, StoreError, ValidationError
from koda.core.logging import get_logger
from koda.core.timeutils import ensure_utc, utcnow
from koda.src.events.models import Event, EventSource, EventVisibility
from koda.src.events.repository import EventRepository
from koda.src.google_sync.locks import user_sync_lock
from koda.src.google_sync.mapper import remote_event_fields, to_google_body
from koda.src.google_sync.models import GoogleCalendarConnection, GoogleEventMapping
from koda.src.google_sync.repository import ConnectionRepository, MappingRepository
from koda.src.google_sync.schemas import PullResult, PushResult, RemoteEvent, SyncSummary

logger = get_logger(__name__)

T = TypeVar("T")


class CalendarProvider(Protocol):
    """The Google Calendar operations the sync engine relies on."""

    async def list_events(
        self, user_id: int, time_min: datetime, time_max: datetime
    ) -> list[RemoteEvent]: ...

    async def insert_event(self, user_id: int, body: dict[str, Any]) -> RemoteEvent: ...

    async def update_event(
        self, user_id: int, google_event_id: str, body: dict[str, Any]
    ) -> RemoteEvent: ...

    async def delete_event(self, user_id: int, google_event_id: str) -> None: ...


class GoogleSyncService:
    """Service for Google Calendar synchronization."""

    def __init__(
        self,
        session: AsyncSession,
        client: CalendarProvider,
        timeout: float | None = None,
    ):
        self.session = session
        self.client = client
        self.timeout = timeout if timeout is not None else settings.GOOGLE_REQUEST_TIMEOUT_SECONDS
        self.events = EventRepository(session)
        self.mappings = MappingRepository(session)
        self.connections = ConnectionRepository(session)

    @asynccontextmanager
    async def _store_guard(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(f"Database error during {action}: {exc}")
            raise StoreError(f"Database error during {action}") from exc

    async def _call(self, operation: Awaitable[T]) -> T:
        return await asyncio.wait_for(operation, timeout=self.timeout)

    async def _require_connection(self, user_id: int) -> GoogleCalendarConnection:
        connection = await self.connections.get_by_user(user_id)
        if connection is None:
            raise ConfigurationError(f"User {user_id} has not connected Google Calendar")
        return connection

    async def pull(self, user_id: int) -> PullResult:
        """Import Google events from the connection's sync window.

        Raises:
            ProviderError: If the events cannot be listed
            StoreError: If a database operation fails
        """
        result = PullResult()
        async with self._store_guard("pull"):
            try:
                connection = await self._require_connection(user_id)
            except ConfigurationError as exc:
                logger.info(f"Skipping pull: {exc}")
                return result

            now = utcnow()
            time_min = now - timedelta(days=connection.sync_window_past_days)
            time_max = now + timedelta(days=connection.sync_window_future_days)
            try:
                remote_events = await self._call(
                    self.client.list_events(user_id, time_min, time_max)
                )
            except asyncio.TimeoutError as exc:
                raise ProviderError("Timed out listing Google events") from exc

            for remote in remote_events:
                try:
                    await self._pull_one(user_id, remote, result)
                except ValidationError as exc:
                    result.skipped += 1
                    result.errors.append(str(exc))
                    logger.warning(f"Skipping Google event {remote.id}: {exc}")

            await self.session.commit()

        logger.info(
            f"Pull for user {user_id}: {result.pulled} pulled, {result.updated} updated, "
            f"{result.deleted} deleted, {result.skipped} skipped"
        )
        return result

    async def _pull_one(self, user_id: int, remote: RemoteEvent, result: PullResult) -> None:
        mapping = await self.mappings.get_by_google_id(user_id, remote.id)

        if remote.is_cancelled:
            if mapping is not None:
                koda_event_id = mapping.koda_event_id
                await self.mappings.delete(mapping)
                await self.events.delete_by_id(koda_event_id)
                result.deleted += 1
            return

        event: Event | None = None
        if mapping is not None:
            if mapping.google_etag == remote.etag:
                return
            event = await self.events.get_by_id(mapping.koda_event_id)
            if event is None:
                # Local event vanished without its mapping; import it afresh
                await self.mappings.delete(mapping)
                mapping = None

        fields = remote_event_fields(remote)

        if mapping is None:
            event = await self.events.create(
                user_id,
                source=EventSource.GOOGLE,
                external_id=remote.id,
                sync_to_google=False,
                visibility=EventVisibility.PRIVATE,
                **fields,
            )
            await self.mappings.upsert(user_id, event.id, remote.id, remote.etag)
            result.pulled += 1
            return

        event = await self.events.update(event, **fields)
        await self.mappings.update(
            mapping, google_etag=remote.etag, last_pushed_at=event.updated_at
        )
        result.updated += 1

    async def push(self, user_id: int) -> PushResult:
        """Export locally authored events marked for Google.

        Raises:
            StoreError: If a database operation fails
        """
        result = PushResult()
        async with self._store_guard("push"):
            connection = await self.connections.get_by_user(user_id)
            if connection is None or not connection.push_enabled:
                logger.debug(f"Push disabled for user {user_id}")
                return result

            for event, mapping in await self.mappings.get_push_candidates(user_id):
                if mapping is not None and not self._changed_since_push(event, mapping):
                    continue
                try:
                    await self._push_one(user_id, event, mapping, result)
                except asyncio.TimeoutError:
                    result.skipped += 1
                    result.errors.append(f"Timed out pushing event {event.id}")
                    logger.warning(f"Timed out pushing event {event.id} for user {user_id}")
                except ProviderError as exc:
                    result.failed += 1
                    result.errors.append(f"Event {event.id}: {exc}")
                    logger.warning(f"Failed to push event {event.id} for user {user_id}: {exc}")

            for mapping in await self.mappings.get_unpushed(user_id):
                try:
                    await self._call(self.client.delete_event(user_id, mapping.google_event_id))
                except asyncio.TimeoutError:
                    result.skipped += 1
                    result.errors.append(f"Timed out removing Google event {mapping.google_event_id}")
                    continue
                except ProviderError as exc:
                    result.failed += 1
                    result.errors.append(f"Google event {mapping.google_event_id}: {exc}")
                    logger.warning(f"Failed to remove Google event {mapping.google_event_id}: {exc}")
                    continue
                await self.mappings.delete(mapping)
                await self.session.commit()
                result.removed += 1

        logger.info(
            f"Push for user {user_id}: {result.pushed} pushed, {result.updated} updated, "
            f"{result.removed} removed, {result.failed} failed"
        )
        return result

    @staticmethod
    def _changed_since_push(event: Event, mapping: GoogleEventMapping) -> bool:
        if mapping.last_pushed_at is None:
            return True
        return ensure_utc(event.updated_at) > ensure_utc(mapping.last_pushed_at)

    async def _push_one(
        self,
        user_id: int,
        event: Event,
        mapping: GoogleEventMapping | None,
        result: PushResult,
    ) -> None:
        body = to_google_body(event)
        if mapping is None:
            remote = await self._call(self.client.insert_event(user_id, body))
            await self.mappings.upsert(
                user_id, event.id, remote.id, remote.etag, last_pushed_at=utcnow()
            )
            result.pushed += 1
        else:
            remote = await self._call(
                self.client.update_event(user_id, mapping.google_event_id, body)
            )
            await self.mappings.update(
                mapping, google_etag=remote.etag, last_pushed_at=utcnow()
            )
            result.updated += 1
        # The Google side effect already happened; persist the mapping now
        await self.session.commit()

    async def sync_all(self, user_id: int) -> SyncSummary:
        """Pull, then push, then record the sync on the connection.

        Raises:
            SyncInProgressException: If a sync for the user is already running
            ProviderError: If Google events cannot be listed
            StoreError: If a database operation fails
        """
        async with user_sync_lock(user_id, self.session.bind):
            async with self._store_guard("sync"):
                connection = await self.connections.get_by_user(user_id)
            if connection is None:
                logger.info(f"Skipping sync: user {user_id} has not connected Google Calendar")
                return SyncSummary()

            try:
                pull = await self.pull(user_id)
                push = await self.push(user_id)
            except ProviderError as exc:
                async with self._store_guard("sync status"):
                    await self.connections.upsert(
                        user_id,
                        last_sync_status="failed",
                        last_sync_error=str(exc),
                        last_sync_error_count=1,
                        last_sync_failed_at=utcnow(),
                    )
                    await self.session.commit()
                logger.error(f"Sync failed for user {user_id}: {exc}")
                raise

            summary = SyncSummary.merge(pull, push)
            error_count = summary.failed + summary.skipped
            status_values: dict[str, Any] = {
                "last_synced_at": utcnow(),
                "last_sync_status": "ok" if summary.failed == 0 else "failed",
                "last_sync_error": summary.errors[0] if summary.errors else None,
                "last_sync_error_count": error_count,
            }
            if summary.failed:
                status_values["last_sync_failed_at"] = status_values["last_synced_at"]

            async with self._store_guard("sync status"):
                await self.connections.upsert(user_id, **status_values)
                await self.session.commit()

        logger.info(f"Sync for user {user_id} complete: {summary.changes}, {error_count} errors")
        return summary
