"""Tests for importing Google Calendar events (Google → Koda)."""

import asyncio

import pytest
from sqlalchemy import select

from koda.core.exceptions import ProviderError
from koda.src.events.models import Event, EventSource, EventVisibility
from koda.src.google_sync.models import GoogleEventMapping
from koda.src.google_sync.service import GoogleSyncService


async def _events(session) -> list[Event]:
    result = await session.execute(select(Event).execution_options(populate_existing=True))
    return list(result.scalars().all())


async def _mappings(session) -> list[GoogleEventMapping]:
    result = await session.execute(
        select(GoogleEventMapping).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


class TestPull:
    """Pull behaviour for new, unchanged, changed and cancelled events."""

    @pytest.mark.asyncio
    async def test_imports_new_event_as_google_source_with_mapping(
        self, async_session, user, connection, google
    ):
        google.add_remote("g-event-1", summary="Team Standup")
        service = GoogleSyncService(async_session, google)

        result = await service.pull(user.id)

        assert (result.pulled, result.updated, result.deleted) == (1, 0, 0)
        [event] = await _events(async_session)
        assert event.owner_id == user.id
        assert event.title == "Team Standup"
        assert event.source == EventSource.GOOGLE
        assert event.external_id == "g-event-1"
        assert event.sync_to_google is False
        assert event.visibility == EventVisibility.PRIVATE

        [mapping] = await _mappings(async_session)
        assert mapping.koda_event_id == event.id
        assert mapping.google_event_id == "g-event-1"
        assert mapping.google_etag == google.events["g-event-1"]["etag"]

    @pytest.mark.asyncio
    async def test_unchanged_etag_is_a_no_op(self, async_session, user, connection, google):
        google.add_remote("g-event-1")
        service = GoogleSyncService(async_session, google)
        await service.pull(user.id)
        [event] = await _events(async_session)
        updated_at = event.updated_at

        second = await service.pull(user.id)

        assert (second.pulled, second.updated, second.deleted) == (0, 0, 0)
        [event] = await _events(async_session)
        assert event.updated_at == updated_at

    @pytest.mark.asyncio
    async def test_changed_etag_updates_event_and_mapping(
        self, async_session, user, connection, google
    ):
        google.add_remote("g-event-1", summary="Meeting")
        service = GoogleSyncService(async_session, google)
        await service.pull(user.id)

        google.edit_remote(
            "g-event-1",
            summary="Updated Meeting Title",
            start={"dateTime": "2026-11-03T10:00:00-05:00", "timeZone": "America/New_York"},
            end={"dateTime": "2026-11-03T11:00:00-05:00", "timeZone": "America/New_York"},
        )
        result = await service.pull(user.id)

        assert result.updated == 1
        assert result.pulled == 0
        [event] = await _events(async_session)
        assert event.title == "Updated Meeting Title"
        assert event.timezone == "America/New_York"
        [mapping] = await _mappings(async_session)
        assert mapping.google_etag == google.events["g-event-1"]["etag"]

    @pytest.mark.asyncio
    async def test_cancelled_event_with_mapping_is_deleted(
        self, async_session, user, connection, google
    ):
        google.add_remote("g-event-cancel")
        service = GoogleSyncService(async_session, google)
        await service.pull(user.id)

        google.cancel_remote("g-event-cancel")
        result = await service.pull(user.id)

        assert (result.pulled, result.updated, result.deleted) == (0, 0, 1)
        assert await _events(async_session) == []
        assert await _mappings(async_session) == []

    @pytest.mark.asyncio
    async def test_cancelled_event_without_mapping_is_ignored(
        self, async_session, user, connection, google
    ):
        google.add_remote("g-never-seen")
        google.cancel_remote("g-never-seen")

        result = await GoogleSyncService(async_session, google).pull(user.id)

        assert (result.pulled, result.updated, result.deleted) == (0, 0, 0)
        assert await _events(async_session) == []

    @pytest.mark.asyncio
    async def test_date_only_event_is_imported_as_all_day(
        self, async_session, user, connection, google
    ):
        google.add_remote(
            "g-all-day",
            summary="All Day Event",
            start={"date": "2026-11-10"},
            end={"date": "2026-11-11"},
        )

        result = await GoogleSyncService(async_session, google).pull(user.id)

        assert result.pulled == 1
        [event] = await _events(async_session)
        assert event.is_all_day is True
        assert event.start_at.date().isoformat() == "2026-11-10"

    @pytest.mark.asyncio
    async def test_event_without_times_is_skipped_not_fatal(
        self, async_session, user, connection, google
    ):
        google.add_remote("g-broken", start={}, end={})
        google.add_remote("g-good")

        result = await GoogleSyncService(async_session, google).pull(user.id)

        assert result.pulled == 1
        assert result.skipped == 1
        assert result.failed == 0
        assert "g-broken" in result.errors[0]

    @pytest.mark.asyncio
    async def test_no_connection_is_a_zero_count_no_op(self, async_session, user, google):
        result = await GoogleSyncService(async_session, google).pull(user.id)

        assert (result.pulled, result.updated, result.deleted) == (0, 0, 0)
        assert google.calls == []

    @pytest.mark.asyncio
    async def test_listing_failure_raises_provider_error(
        self, async_session, user, connection, google
    ):
        google.fail_listing = True

        with pytest.raises(ProviderError):
            await GoogleSyncService(async_session, google).pull(user.id)

    @pytest.mark.asyncio
    async def test_listing_timeout_raises_provider_error(
        self, async_session, user, connection, google
    ):
        async def slow_list(*args):
            await asyncio.sleep(1)
            return []

        google.list_events = slow_list

        with pytest.raises(ProviderError, match="Timed out"):
            await GoogleSyncService(async_session, google, timeout=0.01).pull(user.id)
