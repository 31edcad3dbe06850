"""Tests for the Ticketmaster and OpenStreetMap suggestion sources."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from pydantic import ValidationError

from koda.core.config import settings
from koda.src.discover.osm import build_overpass_query, fetch_osm_places
from koda.src.discover.schemas import Confidence, OpenState, SuggestionQuery, SuggestionSource
from koda.src.discover.ticketmaster import fetch_ticketmaster_events

# Friday evening
SLOT_START = datetime(2026, 11, 6, 19, 0)
SLOT_END = datetime(2026, 11, 6, 22, 0)


def query(**overrides) -> SuggestionQuery:
    fields = {"city": "Austin", "slot_start": SLOT_START, "slot_end": SLOT_END}
    fields.update(overrides)
    return SuggestionQuery(**fields)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestTicketmaster:
    @pytest.mark.asyncio
    async def test_without_api_key_returns_nothing(self, monkeypatch):
        monkeypatch.setattr(settings, "TICKETMASTER_API_KEY", None)

        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            assert await fetch_ticketmaster_events(query(), client) == []

    @pytest.mark.asyncio
    async def test_maps_events(self, monkeypatch):
        monkeypatch.setattr(settings, "TICKETMASTER_API_KEY", "tm-key")

        def handler(request: httpx.Request) -> httpx.Response:
            params = request.url.params
            assert params["apikey"] == "tm-key"
            assert params["city"] == "Austin"
            assert params["startDateTime"] == "2026-11-06T19:00:00Z"
            assert params["classificationName"] == "music"
            return httpx.Response(200, json={
                "_embedded": {"events": [
                    {
                        "id": "G5v",
                        "name": "Jazz Night",
                        "url": "https://tm.example.com/G5v",
                        "_embedded": {"venues": [{"name": "Blue Door", "address": {"line1": "1 Main St"}}]},
                        "classifications": [{"segment": {"name": "Music"}}],
                    },
                    {"id": "nameless"},
                ]}
            })

        async with mock_client(handler) as client:
            [suggestion] = await fetch_ticketmaster_events(query(interests=["music"]), client)

        assert suggestion.source == SuggestionSource.TICKETMASTER
        assert suggestion.external_id == "tm-G5v"
        assert suggestion.venue_name == "Blue Door"
        assert suggestion.address == "1 Main St"
        assert suggestion.category == "Music"
        assert suggestion.is_open_at_time == OpenState.OPEN
        assert suggestion.confidence == Confidence.HIGH

    @pytest.mark.asyncio
    async def test_error_status_raises(self, monkeypatch):
        monkeypatch.setattr(settings, "TICKETMASTER_API_KEY", "tm-key")

        async with mock_client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await fetch_ticketmaster_events(query(), client)


class TestOsm:
    def test_overpass_query_lists_each_tag(self):
        text = build_overpass_query(30.27, -97.74, 1000, [("amenity", "cafe"), ("leisure", "park")])

        assert 'node["amenity"="cafe"]["name"](around:1000,30.27,-97.74);' in text
        assert 'node["leisure"="park"]["name"](around:1000,30.27,-97.74);' in text
        assert text.startswith("[out:json]")

    @pytest.mark.asyncio
    async def test_geocodes_then_searches(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.method)
            if request.method == "GET":
                assert request.url.params["q"] == "Austin"
                return httpx.Response(200, json=[{"lat": "30.27", "lon": "-97.74"}])
            assert b"amenity" in request.content
            return httpx.Response(200, json={"elements": [
                {"type": "node", "id": 1, "tags": {
                    "name": "Night Owl", "amenity": "cafe", "opening_hours": "Mo-Su 18:00-23:00",
                    "addr:housenumber": "5", "addr:street": "Elm St",
                }},
                {"type": "node", "id": 2, "tags": {
                    "name": "Morning Cafe", "amenity": "cafe", "opening_hours": "Mo-Fr 07:00-11:00",
                }},
                {"type": "node", "id": 3, "tags": {"name": "Zilker Park", "leisure": "park"}},
                {"type": "node", "id": 4, "tags": {"amenity": "cafe"}},
            ]})

        async with mock_client(handler) as client:
            places = await fetch_osm_places(query(interests=["coffee", "park"]), client)

        assert seen == ["GET", "POST"]
        by_id = {p.external_id: p for p in places}
        assert set(by_id) == {"osm-node-1", "osm-node-2", "osm-node-3"}
        assert by_id["osm-node-1"].is_open_at_time == OpenState.OPEN
        assert by_id["osm-node-1"].confidence == Confidence.HIGH
        assert by_id["osm-node-1"].address == "5 Elm St"
        assert by_id["osm-node-2"].is_open_at_time == OpenState.CLOSED
        assert by_id["osm-node-3"].is_open_at_time == OpenState.UNKNOWN
        assert by_id["osm-node-3"].confidence == Confidence.LOW
        assert by_id["osm-node-3"].category == "park"

    @pytest.mark.asyncio
    async def test_unknown_city_returns_nothing(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            return httpx.Response(200, json=[])

        async with mock_client(handler) as client:
            assert await fetch_osm_places(query(city="Nowhere"), client) == []

    @pytest.mark.asyncio
    async def test_unmapped_interests_skip_the_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            assert await fetch_osm_places(query(interests=["skydiving"]), client) == []


class TestVenueTimezone:
    """Opening hours are wall-clock times at the venue."""

    # Friday 19:00 in Austin is 01:00 UTC on Saturday
    UTC_START = datetime(2026, 11, 7, 1, 0, tzinfo=timezone.utc)

    def test_slot_is_converted_to_the_venue_zone(self):
        local = query(
            slot_start=self.UTC_START,
            slot_end=self.UTC_START + timedelta(hours=3),
            timezone="America/Chicago",
        ).local_slot_start()

        assert (local.weekday(), local.hour) == (4, 19)

    def test_without_zone_the_slot_offset_is_used(self):
        local = query(
            slot_start=self.UTC_START, slot_end=self.UTC_START + timedelta(hours=3)
        ).local_slot_start()

        assert local == self.UTC_START

    def test_unknown_zone_is_invalid(self):
        with pytest.raises(ValidationError):
            query(timezone="Mars/Olympus_Mons")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "zone, expected", [("America/Chicago", OpenState.OPEN), (None, OpenState.CLOSED)]
    )
    async def test_open_state_uses_the_venue_zone(self, zone, expected):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json=[{"lat": "30.27", "lon": "-97.74"}])
            return httpx.Response(200, json={"elements": [
                {"type": "node", "id": 1, "tags": {
                    "name": "Night Owl", "amenity": "cafe", "opening_hours": "Mo-Fr 18:00-23:00",
                }},
            ]})

        slot = query(
            interests=["coffee"],
            slot_start=self.UTC_START,
            slot_end=self.UTC_START + timedelta(hours=3),
            timezone=zone,
        )
        async with mock_client(handler) as client:
            [suggestion] = await fetch_osm_places(slot, client)

        assert suggestion.is_open_at_time == expected
        assert suggestion.slot_start_at == self.UTC_START
