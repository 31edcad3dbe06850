"""HTTP tests for the API routers."""

from datetime import timedelta

import httpx
import pytest

from conftest import add_user, befriend, make_event
from koda.core.database import get_session
from koda.core.security import create_access_token, get_current_user
from koda.core.timeutils import utcnow
from koda.main import app
from koda.src.discover import ranking
from koda.src.discover.cache import InMemoryCache, get_suggestion_cache
from koda.src.discover.schemas import OpenState, Suggestion, SuggestionSource
from koda.src.events.repository import AttendeeRepository
from koda.src.friends.service import FriendsService
from koda.src.google_sync.client import get_google_client


@pytest.fixture
async def api(session_factory, user, google):
    async def override_session():
        async with session_factory() as session:
            yield session

    async def override_google_client():
        yield google

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_google_client] = override_google_client
    cache = InMemoryCache()
    app.dependency_overrides[get_suggestion_cache] = lambda: cache

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def event_payload(**overrides) -> dict:
    start = utcnow().replace(microsecond=0) + timedelta(days=1)
    payload = {
        "title": "Coffee with Grace",
        "start_at": start.isoformat(),
        "end_at": (start + timedelta(hours=1)).isoformat(),
        "sync_to_google": True,
    }
    payload.update(overrides)
    return payload


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, api):
        response = await api.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAuth:
    @pytest.mark.asyncio
    async def test_me_with_bearer_token(self, api, user):
        del app.dependency_overrides[get_current_user]
        token = create_access_token({"sub": str(user.id)})

        response = await api.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["username"] == "ada"

    @pytest.mark.asyncio
    async def test_invalid_token_is_rejected(self, api):
        del app.dependency_overrides[get_current_user]

        response = await api.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_numeric_subject_is_rejected(self, api):
        del app.dependency_overrides[get_current_user]
        token = create_access_token({"sub": "not-a-number"})

        response = await api.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401


class TestEventRoutes:
    @pytest.mark.asyncio
    async def test_create_list_update(self, api, user):
        created = await api.post("/api/v1/events", json=event_payload())
        assert created.status_code == 201
        event = created.json()
        assert event["owner_id"] == user.id
        assert event["source"] == "KODA"

        listed = await api.get("/api/v1/events")
        assert listed.json()["count"] == 1

        patched = await api.patch(f"/api/v1/events/{event['id']}", json={"title": "Tea with Grace"})
        assert patched.status_code == 200
        assert patched.json()["title"] == "Tea with Grace"

    @pytest.mark.asyncio
    async def test_inverted_range_is_rejected(self, api):
        created = await api.post("/api/v1/events", json=event_payload())
        event_id = created.json()["id"]

        response = await api.patch(
            f"/api/v1/events/{event_id}",
            json={"end_at": (utcnow() - timedelta(days=30)).isoformat()},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["start_at", "title", "visibility"])
    async def test_null_for_required_field_is_rejected(self, api, field):
        created = await api.post("/api/v1/events", json=event_payload())
        event_id = created.json()["id"]

        response = await api.patch(f"/api/v1/events/{event_id}", json={field: None})

        assert response.status_code == 422
        assert (await api.get(f"/api/v1/events/{event_id}")).json()["title"] == "Coffee with Grace"

    @pytest.mark.asyncio
    async def test_description_can_be_cleared(self, api):
        created = await api.post("/api/v1/events", json=event_payload(description="Bring notes"))
        event_id = created.json()["id"]

        response = await api.patch(f"/api/v1/events/{event_id}", json={"description": None})

        assert response.status_code == 200
        assert response.json()["description"] is None

    @pytest.mark.asyncio
    async def test_unknown_event_is_404(self, api):
        response = await api.get("/api/v1/events/does-not-exist")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_removes_pushed_copy_from_google(self, api, connection, google):
        created = await api.post("/api/v1/events", json=event_payload())
        event_id = created.json()["id"]
        synced = await api.post("/api/v1/integrations/google/sync")
        assert synced.json()["result"]["pushed"] == 1
        [remote_id] = google.events

        response = await api.delete(f"/api/v1/events/{event_id}")

        assert response.status_code == 204
        assert ("delete", connection.user_id, remote_id) in google.calls
        assert (await api.get(f"/api/v1/events/{event_id}")).status_code == 404


class TestGoogleRoutes:
    @pytest.mark.asyncio
    async def test_status_when_not_connected(self, api):
        response = await api.get("/api/v1/integrations/google/status")

        assert response.json()["connected"] is False

    @pytest.mark.asyncio
    async def test_connect_sync_and_disconnect(self, api, google):
        google.add_remote("g-1", summary="Dentist")

        connected = await api.post(
            "/api/v1/integrations/google/connect",
            json={"access_token": "token", "push_enabled": True},
        )
        assert connected.status_code == 200
        assert connected.json()["connected"] is True

        synced = await api.post("/api/v1/integrations/google/sync")
        body = synced.json()
        assert body["success"] is True
        assert body["result"]["pulled"] == 1

        status = (await api.get("/api/v1/integrations/google/status")).json()
        assert status["last_sync_status"] == "ok"
        assert status["last_synced_at"] is not None

        disconnected = await api.post("/api/v1/integrations/google/disconnect")
        assert disconnected.json() == {"ok": True, "removed_mappings": 1, "removed_events": 1}

        again = await api.post("/api/v1/integrations/google/disconnect")
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_sync_failure_is_reported(self, api, connection, google):
        google.fail_listing = True

        response = await api.post("/api/v1/integrations/google/sync")

        assert response.status_code == 200
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_settings_update(self, api, connection):
        response = await api.patch(
            "/api/v1/integrations/google/settings", json={"push_enabled": False}
        )

        assert response.status_code == 200
        assert response.json()["push_enabled"] is False


class TestDiscoverRoutes:
    @pytest.mark.asyncio
    async def test_returns_ranked_suggestions(self, api, monkeypatch):
        async def source(query, client):
            return [
                Suggestion(
                    source=SuggestionSource.OSM,
                    title="Night Owl",
                    external_id="osm-node-1",
                    is_open_at_time=OpenState.OPEN,
                    slot_start_at=query.slot_start,
                    slot_end_at=query.slot_end,
                ),
                Suggestion(
                    source=SuggestionSource.OSM,
                    title="Closed Cafe",
                    external_id="osm-node-2",
                    is_open_at_time=OpenState.CLOSED,
                    slot_start_at=query.slot_start,
                    slot_end_at=query.slot_end,
                ),
            ]

        monkeypatch.setattr(ranking, "DEFAULT_SOURCES", [("osm", source)])

        response = await api.get(
            "/api/v1/discover/suggestions",
            params={
                "city": "Austin",
                "slot_start": "2026-11-06T19:00:00Z",
                "slot_end": "2026-11-06T22:00:00Z",
                "interests": "coffee, park",
            },
        )

        assert response.status_code == 200
        assert [s["title"] for s in response.json()] == ["Night Owl"]

    @pytest.mark.asyncio
    async def test_slot_must_end_after_it_starts(self, api):
        response = await api.get(
            "/api/v1/discover/suggestions",
            params={
                "city": "Austin",
                "slot_start": "2026-11-06T22:00:00Z",
                "slot_end": "2026-11-06T19:00:00Z",
            },
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_timezone_is_rejected(self, api):
        response = await api.get(
            "/api/v1/discover/suggestions",
            params={
                "city": "Austin",
                "slot_start": "2026-11-06T19:00:00Z",
                "slot_end": "2026-11-06T22:00:00Z",
                "timezone": "Mars/Olympus_Mons",
            },
        )

        assert response.status_code == 400


class TestFriendRoutes:
    @pytest.mark.asyncio
    async def test_feed_without_friends(self, api):
        response = await api.get("/api/v1/feed")

        assert response.status_code == 200
        assert response.json() == {"friends": []}

    @pytest.mark.asyncio
    async def test_stranger_calendar_is_empty(self, api, user):
        response = await api.get(f"/api/v1/friends/{user.id + 1}/calendar")

        assert response.status_code == 200
        assert response.json()["events"] == []

    @pytest.mark.asyncio
    async def test_request_accept_and_block(self, api, session_factory, user):
        async with session_factory() as session:
            grace = await add_user(session, "grace")
            alan = await add_user(session, "alan")
            request = await FriendsService(session).send_request(alan.id, user.id)

        sent = await api.post("/api/v1/friends/requests", json={"user_id": grace.id})
        assert sent.status_code == 201
        assert sent.json()["status"] == "PENDING"

        again = await api.post("/api/v1/friends/requests", json={"user_id": grace.id})
        assert again.status_code == 400

        accepted = await api.post(f"/api/v1/friends/requests/{request.id}/accept")
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "ACCEPTED"

        blocked = await api.post(f"/api/v1/blocks/{alan.id}")
        assert blocked.status_code == 204
        assert (await api.delete(f"/api/v1/blocks/{alan.id}")).status_code == 204


class TestAttendeeRoutes:
    @pytest.mark.asyncio
    async def test_rsvp_and_anonymity(self, api, session_factory, user):
        async with session_factory() as session:
            host = await add_user(session, "grace")
            event = await make_event(session, host.id)
            await AttendeeRepository(session).add(event.id, user.id)
            await session.commit()

        going = await api.post(f"/api/v1/events/{event.id}/rsvp", json={"status": "GOING"})
        assert going.status_code == 200
        assert going.json()["status"] == "GOING"

        hidden = await api.patch(
            f"/api/v1/events/{event.id}/anonymity", json={"anonymity": "ANONYMOUS"}
        )
        assert hidden.status_code == 200
        assert hidden.json()["user_id"] == user.id

        listed = await api.get(f"/api/v1/events/{event.id}/attendees")
        assert listed.status_code == 200
        assert [a["anonymity"] for a in listed.json()["attendees"]] == ["ANONYMOUS"]

    @pytest.mark.asyncio
    async def test_invited_is_not_an_answer(self, api):
        created = await api.post("/api/v1/events", json=event_payload())

        response = await api.post(
            f"/api/v1/events/{created.json()['id']}/rsvp", json={"status": "INVITED"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_confirm_slot(self, api, session_factory, user):
        async with session_factory() as session:
            grace = await add_user(session, "grace")
            await befriend(session, user, grace)
        start = utcnow().replace(microsecond=0) + timedelta(days=2)

        response = await api.post(
            "/api/v1/find-time/confirm",
            json={
                "title": "Team Lunch",
                "start_at": start.isoformat(),
                "end_at": (start + timedelta(hours=1)).isoformat(),
                "invitee_ids": [grace.id],
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["event"]["title"] == "Team Lunch"
        assert [(a["user_id"], a["role"], a["status"]) for a in body["attendees"]] == [
            (user.id, "HOST", "GOING"),
            (grace.id, "ATTENDEE", "INVITED"),
        ]


class TestMeRoutes:
    @pytest.mark.asyncio
    async def test_privacy_round_trip(self, api):
        patched = await api.patch(
            "/api/v1/me/privacy",
            json={"account_visibility": "PRIVATE", "default_detail_level": "DETAILS"},
        )
        assert patched.status_code == 200

        me = await api.get("/api/v1/me")

        assert me.status_code == 200
        assert me.json()["privacy"] == {
            "account_visibility": "PRIVATE",
            "default_detail_level": "DETAILS",
            "allow_suggestions": True,
        }

    @pytest.mark.asyncio
    async def test_taken_username_is_409(self, api, session_factory):
        async with session_factory() as session:
            await add_user(session, "grace")

        response = await api.patch("/api/v1/me/profile", json={"username": "grace"})

        assert response.status_code == 409
