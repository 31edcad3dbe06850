"""Google Calendar v3 REST client."""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx
from fastapi import Depends
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.config import settings
from koda.core.database import get_session
from koda.core.exceptions import ProviderError
from koda.core.logging import get_logger
from koda.core.timeutils import ensure_utc, utcnow
from koda.src.google_sync.models import GoogleCalendarConnection
from koda.src.google_sync.repository import ConnectionRepository
from koda.src.google_sync.schemas import RemoteEvent

logger = get_logger(__name__)

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
MAX_PAGE_SIZE = 250
# Refresh slightly early so a token does not expire mid-sync
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)


def _rfc3339(value: datetime) -> str:
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"HTTP {response.status_code}: {error['message']}"
    return f"HTTP {response.status_code}"


def _remote_event(payload: dict) -> RemoteEvent:
    try:
        return RemoteEvent.model_validate(payload)
    except PydanticValidationError as exc:
        raise ProviderError(f"Google Calendar API returned a malformed event: {exc}") from exc


class GoogleCalendarClient:
    """Lists, inserts, updates and deletes events on a user's Google Calendar.

    Credentials and the calendar id come from the user's
    ``GoogleCalendarConnection``; a refreshed access token is written back to
    it in the caller's session.
    """

    def __init__(
        self,
        session: AsyncSession,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.connections = ConnectionRepository(session)
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=settings.GOOGLE_REQUEST_TIMEOUT_SECONDS
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "GoogleCalendarClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _connection(self, user_id: int) -> GoogleCalendarConnection:
        connection = await self.connections.get_by_user(user_id)
        if connection is None:
            raise ProviderError(f"User {user_id} has no Google Calendar connection")
        return connection

    async def _refresh_access_token(self, connection: GoogleCalendarConnection) -> str:
        if not (
            connection.refresh_token
            and settings.GOOGLE_CLIENT_ID
            and settings.GOOGLE_CLIENT_SECRET
        ):
            raise ProviderError("Google access token expired and cannot be refreshed", 401)

        try:
            response = await self._http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "refresh_token": connection.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Google token refresh failed: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(
                f"Google token refresh failed: {_error_message(response)}",
                response.status_code,
            )

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise ProviderError("Google token refresh returned no access_token")

        expires_in = int(payload.get("expires_in", 3600))
        await self.connections.store_access_token(
            connection, access_token, utcnow() + timedelta(seconds=expires_in)
        )
        logger.info(f"Refreshed Google access token for user {connection.user_id}")
        return access_token

    async def _access_token(self, user_id: int, force_refresh: bool = False) -> str:
        connection = await self._connection(user_id)
        expires_at = connection.token_expires_at
        expired = (
            expires_at is not None
            and ensure_utc(expires_at) <= utcnow() + TOKEN_EXPIRY_MARGIN
        )
        if connection.access_token and not expired and not force_refresh:
            return connection.access_token
        return await self._refresh_access_token(connection)

    async def _request(
        self,
        user_id: int,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{GOOGLE_CALENDAR_API_BASE_URL}{path}"
        response = await self._send(user_id, method, url, params, json_body, False)
        if response.status_code == 401:
            response = await self._send(user_id, method, url, params, json_body, True)
        return response

    async def _send(
        self,
        user_id: int,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
        force_refresh: bool,
    ) -> httpx.Response:
        access_token = await self._access_token(user_id, force_refresh=force_refresh)
        try:
            return await self._http.request(
                method,
                url,
                params=params,
                json=json_body,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Google Calendar request failed: {exc}") from exc

    async def _request_json(self, user_id: int, method: str, path: str, **kwargs: Any) -> dict:
        response = await self._request(user_id, method, path, **kwargs)
        if not 200 <= response.status_code < 300:
            raise ProviderError(_error_message(response), response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Google Calendar API returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise ProviderError("Google Calendar API returned an unexpected payload")
        return payload

    async def _events_path(self, user_id: int, event_id: str | None = None) -> str:
        connection = await self._connection(user_id)
        path = f"/calendars/{quote(connection.calendar_id, safe='')}/events"
        if event_id is not None:
            path = f"{path}/{quote(event_id, safe='')}"
        return path

    async def list_events(
        self, user_id: int, time_min: datetime, time_max: datetime
    ) -> list[RemoteEvent]:
        """List events in a window, including cancelled ones, across all pages."""
        path = await self._events_path(user_id)
        params: dict[str, Any] = {
            "singleEvents": "true",
            "showDeleted": "true",
            "maxResults": MAX_PAGE_SIZE,
            "timeMin": _rfc3339(time_min),
            "timeMax": _rfc3339(time_max),
        }

        events: list[RemoteEvent] = []
        while True:
            payload = await self._request_json(user_id, "GET", path, params=params)
            for item in payload.get("items", []):
                try:
                    events.append(RemoteEvent.model_validate(item))
                except PydanticValidationError as exc:
                    logger.warning(f"Ignoring malformed Google event for user {user_id}: {exc}")
            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}

        logger.debug(f"Listed {len(events)} Google events for user {user_id}")
        return events

    async def insert_event(self, user_id: int, body: dict[str, Any]) -> RemoteEvent:
        """Create an event and return it with its new id and etag."""
        path = await self._events_path(user_id)
        payload = await self._request_json(user_id, "POST", path, json_body=body)
        return _remote_event(payload)

    async def update_event(
        self, user_id: int, google_event_id: str, body: dict[str, Any]
    ) -> RemoteEvent:
        """Replace an event and return it with its new etag."""
        path = await self._events_path(user_id, google_event_id)
        payload = await self._request_json(user_id, "PUT", path, json_body=body)
        return _remote_event(payload)

    async def delete_event(self, user_id: int, google_event_id: str) -> None:
        """Delete an event. An event that is already gone counts as deleted."""
        path = await self._events_path(user_id, google_event_id)
        response = await self._request(user_id, "DELETE", path)
        if response.status_code in (404, 410):
            logger.debug(f"Google event {google_event_id} already deleted")
            return
        if not 200 <= response.status_code < 300:
            raise ProviderError(_error_message(response), response.status_code)


async def get_google_client(
    session: AsyncSession = Depends(get_session),
) -> AsyncGenerator[GoogleCalendarClient, None]:
    """Provide a Google Calendar client bound to the request's session."""
    async with GoogleCalendarClient(session) as client:
        yield client
