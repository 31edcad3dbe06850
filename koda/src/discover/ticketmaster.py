"""Ticketed events from the Ticketmaster Discovery API."""

from datetime import datetime
from typing import Any

import httpx

from koda.core.config import settings
from koda.core.logging import get_logger
from koda.core.timeutils import ensure_utc
from koda.src.discover.schemas import (
    Confidence,
    OpenState,
    Suggestion,
    SuggestionQuery,
    SuggestionSource,
)

logger = get_logger(__name__)

TICKETMASTER_EVENTS_URL = "https://app.ticketmaster.com/discovery/v2/events.json"
PAGE_SIZE = 50


def _tm_datetime(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def _to_suggestion(item: dict[str, Any], query: SuggestionQuery) -> Suggestion | None:
    name = item.get("name")
    if not name:
        return None

    venues = item.get("_embedded", {}).get("venues") or [{}]
    venue = venues[0]
    address = venue.get("address", {}).get("line1")
    classifications = item.get("classifications") or [{}]
    category = classifications[0].get("segment", {}).get("name")

    return Suggestion(
        source=SuggestionSource.TICKETMASTER,
        title=name,
        external_id=f"tm-{item['id']}" if item.get("id") else None,
        venue_name=venue.get("name"),
        address=address,
        url=item.get("url"),
        category=category,
        # A scheduled event in the slot is happening then
        is_open_at_time=OpenState.OPEN,
        confidence=Confidence.HIGH,
        slot_start_at=query.slot_start,
        slot_end_at=query.slot_end,
    )


async def fetch_ticketmaster_events(
    query: SuggestionQuery, client: httpx.AsyncClient
) -> list[Suggestion]:
    """Events in the query's city and slot.

    Raises:
        httpx.HTTPError: If the API cannot be reached or answers with an error
    """
    if not settings.TICKETMASTER_API_KEY:
        logger.debug("Ticketmaster API key not configured, skipping")
        return []

    params: dict[str, Any] = {
        "apikey": settings.TICKETMASTER_API_KEY,
        "city": query.city,
        "radius": int(round(query.radius_miles)),
        "unit": "miles",
        "startDateTime": _tm_datetime(query.slot_start),
        "endDateTime": _tm_datetime(query.slot_end),
        "size": PAGE_SIZE,
        "sort": "date,asc",
    }
    if query.interests:
        params["classificationName"] = ",".join(query.interests)

    response = await client.get(TICKETMASTER_EVENTS_URL, params=params)
    response.raise_for_status()

    items = response.json().get("_embedded", {}).get("events", [])
    suggestions = [s for s in (_to_suggestion(item, query) for item in items) if s]
    logger.info(f"Ticketmaster returned {len(suggestions)} events for {query.city}")
    return suggestions
