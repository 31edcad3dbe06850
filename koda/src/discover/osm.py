"""Places from OpenStreetMap: Nominatim geocoding plus an Overpass search."""

from typing import Any

import httpx

from koda.core.config import settings
from koda.core.logging import get_logger
from koda.src.discover.opening_hours import open_state
from koda.src.discover.schemas import (
    Confidence,
    OpenState,
    Suggestion,
    SuggestionQuery,
    SuggestionSource,
)

logger = get_logger(__name__)

METERS_PER_MILE = 1609.344
OVERPASS_TIMEOUT_SECONDS = 25
RESULT_LIMIT = 60

# Interest → OSM tag filter
INTEREST_TAGS: dict[str, tuple[str, str]] = {
    "cafe": ("amenity", "cafe"),
    "coffee": ("amenity", "cafe"),
    "bar": ("amenity", "bar"),
    "pub": ("amenity", "pub"),
    "restaurant": ("amenity", "restaurant"),
    "food": ("amenity", "restaurant"),
    "cinema": ("amenity", "cinema"),
    "movies": ("amenity", "cinema"),
    "theatre": ("amenity", "theatre"),
    "nightclub": ("amenity", "nightclub"),
    "library": ("amenity", "library"),
    "museum": ("tourism", "museum"),
    "gallery": ("tourism", "gallery"),
    "art": ("tourism", "gallery"),
    "park": ("leisure", "park"),
    "outdoors": ("leisure", "park"),
}
DEFAULT_INTERESTS = ["cafe", "restaurant", "museum", "park"]


def _tag_filters(interests: list[str]) -> list[tuple[str, str]]:
    filters: list[tuple[str, str]] = []
    for interest in interests or DEFAULT_INTERESTS:
        tag = INTEREST_TAGS.get(interest.strip().lower())
        if tag and tag not in filters:
            filters.append(tag)
    return filters


def build_overpass_query(
    lat: float, lon: float, radius_meters: int, filters: list[tuple[str, str]]
) -> str:
    selectors = "\n".join(
        f'  node["{key}"="{value}"]["name"](around:{radius_meters},{lat},{lon});'
        for key, value in filters
    )
    return (
        f"[out:json][timeout:{OVERPASS_TIMEOUT_SECONDS}];\n"
        f"(\n{selectors}\n);\n"
        f"out body {RESULT_LIMIT};"
    )


def _address(tags: dict[str, str]) -> str | None:
    street = " ".join(p for p in (tags.get("addr:housenumber"), tags.get("addr:street")) if p)
    return street or None


def _category(tags: dict[str, str]) -> str | None:
    for key in ("amenity", "tourism", "leisure"):
        if key in tags:
            return tags[key]
    return None


def _to_suggestion(element: dict[str, Any], query: SuggestionQuery) -> Suggestion | None:
    tags = element.get("tags", {})
    name = tags.get("name")
    if not name:
        return None

    state = open_state(tags.get("opening_hours"), query.local_slot_start())
    return Suggestion(
        source=SuggestionSource.OSM,
        title=name,
        external_id=f"osm-{element.get('type', 'node')}-{element['id']}",
        venue_name=name,
        address=_address(tags),
        url=tags.get("website"),
        category=_category(tags),
        is_open_at_time=state,
        confidence=Confidence.HIGH if state == OpenState.OPEN else Confidence.LOW,
        slot_start_at=query.slot_start,
        slot_end_at=query.slot_end,
    )


async def geocode_city(city: str, client: httpx.AsyncClient) -> tuple[float, float] | None:
    """Latitude and longitude of a city, or None if Nominatim does not know it."""
    response = await client.get(
        f"{settings.NOMINATIM_URL}/search",
        params={"q": city, "format": "json", "limit": 1},
        headers={"User-Agent": settings.OSM_USER_AGENT},
    )
    response.raise_for_status()
    results = response.json()
    if not results:
        return None
    return float(results[0]["lat"]), float(results[0]["lon"])


async def fetch_osm_places(
    query: SuggestionQuery, client: httpx.AsyncClient
) -> list[Suggestion]:
    """Named places matching the query's interests around the city.

    Raises:
        httpx.HTTPError: If Nominatim or Overpass cannot be reached or fail
    """
    filters = _tag_filters(query.interests)
    if not filters:
        logger.debug(f"No OSM tags for interests {query.interests}")
        return []

    location = await geocode_city(query.city, client)
    if location is None:
        logger.info(f"Could not geocode city {query.city!r}")
        return []

    lat, lon = location
    radius_meters = int(query.radius_miles * METERS_PER_MILE)
    response = await client.post(
        settings.OVERPASS_URL,
        data={"data": build_overpass_query(lat, lon, radius_meters, filters)},
        headers={"User-Agent": settings.OSM_USER_AGENT},
    )
    response.raise_for_status()

    elements = response.json().get("elements", [])
    suggestions = [s for s in (_to_suggestion(el, query) for el in elements) if s]
    logger.info(f"OSM returned {len(suggestions)} places for {query.city}")
    return suggestions
