"""Merge, filter and deduplicate suggestions from all sources."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable

import httpx

from koda.core.config import settings
from koda.core.logging import get_logger
from koda.src.discover.cache import SuggestionCache
from koda.src.discover.osm import fetch_osm_places
from koda.src.discover.schemas import Confidence, OpenState, Suggestion, SuggestionQuery
from koda.src.discover.ticketmaster import fetch_ticketmaster_events

logger = get_logger(__name__)

Fetcher = Callable[[SuggestionQuery, httpx.AsyncClient], Awaitable[list[Suggestion]]]

DEFAULT_SOURCES: list[tuple[str, Fetcher]] = [
    ("ticketmaster", fetch_ticketmaster_events),
    ("osm", fetch_osm_places),
]


def filter_open(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Drop places closed during the slot; unknown hours get LOW confidence."""
    kept = []
    for suggestion in suggestions:
        if suggestion.is_open_at_time == OpenState.CLOSED:
            continue
        if suggestion.is_open_at_time == OpenState.UNKNOWN:
            suggestion = suggestion.model_copy(update={"confidence": Confidence.LOW})
        kept.append(suggestion)
    return kept


def _venue_key(suggestion: Suggestion) -> tuple[str, str] | None:
    venue = (suggestion.venue_name or "").strip().casefold()
    if not venue:
        return None
    return venue, suggestion.title.strip().casefold()


def deduplicate(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Keep the first suggestion of each entity, preserving order.

    Two suggestions are the same entity when they share a non-empty
    external id, or else the same venue and title. Keys of dropped
    duplicates are remembered too, so a chain of matches collapses into
    the first suggestion.
    """
    seen_ids: set[str] = set()
    seen_venues: set[tuple[str, str]] = set()
    unique = []
    for suggestion in suggestions:
        external_id = suggestion.external_id or None
        venue_key = _venue_key(suggestion)

        duplicate = (external_id is not None and external_id in seen_ids) or (
            venue_key is not None and venue_key in seen_venues
        )
        if external_id is not None:
            seen_ids.add(external_id)
        if venue_key is not None:
            seen_venues.add(venue_key)
        if not duplicate:
            unique.append(suggestion)
    return unique


def rank_suggestions(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Filter then deduplicate; input order is kept."""
    return deduplicate(filter_open(suggestions))


async def _fetch_source(
    name: str,
    fetcher: Fetcher,
    query: SuggestionQuery,
    client: httpx.AsyncClient,
    cache: SuggestionCache,
) -> list[Suggestion]:
    key = query.cache_key(name)
    cached = await cache.get(key)
    if cached is not None:
        logger.debug(f"Cache hit for {key}")
        return [Suggestion.model_validate(item) for item in cached]

    try:
        suggestions = await fetcher(query, client)
    except Exception as e:
        # One source failing only means fewer suggestions
        logger.warning(f"Suggestion source {name} failed: {e!r}")
        return []

    await cache.set(
        key,
        [s.model_dump(mode="json") for s in suggestions],
        settings.DISCOVER_CACHE_TTL_SECONDS,
    )
    return suggestions


async def fetch_and_rank_suggestions(
    query: SuggestionQuery,
    cache: SuggestionCache,
    client: httpx.AsyncClient | None = None,
    sources: list[tuple[str, Fetcher]] | None = None,
) -> list[Suggestion]:
    """Fetch all sources concurrently and rank the merged results."""
    sources = sources if sources is not None else DEFAULT_SOURCES
    if client is None:
        async with httpx.AsyncClient(timeout=settings.DISCOVER_REQUEST_TIMEOUT_SECONDS) as owned:
            return await fetch_and_rank_suggestions(query, cache, owned, sources)

    results = await asyncio.gather(
        *(_fetch_source(name, fetcher, query, client, cache) for name, fetcher in sources)
    )
    merged = [suggestion for batch in results for suggestion in batch]
    ranked = rank_suggestions(merged)
    logger.info(
        f"Ranked {len(ranked)} of {len(merged)} suggestions for {query.city}"
    )
    return ranked
