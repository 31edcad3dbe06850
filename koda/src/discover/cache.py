"""Response cache for suggestion sources.

The backend is chosen once from settings and injected; nothing here reads
the environment at call time.
"""

import json
import time
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from koda.core.config import Settings, settings
from koda.core.logging import get_logger

logger = get_logger(__name__)


class SuggestionCache(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...


class InMemoryCache:
    """Process-local cache with per-entry expiry."""

    def __init__(self, clock=time.monotonic):
        self._entries: dict[str, tuple[str, float]] = {}
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(value)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = (json.dumps(value), self._clock() + ttl_seconds)


class UpstashCache:
    """Upstash Redis over its REST API. Failures are logged and read as misses."""

    def __init__(
        self,
        url: str,
        token: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 2.0,
    ):
        self.url = url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._http = http_client
        self.timeout = timeout

    async def _get(self, path: str) -> httpx.Response:
        if self._http is not None:
            return await self._http.get(f"{self.url}{path}", headers=self._headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(f"{self.url}{path}", headers=self._headers)

    async def get(self, key: str) -> Any | None:
        try:
            response = await self._get(f"/get/{quote(key, safe='')}")
        except httpx.HTTPError as e:
            logger.warning(f"Upstash get failed for {key}: {e}")
            return None
        if response.status_code != 200:
            logger.warning(f"Upstash get returned HTTP {response.status_code} for {key}")
            return None
        result = response.json().get("result")
        if result is None:
            return None
        return json.loads(result)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        serialized = quote(json.dumps(value), safe="")
        try:
            response = await self._get(
                f"/set/{quote(key, safe='')}/{serialized}/ex/{ttl_seconds}"
            )
        except httpx.HTTPError as e:
            logger.warning(f"Upstash set failed for {key}: {e}")
            return
        if response.status_code != 200:
            logger.warning(f"Upstash set returned HTTP {response.status_code} for {key}")


def build_cache(config: Settings = settings) -> SuggestionCache:
    """Create the cache backend named by ``CACHE_BACKEND``."""
    if config.CACHE_BACKEND == "upstash":
        if not (config.UPSTASH_REDIS_REST_URL and config.UPSTASH_REDIS_REST_TOKEN):
            raise ValueError(
                "CACHE_BACKEND=upstash requires UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN"
            )
        return UpstashCache(config.UPSTASH_REDIS_REST_URL, config.UPSTASH_REDIS_REST_TOKEN)
    return InMemoryCache()


_cache: SuggestionCache | None = None


def get_suggestion_cache() -> SuggestionCache:
    """FastAPI dependency returning the process-wide cache."""
    global _cache
    if _cache is None:
        _cache = build_cache(settings)
    return _cache
