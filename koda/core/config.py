from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    PROJECT_NAME: str = "Koda API"
    DATABASE_URL: str = "sqlite+aiosqlite:///./koda.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # JWT Settings
    JWT_SECRET: str = "change-me"  # Change in production
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION: int = 30  # minutes

    # Google Calendar
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REQUEST_TIMEOUT_SECONDS: float = 15.0

    # Discover
    TICKETMASTER_API_KEY: str | None = None
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org"
    OVERPASS_URL: str = "https://overpass-api.de/api/interpreter"
    OSM_USER_AGENT: str = "koda-api/0.1"
    DISCOVER_CACHE_TTL_SECONDS: int = 900
    DISCOVER_REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Suggestion cache backend
    CACHE_BACKEND: Literal["memory", "upstash"] = "memory"
    UPSTASH_REDIS_REST_URL: str | None = None
    UPSTASH_REDIS_REST_TOKEN: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
