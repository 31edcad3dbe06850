import datetime as dt
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class EventDateTime(BaseModel):
    """Start or end of a Google event: a timed instant or an all-day date."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date_time: datetime | None = Field(default=None, alias="dateTime")
    date: dt.date | None = None
    time_zone: str | None = Field(default=None, alias="timeZone")


class RemoteEvent(BaseModel):
    """A Google Calendar event as returned by the API."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: EventDateTime | None = None
    end: EventDateTime | None = None
    etag: str | None = None
    updated: datetime | None = None
    status: str = "confirmed"

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"


class PullResult(BaseModel):
    """Counts from importing Google events."""
    pulled: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = []


class PushResult(BaseModel):
    """Counts from exporting local events to Google."""
    pushed: int = 0
    updated: int = 0
    removed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = []


class SyncSummary(BaseModel):
    """Merged result of a pull followed by a push."""
    pulled: int = 0
    updated: int = 0
    deleted: int = 0
    pushed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = []

    @classmethod
    def merge(cls, pull: PullResult, push: PushResult) -> "SyncSummary":
        return cls(
            pulled=pull.pulled,
            updated=pull.updated + push.updated,
            deleted=pull.deleted + push.removed,
            pushed=push.pushed,
            skipped=pull.skipped + push.skipped,
            failed=pull.failed + push.failed,
            errors=[*pull.errors, *push.errors],
        )

    @property
    def changes(self) -> dict[str, int]:
        """The four counters that must all be zero on an idempotent re-run."""
        return {
            "pulled": self.pulled,
            "updated": self.updated,
            "deleted": self.deleted,
            "pushed": self.pushed,
        }


class ConnectRequest(BaseModel):
    """Link a Google Calendar using tokens from the OAuth callback."""
    access_token: str
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    calendar_id: str = "primary"
    push_enabled: bool = False
    sync_window_past_days: int = Field(default=30, ge=0, le=365)
    sync_window_future_days: int = Field(default=90, ge=1, le=730)


class ConnectionSettingsUpdate(BaseModel):
    """Sync settings the user may change."""
    push_enabled: bool | None = None
    sync_window_past_days: int | None = Field(default=None, ge=0, le=365)
    sync_window_future_days: int | None = Field(default=None, ge=1, le=730)


class ConnectionStatusResponse(BaseModel):
    """Connection state, including the outcome of the last sync."""
    model_config = ConfigDict(from_attributes=True)

    connected: bool
    calendar_id: str | None = None
    push_enabled: bool = False
    sync_window_past_days: int | None = None
    sync_window_future_days: int | None = None
    last_synced_at: datetime | None = None
    last_sync_status: str | None = None
    last_sync_error: str | None = None
    last_sync_error_count: int = 0
    last_sync_failed_at: datetime | None = None


class SyncResponse(BaseModel):
    """Sync response model."""
    success: bool
    message: str
    result: SyncSummary | None = None


class DisconnectResponse(BaseModel):
    ok: bool
    removed_mappings: int
    removed_events: int
