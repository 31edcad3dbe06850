"""Pure field mapping between local events and Google Calendar events."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from koda.core.exceptions import ValidationError
from koda.core.timeutils import ensure_utc
from koda.src.events.models import Event
from koda.src.google_sync.schemas import EventDateTime, RemoteEvent

DEFAULT_TITLE = "(No title)"


def _zone(name: str | None) -> timezone | ZoneInfo:
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def _local_date(instant: datetime, tz_name: str) -> date:
    return ensure_utc(instant).astimezone(_zone(tz_name)).date()


def to_google_body(event: Event) -> dict[str, Any]:
    """Build the Google event resource for a local event."""
    if event.is_all_day:
        start_date = _local_date(event.start_at, event.timezone)
        end_date = _local_date(event.end_at, event.timezone)
        # Google all-day end dates are exclusive
        if end_date <= start_date:
            end_date = start_date + timedelta(days=1)
        start = {"date": start_date.isoformat()}
        end = {"date": end_date.isoformat()}
    else:
        start = {
            "dateTime": ensure_utc(event.start_at).isoformat(),
            "timeZone": event.timezone,
        }
        end = {
            "dateTime": ensure_utc(event.end_at).isoformat(),
            "timeZone": event.timezone,
        }

    return {
        "summary": event.title,
        "description": event.description,
        "location": event.location_name,
        "start": start,
        "end": end,
    }


def _resolve(boundary: EventDateTime | None, which: str, event_id: str) -> tuple[datetime, bool]:
    """Turn a Google start/end into an aware instant and an all-day flag."""
    if boundary is None:
        raise ValidationError(f"Google event {event_id} has no {which}")
    if boundary.date_time is not None:
        value = boundary.date_time
        if value.tzinfo is None:
            value = value.replace(tzinfo=_zone(boundary.time_zone))
        return ensure_utc(value), False
    if boundary.date is not None:
        return datetime.combine(boundary.date, time.min, tzinfo=timezone.utc), True
    raise ValidationError(f"Google event {event_id} {which} has neither dateTime nor date")


def remote_event_fields(remote: RemoteEvent) -> dict[str, Any]:
    """Local event fields copied from a Google event.

    Raises:
        ValidationError: If start or end is missing or the range is inverted
    """
    start_at, start_all_day = _resolve(remote.start, "start", remote.id)
    end_at, _ = _resolve(remote.end, "end", remote.id)
    if end_at < start_at:
        raise ValidationError(f"Google event {remote.id} ends before it starts")

    tz_name = (remote.start.time_zone if remote.start else None) or "UTC"
    return {
        "title": (remote.summary or "").strip() or DEFAULT_TITLE,
        "description": remote.description,
        "location_name": remote.location,
        "start_at": start_at,
        "end_at": end_at,
        "timezone": tz_name,
        "is_all_day": start_all_day,
    }
