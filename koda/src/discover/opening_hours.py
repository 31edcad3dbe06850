"""Evaluate OpenStreetMap ``opening_hours`` values.

Supports the common subset: ``24/7``, weekday selectors (``Mo-Fr``,
``Sa,Su``, wrapping ranges like ``Fr-Mo``), one or more time ranges per
rule, ranges past midnight, and ``off``/``closed``. Later rules override
earlier ones for the days they name, and days no rule names are closed.
Anything else (public holidays, months, sunrise/sunset, comments) makes the
value unknown.
"""

import re
from datetime import datetime

from koda.src.discover.schemas import OpenState

DAYS = ["Mo", "Tu", "We", "Th", "Fr", "Sa", "Su"]
MINUTES_PER_DAY = 24 * 60

_DAY_SELECTOR = re.compile(r"^(Mo|Tu|We|Th|Fr|Sa|Su)(-(Mo|Tu|We|Th|Fr|Sa|Su))?(,(Mo|Tu|We|Th|Fr|Sa|Su)(-(Mo|Tu|We|Th|Fr|Sa|Su))?)*$")
_TIME_RANGE = re.compile(r"^(\d{1,2}):(\d{2})-(\d{1,2}):(\d{2})$")


class OpeningHoursError(ValueError):
    """The value uses syntax outside the supported subset."""


def _parse_days(selector: str) -> list[int]:
    days: list[int] = []
    for part in selector.split(","):
        if "-" in part:
            first, last = (DAYS.index(d) for d in part.split("-"))
            span = (last - first) % 7
            days.extend((first + offset) % 7 for offset in range(span + 1))
        else:
            days.append(DAYS.index(part))
    return days


def _parse_times(times: str) -> list[tuple[int, int]]:
    if times.lower() in ("off", "closed"):
        return []
    intervals = []
    for part in times.split(","):
        match = _TIME_RANGE.match(part.strip())
        if not match:
            raise OpeningHoursError(f"Unsupported time range: {part!r}")
        h1, m1, h2, m2 = (int(g) for g in match.groups())
        if h1 > 24 or h2 > 48 or m1 > 59 or m2 > 59:
            raise OpeningHoursError(f"Invalid time range: {part!r}")
        start = h1 * 60 + m1
        end = h2 * 60 + m2
        if end <= start:
            end += MINUTES_PER_DAY
        intervals.append((start, end))
    return intervals


def parse(value: str) -> dict[int, list[tuple[int, int]]]:
    """Parse into weekday (0=Monday) → open intervals in minutes.

    Raises:
        OpeningHoursError: If the value is outside the supported subset
    """
    schedule: dict[int, list[tuple[int, int]]] = {}
    for rule in value.split(";"):
        rule = rule.strip()
        if not rule:
            continue
        head, _, rest = rule.partition(" ")
        if _DAY_SELECTOR.match(head):
            days = _parse_days(head)
            times = rest.strip() or "00:00-24:00"
        else:
            days = list(range(7))
            times = rule
        intervals = _parse_times(times)
        for day in days:
            schedule[day] = intervals
    if not schedule:
        raise OpeningHoursError("Empty opening_hours")
    return schedule


def open_state(value: str | None, at: datetime) -> OpenState:
    """Whether a place with these opening hours is open at ``at`` (wall-clock)."""
    if not value or not value.strip():
        return OpenState.UNKNOWN
    if value.strip() == "24/7":
        return OpenState.OPEN
    try:
        schedule = parse(value)
    except OpeningHoursError:
        return OpenState.UNKNOWN

    weekday = at.weekday()
    minute = at.hour * 60 + at.minute
    for start, end in schedule.get(weekday, []):
        if start <= minute < end:
            return OpenState.OPEN
    # Ranges from the previous day that run past midnight
    for start, end in schedule.get((weekday - 1) % 7, []):
        if start <= minute + MINUTES_PER_DAY < end:
            return OpenState.OPEN
    return OpenState.CLOSED
