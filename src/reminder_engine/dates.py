"""
Calendar helpers and the ``parse_date`` collaborator.

``parse_date`` is a pure function: an ordered list of parse attempts, first
match wins, ``None`` when the text is unparseable.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from datetime import timezone as fixed_zone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

# Order matters: month-first wins over day-first for ambiguous values.
DATE_FORMATS = (
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
)

MARKER_FORMAT = "%d %b %Y, %I:%M %p"

# tzname() is a letter abbreviation ("IST") or, for zones without one, an offset ("+04", "-0330").
_TRAILING_ZONE = re.compile(r"\s+([A-Z]{2,5}|[+-]\d{2}(?::?\d{2})?)$")

DateParser = Callable[[str], Optional[date]]


def _try_iso(text: str, timezone: Optional[str] = None) -> Optional[date]:
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if timezone and parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(timezone))
    return parsed.date()


def _try_format(fmt: str) -> Callable[[str], Optional[date]]:
    def attempt(text: str) -> Optional[date]:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            return None

    return attempt


def _split_marker(text: str) -> tuple[str, Optional[str]]:
    match = _TRAILING_ZONE.search(text)
    if match is None:
        return text, None
    return text[: match.start()], match.group(1)


def _try_marker(text: str) -> Optional[date]:
    body, _ = _split_marker(text)
    try:
        return datetime.strptime(body, MARKER_FORMAT).date()
    except ValueError:
        return None


PARSE_ATTEMPTS: tuple[Callable[[str], Optional[date]], ...] = (
    *(_try_format(fmt) for fmt in DATE_FORMATS),
    _try_marker,
)


def parse_date(text: Optional[str], timezone: Optional[str] = None) -> Optional[date]:
    """Parse free-form sheet text into a calendar date, or ``None``.

    Offset-aware ISO datetimes are converted to ``timezone`` (when given)
    before the date is taken.
    """
    if not text or not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    result = _try_iso(trimmed, timezone)
    if result is not None:
        return result
    for attempt in PARSE_ATTEMPTS:
        result = attempt(trimmed)
        if result is not None:
            return result
    return None


def parse_marker(text: Optional[str], timezone: str) -> Optional[datetime]:
    """Aware instant of a last-action marker, or ``None`` if ``text`` is not one.

    A numeric offset suffix is honoured as written; otherwise the local time
    is read in ``timezone``, the zone the marker was written in.
    """
    if not text or not isinstance(text, str):
        return None
    body, zone = _split_marker(text.strip())
    try:
        local = datetime.strptime(body, MARKER_FORMAT)
    except ValueError:
        return None
    if zone is not None and zone[0] in "+-":
        digits = zone[1:].replace(":", "")
        offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:] or 0))
        return local.replace(tzinfo=fixed_zone(-offset if zone[0] == "-" else offset))
    return local.replace(tzinfo=ZoneInfo(timezone))


def today_in(timezone: str, now: Optional[datetime] = None) -> date:
    """Calendar date of ``now`` (default: current instant) in ``timezone``."""
    tz = ZoneInfo(timezone)
    now = now.astimezone(tz) if now is not None else datetime.now(tz)
    return now.date()


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def overdue_days(due: date, today: date) -> int:
    """Whole days past due: 0 = due today, positive = overdue, negative = future."""
    return (today - due).days


def format_marker(now: datetime, timezone: str) -> str:
    """Last-action marker, e.g. ``25 Feb 2026, 02:30 PM IST``."""
    local = now.astimezone(ZoneInfo(timezone))
    return f"{local.strftime(MARKER_FORMAT)} {local.tzname()}"


def format_human(day: Optional[date]) -> str:
    if day is None:
        return "N/A"
    return day.strftime("%d %b %Y")
