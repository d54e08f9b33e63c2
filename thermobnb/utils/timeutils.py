"""Date and clock helpers shared by the planner and the token store"""

from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention for every timestamp"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive input is assumed UTC already"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_clock(value: Optional[str], default: Optional[time] = None) -> Optional[time]:
    """
    Parse an "HH:MM" (or "HH:MM:SS") clock string.

    Missing or non-numeric parts fall back to 0, so "14" gives 14:00. Returns
    `default` when the value is empty or cannot be read at all.
    """
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        return default

    parts = text.split(":")
    try:
        hour = int(parts[0])
        minute = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        return default

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return default
    return time(hour, minute)


def parse_booking_datetime(value: Optional[str], tz: ZoneInfo) -> Optional[datetime]:
    """
    Parse a booking-engine date or datetime into an aware local datetime.

    Accepts "YYYY-MM-DD", "YYYY-MM-DD HH:MM[:SS]" and ISO-8601 with or without
    offset. Values without an offset are read in `tz`; a bare date means local
    midnight.
    """
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(text[:10]), time(0, 0))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)
