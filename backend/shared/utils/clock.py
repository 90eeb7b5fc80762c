"""
Timestamp helpers.

All persisted instants are timezone-aware UTC. SQLite hands back naive
datetimes, so readers normalize through ensure_utc before comparing.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from shared.config.settings import settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def venue_local(value: datetime, tz_name: str | None = None) -> datetime:
    """Express an instant in the venue's wall-clock time."""
    return ensure_utc(value).astimezone(ZoneInfo(tz_name or settings.venue_timezone))
