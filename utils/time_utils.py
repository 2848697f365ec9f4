"""
Time helpers.

All "today" and "now" values used for order dates are taken in the
application time zone, never the server's local zone.
"""

from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from config import settings

Clock = Callable[[], datetime]


def app_timezone() -> ZoneInfo:
    return ZoneInfo(settings.app_timezone)


def now_in_app_tz() -> datetime:
    """Current aware datetime in the application time zone."""
    return datetime.now(timezone.utc).astimezone(app_timezone())


def to_app_tz(value: datetime) -> datetime:
    """
    Convert to the application time zone.

    Naive datetimes are assumed to already be wall-clock time in the
    application zone.
    """
    tz = app_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def utc_now_iso() -> str:
    """Timestamp string for last_updated / processed_at columns."""
    return datetime.now(timezone.utc).isoformat()
