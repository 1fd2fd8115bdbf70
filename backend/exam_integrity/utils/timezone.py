"""
Time helpers.

Timestamps are stored as naive UTC. Local time is only used when a
human-readable message is rendered.
"""
from datetime import datetime, timedelta
from typing import Optional

import pytz

from ..core.config import settings


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the storage format."""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def to_aware_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.UTC).replace(tzinfo=None)


def format_local_time(dt: datetime, format_str: Optional[str] = None, tz_name: Optional[str] = None) -> str:
    """Render a stored UTC timestamp in the configured display timezone."""
    local_tz = pytz.timezone(tz_name or settings.default_timezone)
    return to_aware_utc(dt).astimezone(local_tz).strftime(format_str or settings.display_time_format)
