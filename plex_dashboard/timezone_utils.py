"""
Display timezone helpers shared by the formatters and the app.
"""

import os
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = 'America/Los_Angeles'


def get_local_timezone() -> ZoneInfo:
    """Return the configured timezone (TZ env) or default to America/Los_Angeles."""
    tz_name = os.environ.get('TZ', DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except Exception:
        return ZoneInfo(DEFAULT_TIMEZONE)


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to the display timezone, treating naive values as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(get_local_timezone())
