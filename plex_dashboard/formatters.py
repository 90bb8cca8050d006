"""
Field formatters used by the template engine and the response assemblers.

Upstream fields are not consistent about units: timestamps arrive as unix
seconds, unix milliseconds or ISO strings, and durations as seconds or
milliseconds. The thresholds below decide which unit a bare number is in and
must stay as they are, since stored templates rely on the current output.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from plex_dashboard.timezone_utils import to_local
from plex_dashboard.utils import pad_two

logger = logging.getLogger(__name__)

# Numbers below this are unix seconds, anything else is milliseconds
TIMESTAMP_SECONDS_LIMIT = 4294967296

# Durations below this are seconds, anything else is milliseconds
DURATION_SECONDS_LIMIT = 10000

FORMATTED_DURATION_RE = re.compile(r'^\d+h( \d+m)?$|^\d+m$')
TITLE_YEAR_RE = re.compile(r'\s*\(\d{4}\)|\s+[-–]\s+\d{4}')

INVALID_DATE = 'Invalid Date'
NEVER = 'Never'


def _as_number(value: Any) -> Optional[float]:
    """Return a finite number for numeric input or numeric strings, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp-like value into an aware UTC datetime.

    Args:
        value: Unix seconds, unix milliseconds, numeric string or ISO date string

    Returns:
        Datetime, or None when the value cannot be interpreted
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and '-' in value:
        return _parse_iso(value)

    number = _as_number(value)
    if number is None:
        return _parse_iso(value) if isinstance(value, str) else None

    if number < TIMESTAMP_SECONDS_LIMIT:
        number *= 1000
    try:
        return datetime.fromtimestamp(number / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _plural(count: int, unit: str) -> str:
    return f"1 {unit} ago" if count == 1 else f"{count} {unit}s ago"


def _relative(date: datetime, now: datetime) -> str:
    diff_seconds = math.floor((now - date).total_seconds())
    if diff_seconds < 0:
        local = to_local(date)
        return f"{local.month}/{local.day}/{local.year}"

    diff_minutes = diff_seconds // 60
    diff_hours = diff_minutes // 60
    diff_days = diff_hours // 24
    diff_months = diff_days // 30
    diff_years = diff_days // 365

    for count, unit in (
        (diff_years, 'year'),
        (diff_months, 'month'),
        (diff_days, 'day'),
        (diff_hours, 'hour'),
        (diff_minutes, 'minute'),
    ):
        if count > 0:
            return _plural(count, unit)
    return _plural(diff_seconds, 'second')


def format_date(timestamp: Any, fmt: str = 'default', now: Optional[datetime] = None) -> str:
    """
    Format a timestamp-like value for display.

    Args:
        timestamp: Unix seconds/milliseconds or ISO date string
        fmt: One of 'short', 'relative', 'full', 'time' or 'default'
        now: Reference time for 'relative' (defaults to the current time)

    Returns:
        Formatted date, 'Never' for empty input or 'Invalid Date'
    """
    if not timestamp:
        return NEVER

    date = parse_timestamp(timestamp)
    if date is None:
        logger.warning("Invalid date from timestamp: %r", timestamp)
        return INVALID_DATE

    if fmt == 'relative':
        return _relative(date, now or datetime.now(timezone.utc))

    try:
        local = to_local(date)
    except (OverflowError, ValueError):
        logger.warning("Date out of range for display: %r", timestamp)
        return INVALID_DATE

    if fmt == 'short':
        return f"{local:%b} {local.day}"
    if fmt == 'full':
        return f"{local:%A}, {local:%B} {local.day}, {local.year}"
    if fmt == 'time':
        return local.strftime('%I:%M %p')
    return f"{local:%B} {local.day}, {local.year}"


def format_duration(duration: Any) -> str:
    """
    Format a duration as 'Xh Ym', 'Xh' or 'Ym'.

    Values in (0, 10000) are taken as seconds, larger values as milliseconds.
    Strings that are already formatted pass through unchanged.
    """
    if not duration:
        return '0m'

    if isinstance(duration, str) and FORMATTED_DURATION_RE.match(duration.strip()):
        return duration.strip()

    value = _as_number(duration)
    if value is None or value <= 0:
        return '0m'

    if value < DURATION_SECONDS_LIMIT:
        value *= 1000

    total_minutes = math.floor(value / 60000)
    hours, minutes = divmod(total_minutes, 60)

    if hours > 0 and minutes > 0:
        return f"{hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h"
    return f"{minutes}m"


def format_episode_code(season: Any, episode: Any) -> str:
    """Season/episode pair as 'S01E02'."""
    return f"S{pad_two(season)}E{pad_two(episode)}"


def format_array(values: Any) -> str:
    """Join a list of values with ', '; anything else renders empty."""
    if not isinstance(values, (list, tuple)):
        return ''
    return ', '.join('' if value is None else str(value) for value in values)


def format_time_hhmm(milliseconds: Any) -> str:
    """Playback position in milliseconds as 'HH:MM'."""
    value = _as_number(milliseconds)
    if not value:
        return '00:00'
    total_seconds = math.floor(value / 1000)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    return f"{pad_two(hours)}:{pad_two(minutes)}"


def format_time_diff(timestamp: Any, now: Optional[float] = None) -> str:
    """Compact 'time since' for unix-second timestamps: 'Just now', '5m ago', '3h ago', '2d ago'."""
    value = _as_number(timestamp)
    if not value:
        return NEVER

    current = math.floor(now if now is not None else datetime.now(timezone.utc).timestamp())
    diff = current - value

    if diff < 60:
        return 'Just now'
    if diff < 3600:
        return f"{math.floor(diff / 60)}m ago"
    if diff < 86400:
        return f"{math.floor(diff / 3600)}h ago"
    return f"{math.floor(diff / 86400)}d ago"


def strip_title_year(title: str) -> str:
    """Remove a trailing '(2019)' or ' - 2019' year marker from a title."""
    return TITLE_YEAR_RE.sub('', title or '', count=1)


def format_show_title(session: Optional[Mapping]) -> str:
    """Display title for a session or history row, with 'Show - S01E02' for episodes."""
    if not session:
        return ''

    grandparent_title = session.get('grandparent_title')
    season = session.get('parent_media_index')
    episode = session.get('media_index')
    if grandparent_title and season and episode:
        return f"{strip_title_year(grandparent_title)} - {format_episode_code(season, episode)}"

    return strip_title_year(session.get('title') or '')
