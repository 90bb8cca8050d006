"""
Request validation utilities.
"""
from typing import Any, List, Optional

from flask_app.services.format_store import FORMAT_TYPES
from plex_dashboard.cache import CacheSet
from plex_dashboard.models import MEDIA_TYPES

SERVICES = ('plex', 'tautulli')


def validate_media_type(media_type: str, allowed=tuple(MEDIA_TYPES)) -> List[str]:
    """
    Validate a media type path parameter.

    Returns:
        List of error messages (empty if valid)
    """
    if media_type not in allowed:
        return [f"Invalid media type: {media_type}. Expected one of: {', '.join(allowed)}"]
    return []


def parse_count(value: Optional[str], default: int, minimum: int = 1) -> int:
    """Parse a count query parameter; unparseable values fall back to the default."""
    try:
        count = int(value) if value not in (None, '') else default
    except (TypeError, ValueError):
        count = default
    return max(minimum, count)


def validate_format_payload(data: Any) -> List[str]:
    """
    Validate a POST /api/formats body: {type, formats[]}.

    Returns:
        List of error messages (empty if valid)
    """
    errors = []
    if not isinstance(data, dict):
        return ['Invalid format data']

    format_type = data.get('type')
    if not format_type:
        errors.append('Format type is required.')
    elif format_type not in FORMAT_TYPES:
        errors.append(f"Unknown format type '{format_type}'. Expected one of: {', '.join(FORMAT_TYPES)}")

    formats = data.get('formats')
    if not isinstance(formats, list):
        errors.append('Formats must be an array.')
    elif not all(isinstance(entry, dict) for entry in formats):
        errors.append('Each format must be an object.')

    return errors


def validate_sections_payload(data: Any) -> List[str]:
    """
    Validate a POST /api/sections body: a list of {section_id, type, name}.

    Returns:
        List of error messages (empty if valid)
    """
    if not isinstance(data, list):
        return ['Expected an array of sections']

    for section in data:
        if not isinstance(section, dict) or not (
            section.get('section_id') and section.get('type') and section.get('name')
        ):
            return ['Each section must have section_id, type, and name']
    return []


def validate_cache_name(name: str) -> List[str]:
    if name not in CacheSet.NAMES:
        return [f"Cache type must be one of: {', '.join(CacheSet.NAMES)}"]
    return []


def validate_service_name(service: Any) -> List[str]:
    if service not in SERVICES:
        return ['Invalid or missing service parameter']
    return []
