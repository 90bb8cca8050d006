"""
Small coercion and display helpers shared by the core modules.
"""

import random
import string
import time
from typing import Any, Optional

_BASE36 = string.digits + string.ascii_lowercase


def to_int(value: Any) -> Optional[int]:
    """Safely convert a value to int, returning None on failure."""
    if value in (None, '') or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(',', '').strip()
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None


def pad_two(value: Any) -> str:
    """Left-pad a value's string form with zeros to two characters."""
    return str(value).rjust(2, '0')


def mask_secret(secret: Optional[str]) -> str:
    """
    Mask an API key or token for safe display.

    Args:
        secret: Key or token to mask

    Returns:
        Masked string, or 'Not set' when empty
    """
    if not secret:
        return 'Not set'
    if len(secret) > 8:
        return f"{secret[:4]}...{secret[-4:]}"
    return "***"


def _to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return ''.join(reversed(digits))


def new_request_id() -> str:
    """Short id used to correlate the log lines of a single request."""
    suffix = ''.join(random.choices(_BASE36, k=8))
    return _to_base36(int(time.time() * 1000)) + suffix
