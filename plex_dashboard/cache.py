"""
In-process TTL caches.

Entries expire lazily: an expired entry is dropped the next time it is read,
there is no background sweep and no capacity limit.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

MEDIA_CACHE_TTL = 10 * 60       # seconds
METADATA_CACHE_TTL = 30 * 60    # seconds
HISTORY_CACHE_TTL = 10 * 60     # seconds


@dataclass
class CacheEntry:
    value: Any
    expires: float


class TTLCache:
    """Thread-safe key/value store with per-entry expiry."""

    def __init__(self, name: str, default_ttl: float, clock: Callable[[], float] = time.time):
        """
        Initialize cache.

        Args:
            name: Cache name used in stats and cache-control responses
            default_ttl: Lifetime in seconds applied when ``set`` gets no ttl
            clock: Time source returning seconds
        """
        self.name = name
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if self._clock() > entry.expires:
                del self._entries[key]
                return default
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value, replacing any existing entry for the key."""
        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires=self._clock() + lifetime)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Drop every entry and return how many there were."""
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
            return size

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {'size': len(self._entries), 'keys': list(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass
class CacheSet:
    """The process-wide caches, created once at startup and handed to the services."""

    media: TTLCache
    metadata: TTLCache
    history: TTLCache

    NAMES = ('media', 'metadata', 'history')

    @classmethod
    def create(
        cls,
        media_ttl: float = MEDIA_CACHE_TTL,
        metadata_ttl: float = METADATA_CACHE_TTL,
        history_ttl: float = HISTORY_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> 'CacheSet':
        return cls(
            media=TTLCache('media', media_ttl, clock),
            metadata=TTLCache('metadata', metadata_ttl, clock),
            history=TTLCache('history', history_ttl, clock),
        )

    def get(self, name: str) -> Optional[TTLCache]:
        """Look a cache up by name; None for unknown names."""
        if name not in self.NAMES:
            return None
        return getattr(self, name)

    def sizes(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in self.NAMES}

    def clear_all(self) -> dict[str, int]:
        """Clear every cache and return the previous sizes."""
        return {name: getattr(self, name).clear() for name in self.NAMES}


def media_key(media_type: str, section: Any, count: int) -> str:
    """Key of a full recently-added response."""
    return f"media:{media_type}:{section or 'all'}:{count}"


def section_key(section_id: Any) -> str:
    """Key of one section's recently-added item list."""
    return f"section:{section_id}:media"


def metadata_key(rating_key: Any) -> str:
    return f"metadata:{rating_key}"


def history_key(user_id: Any) -> str:
    return f"user_history:{user_id}"
