"""
Service behind the cache control endpoints.
"""
import logging
from typing import Any, Optional

from flask_app.extensions import DashboardContext
from flask_app.services.utils import now_ms
from plex_dashboard.api_client import UpstreamError
from plex_dashboard.cache import media_key, metadata_key, section_key
from plex_dashboard.models import MEDIA_TYPES
from plex_dashboard.utils import new_request_id

logger = logging.getLogger(__name__)

# Page size whose cached listings a section poster refresh drops
POSTER_REFRESH_COUNT = 50


class CacheService:
    """Clears the in-process caches, entirely or per item/section."""

    def __init__(self, context: DashboardContext):
        self.context = context
        self.caches = context.caches

    def clear_all(self) -> dict[str, Any]:
        sizes = self.caches.clear_all()
        total = sum(sizes.values())
        logger.info("Cleared all caches (%d entries)", total)
        return {
            'success': True,
            'message': f"Successfully cleared all caches with {total} total entries",
            'details': sizes,
        }

    def clear_cache(self, name: str) -> Optional[dict[str, Any]]:
        """
        Clear one named cache.

        Returns:
            Response payload, or None for an unknown cache name
        """
        cache = self.caches.get(name)
        if cache is None:
            return None
        size = cache.clear()
        logger.info("Cleared %s cache (%d entries)", name, size)
        return {
            'success': True,
            'message': f"Successfully cleared {name} cache with {size} entries",
            'details': {name: size},
        }

    def clear_user_history(self) -> dict[str, Any]:
        size = self.caches.history.clear()
        return {
            'success': True,
            'message': f"Successfully cleared user history cache with {size} entries",
        }

    @staticmethod
    def image_cache_buster() -> dict[str, Any]:
        timestamp = now_ms()
        logger.info("Image cache clearing requested. New timestamp: %s", timestamp)
        return {
            'success': True,
            'message': 'Image cache headers cleared',
            'timestamp': timestamp,
        }

    def refresh_posters(self, media_id: Any = None, section_id: Any = None) -> dict[str, Any]:
        """
        Drop the cached entries behind a poster so the next listing refetches it.

        Args:
            media_id: Rating key of one item; also drops its section's item list when known
            section_id: Library section whose item list and listings are dropped

        Returns:
            Response payload with a cache-busting timestamp
        """
        timestamp = now_ms()
        request_id = f"refresh-{new_request_id()}"

        if media_id:
            if self.caches.metadata.delete(metadata_key(media_id)):
                logger.info("[%s] Cleared metadata cache for media ID %s", request_id, media_id)
            else:
                logger.info("[%s] No cached metadata found for media ID %s", request_id, media_id)
            self._drop_owning_section(media_id, request_id)
            message = f"Poster cache cleared for media ID {media_id}"
        elif section_id:
            self._drop_section(section_id, request_id)
            message = f"Poster cache cleared for section ID {section_id}"
        else:
            logger.info("[%s] Global poster cache clear requested", request_id)
            message = 'All poster caches cleared'

        return {'success': True, 'message': message, 'timestamp': timestamp}

    def _drop_owning_section(self, media_id: Any, request_id: str) -> None:
        """Best effort: look the item's section up and drop that section's item list."""
        try:
            client = self.context.settings.tautulli_client()
            metadata = client.get_metadata(media_id, timeout=self.context.metadata_timeout)
        except UpstreamError:
            logger.exception("[%s] Error getting section ID for media %s", request_id, media_id)
            return

        section_id = metadata.get('section_id')
        if section_id and self.caches.media.delete(section_key(section_id)):
            logger.info("[%s] Cleared section cache for section ID %s containing media ID %s",
                        request_id, section_id, media_id)

    def _drop_section(self, section_id: Any, request_id: str) -> None:
        if self.caches.media.delete(section_key(section_id)):
            logger.info("[%s] Cleared cache for section ID %s", request_id, section_id)
        else:
            logger.info("[%s] No cached data found for section ID %s", request_id, section_id)

        for media_type in MEDIA_TYPES:
            if self.caches.media.delete(media_key(media_type, section_id, POSTER_REFRESH_COUNT)):
                logger.info("[%s] Cleared type cache for %s section %s", request_id, media_type, section_id)
