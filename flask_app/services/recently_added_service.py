"""
Service assembling the "recently added" listings.

A listing is built from the library sections of the requested media type:
each section's newest items are fetched (and cached per section), merged,
sorted newest first, cut to the requested count, enriched with per-item
metadata (cached per item) and finally rendered through the user's
recently-added formats. The whole response is cached as well; a cache hit is
answered immediately and refreshed in the background for the next caller.
"""
import logging
from typing import Any, Optional

from flask_app.extensions import DashboardContext
from flask_app.services.utils import fan_out, now_ms, section_summaries, section_name_of, section_type_of
from plex_dashboard.api_client import TautulliClient, UpstreamError
from plex_dashboard.cache import media_key, metadata_key, section_key
from plex_dashboard.formatters import format_duration
from plex_dashboard.models import MEDIA_TYPES, FormatDefinition, MediaItem
from plex_dashboard.templating import apply_formats, formatted_entry, select_formats
from plex_dashboard.utils import new_request_id

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 50

# Items fetched per section, enough to fill the default page on its own
SECTION_FETCH_COUNT = 50

UNKNOWN_RESOLUTION = 'Unknown'


class RecentlyAddedService:
    """Builds and caches recently added responses per (type, section, count)."""

    def __init__(self, context: DashboardContext):
        self.context = context
        self.caches = context.caches

    def get_recent(self, media_type: str, section: Optional[str] = None, count: int = DEFAULT_COUNT,
                   force_refresh: bool = False) -> dict[str, Any]:
        """
        Recently added items of one media type.

        Args:
            media_type: 'movies', 'shows' or 'music'
            section: Optional section ID limiting the listing to one library
            count: Maximum number of items
            force_refresh: Skip every cache and refetch from upstream

        Returns:
            Response payload with a ``_cache`` annotation; payloads carrying an
            ``error`` key (nothing to list) are neither cached nor annotated

        Raises:
            ValueError: Unknown media type
            UpstreamError: The library sections could not be fetched
        """
        if media_type not in MEDIA_TYPES:
            raise ValueError(f"Invalid media type: {media_type}")

        request_id = new_request_id()
        cache_key = media_key(media_type, section, count)

        if force_refresh:
            logger.debug("[%s] Forced refresh, bypassing cache", request_id)
        else:
            cached = self.caches.media.get(cache_key)
            if cached is not None:
                logger.debug("[%s] Cache hit for %s", request_id, cache_key)
                age = max(0, (now_ms() - cached.get('_timestamp', now_ms())) // 1000)
                self.context.refresher.schedule(
                    cache_key,
                    lambda: self.build(media_type, section, count, refresh_media=True, request_id=request_id),
                )
                return {**cached, '_cache': {'hit': True, 'age': f"{age}s", 'key': cache_key}}
            logger.debug("[%s] Cache miss for %s", request_id, cache_key)

        payload = self.build(
            media_type, section, count,
            refresh_media=force_refresh,
            refresh_metadata=force_refresh,
            request_id=request_id,
        )
        if 'error' in payload:
            return payload
        return {**payload, '_cache': {'hit': False, 'fresh': True, 'key': cache_key}}

    def build(self, media_type: str, section: Optional[str], count: int, refresh_media: bool = False,
              refresh_metadata: bool = False, request_id: str = '') -> dict[str, Any]:
        """
        Assemble a listing from upstream and store it under its cache key.

        Args:
            media_type: 'movies', 'shows' or 'music'
            section: Optional section ID
            count: Maximum number of items
            refresh_media: Ignore cached per-section item lists
            refresh_metadata: Ignore cached per-item metadata
            request_id: Log correlation id

        Returns:
            Response payload (without ``_cache``)
        """
        client = self.context.settings.tautulli_client()
        formats = self.context.formats.definitions('recentlyAdded')

        try:
            all_sections = client.get_libraries_table()
        except UpstreamError:
            logger.exception("[%s] Error fetching sections", request_id)
            raise

        section_type = MEDIA_TYPES[media_type]
        matching = [
            s for s in all_sections
            if section_type_of(s) == section_type
            and (not section or str(s.get('section_id')) == str(section))
        ]

        if not matching:
            return {
                'total': 0,
                'media': [],
                'sections': [],
                'error': f"No sections found for type {media_type} with section ID {section}"
                if section else 'No sections found for this media type',
            }

        per_section = fan_out(
            lambda s: self._section_items(client, s, refresh_media, request_id),
            matching,
        )
        items = [item for section_items in per_section for item in section_items]

        if not items:
            return {
                'total': 0,
                'media': [],
                'sections': section_summaries(matching),
                'error': 'No recently added media found',
            }

        items.sort(key=lambda item: item.added_timestamp, reverse=True)
        limited = items[:count]

        media = fan_out(
            lambda item: self._process_item(client, item, media_type, formats, refresh_metadata, request_id),
            limited,
        )

        payload = {
            'total': len(media),
            'media': media,
            'sections': section_summaries(matching),
            'appliedFormats': [
                {'name': fmt.name, 'sectionId': fmt.section_id}
                for fmt in formats if fmt.type == media_type
            ],
            '_timestamp': now_ms(),
        }

        cache_key = media_key(media_type, section, count)
        self.caches.media.set(cache_key, payload)
        logger.debug("[%s] Cached response with key %s", request_id, cache_key)
        return payload

    def _section_items(self, client: TautulliClient, section: dict[str, Any], refresh: bool,
                       request_id: str) -> list[MediaItem]:
        """Newest items of one section, tagged with the section; [] when the fetch fails."""
        section_id = section.get('section_id')
        key = section_key(section_id)

        if not refresh:
            cached = self.caches.media.get(key)
            if cached is not None:
                logger.debug("[%s] Using cached media for section %s", request_id, section_id)
                return cached

        logger.debug("[%s] Fetching media for section %s", request_id, section_id)
        try:
            records = client.get_recently_added(section_id, count=SECTION_FETCH_COUNT)
        except UpstreamError:
            logger.exception("[%s] Error fetching recently added for section %s", request_id, section_id)
            return []

        items = [
            MediaItem.from_upstream(record, section_id=section_id, section_name=section_name_of(section))
            for record in records if isinstance(record, dict)
        ]
        self.caches.media.set(key, items)
        return items

    def _resolve_metadata(self, client: TautulliClient, item: MediaItem, refresh: bool,
                          request_id: str) -> tuple[dict[str, Any], str, bool]:
        """
        Metadata fields to merge into an item.

        Returns:
            Tuple of (field updates, video resolution, served from cache)
        """
        rating_key = item.rating_key
        if rating_key is None:
            return {}, UNKNOWN_RESOLUTION, False

        key = metadata_key(rating_key)
        if not refresh:
            metadata = self.caches.metadata.get(key)
            if metadata:
                logger.debug("[%s] Using cached metadata for %s", request_id, rating_key)
                updates = {
                    'content_rating': metadata.get('content_rating') or None,
                    'rating': metadata.get('rating') or None,
                    'summary': metadata.get('summary') or item.get('summary'),
                }
                complete = metadata.get('complete_metadata')
                if complete:
                    for field in ('genres', 'directors', 'actors'):
                        updates[field] = complete.get(field) or []
                return updates, metadata.get('video_full_resolution') or UNKNOWN_RESOLUTION, True

        logger.debug("[%s] Fetching metadata for %s", request_id, rating_key)
        try:
            data = client.get_metadata(rating_key, timeout=self.context.metadata_timeout)
        except UpstreamError:
            logger.exception("[%s] Failed to fetch metadata for %s", request_id, rating_key)
            return {}, UNKNOWN_RESOLUTION, False

        if not data:
            return {}, UNKNOWN_RESOLUTION, False

        media_info_list = data.get('media_info') or []
        media_info = media_info_list[0] if isinstance(media_info_list, list) and media_info_list else {}
        resolution = media_info.get('video_full_resolution') or UNKNOWN_RESOLUTION

        self.caches.metadata.set(key, {
            'video_full_resolution': resolution,
            'content_rating': data.get('content_rating') or None,
            'rating': data.get('rating') or None,
            'summary': data.get('summary') or None,
            'duration': data.get('duration') or None,
            'complete_metadata': data,
            'media_info': media_info,
            'timestamp': now_ms(),
        })

        updates = {
            'content_rating': data.get('content_rating') or None,
            'rating': data.get('rating') or None,
        }
        return updates, resolution, False

    def _process_item(self, client: TautulliClient, item: MediaItem, media_type: str,
                      formats: list[FormatDefinition], refresh_metadata: bool,
                      request_id: str) -> dict[str, Any]:
        updates, resolution, from_cache = self._resolve_metadata(client, item, refresh_metadata, request_id)
        media = item.copy(**updates)
        formatted_duration = format_duration(media.get('duration') or 0)

        enhanced = media.copy(
            mediaType=media_type,
            media_type=media_type,
            formatted_duration=formatted_duration,
            video_full_resolution=resolution,
            content_rating=media.get('content_rating') or None,
            addedAt=media.get('added_at'),
            added_at=media.get('added_at'),
        )

        applicable = select_formats(formats, section_id=media.section_id, format_type=media_type)
        formatted = apply_formats(applicable, enhanced)

        raw = media.to_dict()
        raw.update({
            'formatted_duration': formatted_duration,
            'video_full_resolution': resolution,
            '_cached_metadata': from_cache,
        })
        return formatted_entry(formatted, raw)
