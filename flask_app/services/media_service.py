"""
Service for the per-library media listing used by the section widgets.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from flask_app.extensions import DashboardContext
from flask_app.services.utils import fan_out, section_name_of, section_summaries, section_type_of
from plex_dashboard.api_client import TautulliClient, UpstreamError
from plex_dashboard.models import MEDIA_TYPES, MediaItem
from plex_dashboard.templating import apply_formats, formatted_entry, select_formats

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 10
LISTED_TYPES = ('movies', 'shows')

EMPTY_LIBRARY_DETAILS = {
    'count': 0,
    'parent_count': 0,
    'child_count': 0,
    'total_plays': 0,
    'last_accessed': None,
    'last_played': None,
}


class SectionNotFoundError(LookupError):
    """The requested section does not exist for the media type."""


class MediaService:
    """Service for recently added items merged with their library statistics."""

    def __init__(self, context: DashboardContext):
        self.context = context

    def get_library_details(self, client: TautulliClient, section_id: Any) -> dict[str, Any]:
        """
        Item counts and watch statistics of one library.

        Both upstream calls run in parallel; any failure yields zeroed details.
        """
        try:
            with ThreadPoolExecutor(max_workers=2) as executor:
                stats_future = executor.submit(client.get_library_media_info, section_id)
                watch_future = executor.submit(client.get_library_watch_time_stats, section_id)
                stats = stats_future.result() or {}
                watch_stats = watch_future.result() or {}
        except UpstreamError:
            logger.exception("Error fetching library details for section %s", section_id)
            return dict(EMPTY_LIBRARY_DETAILS)

        return {
            'count': stats.get('count') or 0,
            'parent_count': stats.get('parent_count') or 0,
            'child_count': stats.get('child_count') or 0,
            'total_plays': watch_stats.get('total_plays') or 0,
            'last_accessed': watch_stats.get('last_accessed') or None,
            'last_played': watch_stats.get('last_played') or None,
        }

    def get_media(self, media_type: str, section: Optional[str] = None,
                  count: int = DEFAULT_COUNT) -> dict[str, Any]:
        """
        Recently added movies or shows with library details.

        Args:
            media_type: 'movies' or 'shows'
            section: Optional section ID
            count: Maximum number of items

        Returns:
            Dict with total, sections and formatted media entries

        Raises:
            ValueError: Unsupported media type
            SectionNotFoundError: ``section`` is not a library of that type
            UpstreamError: The library list could not be fetched
        """
        if media_type not in LISTED_TYPES:
            raise ValueError(f"Invalid media type: {media_type}")

        client = self.context.settings.tautulli_client()
        formats = self.context.formats.definitions('sections')

        section_type = MEDIA_TYPES[media_type]
        targets = [s for s in client.get_libraries_table() if section_type_of(s) == section_type]
        if section:
            targets = [s for s in targets if str(s.get('section_id')) == str(section)]
            if not targets:
                raise SectionNotFoundError(f"Section {section} not found")

        per_section = fan_out(lambda s: self._section_media(client, s, count), targets)
        items = [item for section_items in per_section for item in section_items]
        items.sort(key=lambda item: item.added_timestamp, reverse=True)
        items = items[:count]

        media = []
        for item in items:
            applicable = select_formats(formats, section_id=item.section_id)
            media.append(formatted_entry(apply_formats(applicable, item), item.to_dict(), raw_key='media'))

        return {
            'total': len(media),
            'sections': section_summaries(targets),
            'media': media,
        }

    def _section_media(self, client: TautulliClient, section: dict[str, Any], count: int) -> list[MediaItem]:
        section_id = section.get('section_id')
        details = self.get_library_details(client, section_id)
        records = client.get_recently_added(section_id, count=count, include_details=True)
        name = section_name_of(section)
        return [
            MediaItem.from_upstream(
                record,
                **details,
                section_id=section_id,
                section_name=name,
                library_name=name,
            )
            for record in records if isinstance(record, dict)
        ]
