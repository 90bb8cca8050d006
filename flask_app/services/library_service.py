"""
Services for the libraries table and the saved library sections.
"""
import logging
from typing import Any, Optional

from flask_app.extensions import DashboardContext
from flask_app.services.utils import section_name_of, section_type_of
from plex_dashboard.api_client import UpstreamError
from plex_dashboard.models import media_type_for_section
from plex_dashboard.templating import apply_formats, formatted_entry, select_formats

logger = logging.getLogger(__name__)

NEVER = 'Never'


class LibraryService:
    """Service for library listings rendered through the library and section formats."""

    def __init__(self, context: DashboardContext):
        self.context = context

    def get_libraries(self, media_type: Optional[str] = None) -> dict[str, Any]:
        """
        Every library with the library formats applied.

        Args:
            media_type: Optional 'movies', 'shows' or 'music' filter

        Returns:
            Dict with total and library entries (raw_data gains media_type)

        Raises:
            UpstreamError: The libraries table could not be fetched
        """
        client = self.context.settings.tautulli_client()
        formats = self.context.formats.definitions('libraries')

        libraries = []
        for library in client.get_libraries_table():
            section_media_type = media_type_for_section(section_type_of(library))
            if media_type and section_media_type != media_type:
                continue

            base = {
                'section_id': library.get('section_id'),
                'section_name': section_name_of(library),
                'section_type': library.get('section_type') or library.get('type'),
                'count': library.get('count') or 0,
                'parent_count': library.get('parent_count') or 0,
                'child_count': library.get('child_count') or 0,
                'total_plays': library.get('plays') or 0,
                'last_accessed': library.get('last_accessed') or NEVER,
                'last_played': library.get('last_played') or NEVER,
            }
            applicable = select_formats(formats, section_id=library.get('section_id'),
                                        media_type=section_media_type)
            raw = {**library, 'media_type': section_media_type}
            libraries.append(formatted_entry(apply_formats(applicable, base), raw))

        return {'total': len(libraries), 'libraries': libraries}

    def get_saved_sections(self) -> dict[str, Any]:
        """Saved sections with the section formats applied; missing timestamps read 'Never'."""
        formats = self.context.formats.definitions('sections')

        sections = []
        for section in self.context.sections.load():
            section_type = section.get('type') or section.get('section_type') or 'unknown'
            processed = {
                **section,
                'last_accessed': section.get('last_accessed') or NEVER,
                'last_played': section.get('last_played') or NEVER,
                'type': section_type,
            }
            base = {
                'section_id': section.get('section_id'),
                'section_name': section.get('name'),
                'section_type': section_type,
                'count': section.get('count') or 0,
                'parent_count': section.get('parent_count') or 0,
                'child_count': section.get('child_count') or 0,
                'last_accessed': section.get('last_accessed') or NEVER,
                'last_updated': section.get('last_updated') or NEVER,
                'last_played': section.get('last_played') or NEVER,
            }
            applicable = select_formats(formats, section_id=section.get('section_id'))
            sections.append(formatted_entry(apply_formats(applicable, base), processed))

        return {'total': len(sections), 'sections': sections}

    def save_sections(self, sections: list[dict[str, Any]]) -> dict[str, Any]:
        """
        Enrich the picked sections from the libraries table and save them.

        When the table cannot be fetched the sections are saved as given.

        Args:
            sections: Validated {section_id, type, name} entries

        Returns:
            Response payload with the saved sections
        """
        try:
            client = self.context.settings.tautulli_client()
            libraries_by_id = {str(lib.get('section_id')): lib for lib in client.get_libraries_table()}
        except UpstreamError:
            logger.exception("Error fetching library details, saving sections without them")
            libraries_by_id = None

        enriched = []
        for section in sections:
            if libraries_by_id is None:
                enriched.append(section)
                continue
            details = libraries_by_id.get(str(section.get('section_id')), {})
            enriched.append({
                **section,
                'count': details.get('count') or 0,
                'parent_count': details.get('parent_count') or 0,
                'child_count': details.get('child_count') or 0,
                'total_plays': details.get('plays') or 0,
                'last_accessed': details.get('last_accessed') or None,
                'last_played': details.get('last_played') or None,
                'section_type': details.get('section_type') or section.get('type'),
                'section_name': details.get('section_name') or section.get('name'),
            })

        self.context.sections.save(enriched)
        return {
            'success': True,
            'total': len(enriched),
            'sections': enriched,
            'message': f"Successfully saved {len(enriched)} sections",
        }
