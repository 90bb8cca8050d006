"""
Persistence of the user-defined display formats (configs/formats.json).
"""
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from plex_dashboard.json_store import JsonFileStore
from plex_dashboard.models import FormatDefinition

logger = logging.getLogger(__name__)

FORMATS_FILENAME = 'formats.json'

FORMAT_TYPES = ('downloads', 'recentlyAdded', 'sections', 'libraries', 'users')

DEFAULT_LIBRARY_MEDIA_TYPE = 'movies'


def default_formats() -> dict[str, list]:
    return {format_type: [] for format_type in FORMAT_TYPES}


class FormatStore:
    """Reads and writes the format lists, one per dashboard widget."""

    def __init__(self, config_dir: str | Path):
        self.store = JsonFileStore(Path(config_dir) / FORMATS_FILENAME, default_formats)

    def get_formats(self) -> dict[str, list[dict[str, Any]]]:
        """
        Load every format list.

        Returns:
            Dict with all five lists present, missing or malformed ones empty
        """
        data = self.store.load()
        if not isinstance(data, dict):
            logger.error("Formats file %s is not an object, using empty formats", self.store.path)
            data = {}

        formats = {}
        for format_type in FORMAT_TYPES:
            entries = data.get(format_type)
            formats[format_type] = [entry for entry in entries if isinstance(entry, dict)] \
                if isinstance(entries, list) else []
        return formats

    def save_formats(self, formats: Mapping[str, Any]) -> bool:
        """Write all format lists; returns False when the file could not be written."""
        updated = {format_type: list(formats.get(format_type) or []) for format_type in FORMAT_TYPES}
        try:
            self.store.save(updated)
        except (OSError, TypeError, ValueError):
            logger.exception("Error saving formats")
            return False

        logger.info(
            "Format settings saved: %s",
            ', '.join(f"{format_type}={len(entries)}" for format_type, entries in updated.items()),
        )
        return True

    def definitions(self, format_type: str) -> list[FormatDefinition]:
        """Stored formats of one type as FormatDefinition objects."""
        return [FormatDefinition.from_dict(entry) for entry in self.get_formats().get(format_type, [])]

    def update(self, format_type: str, formats: list[dict[str, Any]]) -> Optional[dict[str, list]]:
        """
        Replace the formats of one type.

        Library formats always carry a mediaType, 'movies' when not given.

        Returns:
            All format lists after the update, or None when saving failed
        """
        if format_type == 'libraries':
            formats = [
                {**entry, 'mediaType': entry.get('mediaType') or DEFAULT_LIBRARY_MEDIA_TYPE}
                for entry in formats
            ]

        all_formats = self.get_formats()
        all_formats[format_type] = formats
        if not self.save_formats(all_formats):
            return None
        return all_formats

    def reset(self) -> None:
        self.store.reset()
