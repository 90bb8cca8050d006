"""
Persistence of the library sections picked in the settings screen (configs/sections.json).
"""
import logging
from pathlib import Path
from typing import Any

from plex_dashboard.json_store import JsonFileStore

logger = logging.getLogger(__name__)

SECTIONS_FILENAME = 'sections.json'


class SectionStore:

    def __init__(self, config_dir: str | Path):
        self.store = JsonFileStore(Path(config_dir) / SECTIONS_FILENAME, list)

    def load(self) -> list[dict[str, Any]]:
        data = self.store.load()
        if not isinstance(data, list):
            logger.error("Sections file %s is not a list, using no sections", self.store.path)
            return []
        return [section for section in data if isinstance(section, dict)]

    def save(self, sections: list[dict[str, Any]]) -> None:
        self.store.save(sections)
        logger.info("Saved %d sections", len(sections))

    def reset(self) -> None:
        self.store.reset()
