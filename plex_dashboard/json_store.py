"""
Flat JSON file persistence for configuration, format definitions and saved sections.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)


class JsonFileStore:
    """
    A single JSON document on disk.

    Reads never raise: a missing file is created from the default and a
    malformed one is reported and replaced by the default in memory.
    """

    def __init__(self, path: str | Path, default_factory: Callable[[], Any]):
        self.path = Path(path)
        self.default_factory = default_factory
        self._lock = threading.Lock()

    def ensure_exists(self) -> None:
        """Create the parent directory and a default document if needed."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self._write(self.default_factory())
                logger.info("Created %s", self.path)
        except OSError:
            logger.exception("Failed to create %s", self.path)

    def load(self) -> Any:
        with self._lock:
            self.ensure_exists()
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (OSError, ValueError):
                logger.exception("Error reading %s, using defaults", self.path)
                return copy.deepcopy(self.default_factory())

    def save(self, data: Any) -> None:
        """Write the document atomically; raises OSError/TypeError on failure."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._write(data)

    def reset(self) -> None:
        self.save(self.default_factory())

    def _write(self, data: Any) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f'.{self.path.name}.', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
