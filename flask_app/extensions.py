"""
Process-wide objects shared by the services.

They are built once by the app factory and stored on the app, so services
get them passed in instead of reaching for module globals.
"""
from dataclasses import dataclass

from flask import current_app

from flask_app.logging_setup import MemoryLogHandler
from flask_app.services.config_service import ConfigService
from flask_app.services.format_store import FormatStore
from flask_app.services.section_store import SectionStore
from plex_dashboard.cache import CacheSet
from plex_dashboard.refresh import RefreshCoordinator

EXTENSION_KEY = 'dashboard'


@dataclass
class DashboardContext:
    settings: ConfigService
    formats: FormatStore
    sections: SectionStore
    caches: CacheSet
    refresher: RefreshCoordinator
    log_handler: MemoryLogHandler
    upstream_timeout: float = 10
    metadata_timeout: float = 5
    proxy_timeout: float = 30


def get_dashboard() -> DashboardContext:
    """Context of the current app."""
    return current_app.extensions[EXTENSION_KEY]
