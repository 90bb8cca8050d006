"""
Plex Dashboard Core

Template rendering, field formatting, caching and upstream clients for a
dashboard built on the Plex and Tautulli APIs.
"""

from plex_dashboard.api_client import PlexClient, TautulliClient, UpstreamError
from plex_dashboard.cache import CacheSet, TTLCache
from plex_dashboard.formatters import format_date, format_duration, format_episode_code
from plex_dashboard.models import DashboardConfig, FormatDefinition, MediaItem
from plex_dashboard.refresh import RefreshCoordinator
from plex_dashboard.templating import apply_formats, render

__version__ = "1.0.0"
__all__ = [
    "CacheSet",
    "DashboardConfig",
    "FormatDefinition",
    "MediaItem",
    "PlexClient",
    "RefreshCoordinator",
    "TTLCache",
    "TautulliClient",
    "UpstreamError",
    "apply_formats",
    "format_date",
    "format_duration",
    "format_episode_code",
    "render",
]
