"""
Service for reading and updating the upstream connection configuration.
"""
import logging
from typing import Any, Mapping, Optional

from plex_dashboard.api_client import PlexClient, TautulliClient
from plex_dashboard.config_loader import ConfigLoader
from plex_dashboard.models import DashboardConfig

logger = logging.getLogger(__name__)


class ConfigService:
    """Service for managing the persisted connection configuration."""

    def __init__(self, loader: ConfigLoader, timeout: float = 10):
        """
        Initialize config service.

        Args:
            loader: Loader for configs/config.json
            timeout: Default timeout of the clients built from the config
        """
        self.loader = loader
        self.timeout = timeout

    def get_config(self) -> DashboardConfig:
        return self.loader.load()

    def update_config(self, updates: Mapping[str, Any]) -> DashboardConfig:
        """
        Apply a partial update; empty values keep the stored ones.

        Returns:
            The saved configuration
        """
        config = self.get_config().merged(updates)
        self.loader.save(config)
        return config

    def reset(self) -> None:
        self.loader.reset()
        logger.info("Connection configuration reset")

    def tautulli_client(self, config: Optional[DashboardConfig] = None) -> TautulliClient:
        """Client for the configured Tautulli; raises UpstreamError when unconfigured."""
        return TautulliClient.from_config(config or self.get_config(), timeout=self.timeout)

    def plex_client(self, config: Optional[DashboardConfig] = None) -> PlexClient:
        """Client for the configured Plex server; raises UpstreamError when unconfigured."""
        return PlexClient.from_config(config or self.get_config(), timeout=self.timeout)
