"""
Configuration loader for the dashboard.

Supports loading the connection configuration from:
1. configs/config.json (written by the settings screen)
2. Environment variables (for automation/Docker), used for any value the file lacks
"""

import logging
import os
from pathlib import Path
from typing import Optional

from plex_dashboard.json_store import JsonFileStore
from plex_dashboard.models import DashboardConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = 'config.json'

ENV_VARS = {
    'plexUrl': 'PLEX_URL',
    'plexToken': 'PLEX_TOKEN',
    'tautulliUrl': 'TAUTULLI_URL',
    'tautulliApiKey': 'TAUTULLI_API_KEY',
}


def default_config_dict() -> dict[str, Optional[str]]:
    return DashboardConfig().to_dict()


class ConfigLoader:
    """Load and save the connection configuration."""

    def __init__(self, config_dir: str | Path = 'configs', use_env: bool = True):
        """
        Initialize config loader.

        Args:
            config_dir: Directory holding config.json
            use_env: Fill values missing from the file with environment variables
        """
        self.store = JsonFileStore(Path(config_dir) / CONFIG_FILENAME, default_config_dict)
        self.use_env = use_env

    def load(self) -> DashboardConfig:
        """
        Load configuration.

        Returns:
            DashboardConfig; all values None when nothing is configured
        """
        data = self.store.load()
        if not isinstance(data, dict):
            logger.error("Configuration file %s is not an object, using defaults", self.store.path)
            data = default_config_dict()

        if self.use_env:
            for key, env_name in ENV_VARS.items():
                if not data.get(key) and os.getenv(env_name):
                    data[key] = os.getenv(env_name)

        config = DashboardConfig.from_dict(data)
        logger.debug(
            "Configuration loaded: plex %s, tautulli %s",
            'configured' if config.has_plex else 'not configured',
            'configured' if config.has_tautulli else 'not configured',
        )
        return config

    def save(self, config: DashboardConfig) -> None:
        self.store.save(config.to_dict())
        logger.info("Configuration saved: %r", config)

    def reset(self) -> None:
        self.store.reset()
