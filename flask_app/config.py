"""
Flask application configuration.
"""
import os

from plex_dashboard.cache import HISTORY_CACHE_TTL, MEDIA_CACHE_TTL, METADATA_CACHE_TTL


def _origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(',') if origin.strip()]


class Config:
    """Base configuration."""
    CONFIG_DIR = os.environ.get('CONFIG_DIR') or os.path.join(os.getcwd(), 'configs')

    # PROXY_TIMEOUT is given in milliseconds, stored in seconds
    PROXY_TIMEOUT = int(os.environ.get('PROXY_TIMEOUT') or 30000) / 1000
    ALLOWED_ORIGINS = _origins(os.environ.get('ALLOWED_ORIGINS') or 'http://localhost:3005')

    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_BUFFER_SIZE = 1000

    MEDIA_CACHE_TTL = MEDIA_CACHE_TTL
    METADATA_CACHE_TTL = METADATA_CACHE_TTL
    HISTORY_CACHE_TTL = HISTORY_CACHE_TTL
    REFRESH_WORKERS = 4

    UPSTREAM_TIMEOUT = 10   # seconds
    METADATA_TIMEOUT = 5    # seconds


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False


class TestingConfig(Config):
    """Test configuration; CONFIG_DIR is normally overridden per test."""
    TESTING = True
    DEBUG = False
    LOG_LEVEL = 'DEBUG'
