"""
Service for health reporting and upstream connectivity checks.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from flask_app.extensions import DashboardContext
from plex_dashboard.api_client import PlexClient, TautulliClient, UpstreamError
from plex_dashboard.models import DashboardConfig

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 5     # seconds
SERVICE_CHECK_TIMEOUT = 8    # seconds


def _tautulli_envelope(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        return {}
    return payload.get('response') or {}


class HealthService:
    """Reports configuration state and whether Plex and Tautulli answer."""

    def __init__(self, context: DashboardContext):
        self.context = context

    def health(self, check: bool = False) -> dict[str, Any]:
        """
        Health summary.

        Args:
            check: Also contact both upstream services

        Returns:
            Status, timestamp, config summary and optionally per-service state
        """
        config = self.context.settings.get_config()
        data = {
            'status': 'ok',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'config': {
                'plexUrl': config.plex_url or 'Not configured',
                'tautulliUrl': config.tautulli_url or 'Not configured',
                'hasPlexToken': bool(config.plex_token),
                'hasTautulliKey': bool(config.tautulli_api_key),
            },
        }
        if check:
            data['services'] = {
                'plex': self._plex_health(config),
                'tautulli': self._tautulli_health(config),
            }
        return data

    def _plex_health(self, config: DashboardConfig) -> dict[str, Any]:
        state = {'configured': config.has_plex, 'online': False}
        if not config.has_plex:
            return state
        try:
            identity = PlexClient.from_config(config).get_identity(timeout=HEALTH_CHECK_TIMEOUT)
        except UpstreamError as e:
            logger.error("Plex health check failed: %s", e)
            state['error'] = str(e)
            return state
        state['online'] = True
        state['serverName'] = identity.get('friendlyName') or None
        return state

    def _tautulli_health(self, config: DashboardConfig) -> dict[str, Any]:
        state = {'configured': config.has_tautulli, 'online': False}
        if not config.has_tautulli:
            return state
        try:
            envelope = _tautulli_envelope(
                TautulliClient.from_config(config).status(timeout=HEALTH_CHECK_TIMEOUT)
            )
        except UpstreamError as e:
            logger.error("Tautulli health check failed: %s", e)
            state['error'] = str(e)
            return state
        state['online'] = envelope.get('result') == 'success'
        if envelope.get('data'):
            state['version'] = envelope['data'].get('version') or None
            state['data'] = envelope['data']
        return state

    def check_service(self, service: str) -> dict[str, Any]:
        """
        Connectivity check of one service.

        Args:
            service: 'plex' or 'tautulli'

        Returns:
            Dict with status 'online', 'offline' or 'unconfigured' and a message
        """
        config = self.context.settings.get_config()
        if service == 'plex':
            return self._check_plex(config)
        return self._check_tautulli(config)

    def _check_plex(self, config: DashboardConfig) -> dict[str, Any]:
        if not config.has_plex:
            return {'status': 'unconfigured', 'message': 'Plex is not configured'}
        try:
            identity = PlexClient.from_config(config).get_identity(timeout=SERVICE_CHECK_TIMEOUT)
        except UpstreamError as e:
            logger.error("Plex service check failed: %s", e)
            return {'status': 'offline', 'message': 'Failed to connect to Plex', 'error': str(e)}
        return {
            'status': 'online',
            'message': 'Plex is online',
            'serverName': identity.get('friendlyName') or None,
        }

    def _check_tautulli(self, config: DashboardConfig) -> dict[str, Any]:
        if not config.has_tautulli:
            return {'status': 'unconfigured', 'message': 'Tautulli is not configured'}
        try:
            payload = TautulliClient.from_config(config).status(timeout=SERVICE_CHECK_TIMEOUT)
        except UpstreamError as e:
            logger.error("Tautulli service check failed: %s", e)
            return {'status': 'offline', 'message': 'Failed to connect to Tautulli', 'error': str(e)}

        envelope = _tautulli_envelope(payload)
        if envelope.get('result') == 'success':
            return {
                'status': 'online',
                'message': 'Tautulli is online',
                'version': (envelope.get('data') or {}).get('version') or None,
            }
        return {
            'status': 'offline',
            'message': 'Tautulli returned an invalid response',
            'responseData': payload,
        }
