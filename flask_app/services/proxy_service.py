"""
Pass-through of frontend requests to the configured Plex and Tautulli servers.
"""
import logging
from typing import Any, Iterable, Mapping, Optional

import requests

from plex_dashboard.api_client import PLEX_CLIENT_HEADERS
from plex_dashboard.models import DashboardConfig

logger = logging.getLogger(__name__)

# Headers that describe a single connection and must not be forwarded
HOP_BY_HOP_HEADERS = frozenset({
    'connection',
    'keep-alive',
    'proxy-authenticate',
    'proxy-authorization',
    'te',
    'trailers',
    'transfer-encoding',
    'upgrade',
    'host',
    'content-length',
    'content-encoding',
})

SERVICE_NAMES = {'plex': 'Plex', 'tautulli': 'Tautulli'}


class ProxyNotConfiguredError(Exception):
    """The target service has no URL configured."""


def filter_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    return {name: value for name, value in headers if name.lower() not in HOP_BY_HOP_HEADERS}


class ProxyService:
    """Forwards one request to an upstream service and returns its raw response."""

    def __init__(self, config: DashboardConfig, timeout: float = 30):
        self.config = config
        self.timeout = timeout

    def target_url(self, service: str) -> Optional[str]:
        url = self.config.plex_url if service == 'plex' else self.config.tautulli_url
        return url.rstrip('/') if url else None

    def forward(
        self,
        service: str,
        path: str,
        method: str,
        params: Iterable[tuple[str, str]],
        headers: Iterable[tuple[str, str]],
        body: bytes,
        remote_addr: Optional[str] = None,
    ) -> requests.Response:
        """
        Forward a request.

        Args:
            service: 'plex' or 'tautulli'
            path: Path below the service root
            method: HTTP method
            params: Query parameters as (name, value) pairs
            headers: Incoming request headers
            body: Raw request body
            remote_addr: Client address for X-Forwarded-For

        Returns:
            The upstream response (not raised for error statuses)

        Raises:
            ProxyNotConfiguredError: No URL configured for the service
            requests.RequestException: Transport failure
        """
        name = SERVICE_NAMES[service]
        target = self.target_url(service)
        if not target:
            raise ProxyNotConfiguredError(f"{name} URL not configured")

        params = list(params)
        outgoing = filter_headers(headers)
        if remote_addr:
            forwarded = outgoing.get('X-Forwarded-For')
            outgoing['X-Forwarded-For'] = f"{forwarded}, {remote_addr}" if forwarded else remote_addr

        if service == 'plex' and self.config.plex_token:
            outgoing.update(PLEX_CLIENT_HEADERS)
            if not any(key == 'X-Plex-Token' for key, _ in params):
                outgoing['X-Plex-Token'] = self.config.plex_token

        url = f"{target}/{path.lstrip('/')}"
        logger.debug("%s proxy request: %s %s", name, method, url)
        response = requests.request(
            method,
            url,
            params=params,
            headers=outgoing,
            data=body or None,
            timeout=self.timeout,
            verify=False,
            allow_redirects=False,
        )
        logger.debug("%s proxy response: %s %s", name, response.status_code, url)
        return response

    @staticmethod
    def response_headers(response: requests.Response) -> dict[str, str]:
        return filter_headers(response.headers.items())


def redact_headers(headers: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of request headers safe to log."""
    redacted = {}
    for name, value in headers.items():
        lowered = name.lower()
        redacted[name] = '[REDACTED]' if lowered in ('authorization', 'x-plex-token') else value
    return redacted
