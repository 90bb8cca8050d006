"""
HTTP clients for the analytics (Tautulli) and media server (Plex) APIs.
"""

from typing import Any, Optional

import requests
import urllib3

from plex_dashboard.models import DashboardConfig

# Suppress SSL warnings for self-signed certificates
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

DEFAULT_TIMEOUT = 10  # seconds

PLEX_CLIENT_HEADERS = {
    'X-Plex-Client-Identifier': 'PlexTautulliDashboard',
    'X-Plex-Product': 'Plex Tautulli Dashboard',
    'X-Plex-Version': '1.0.0',
}


class UpstreamError(Exception):
    """An upstream API call failed or returned an unusable response."""

    def __init__(self, message: str, detail: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.detail = detail
        self.status_code = status_code


def _error_detail(error: requests.RequestException) -> Any:
    response = getattr(error, 'response', None)
    if response is None:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _get_json(url: str, service: str, **kwargs: Any) -> Any:
    try:
        response = requests.get(url, **kwargs)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        status = e.response.status_code if getattr(e, 'response', None) is not None else None
        raise UpstreamError(f"{service} request failed: {e}", detail=_error_detail(e), status_code=status) from e
    except ValueError as e:
        raise UpstreamError(f"{service} returned invalid JSON: {e}") from e


class TautulliClient:
    """Client for the Tautulli v2 command API."""

    def __init__(self, base_url: str, api_key: str, timeout: float = DEFAULT_TIMEOUT,
                 verify_ssl: bool = False):
        """
        Initialize Tautulli client.

        Args:
            base_url: Tautulli root URL, e.g. http://192.168.1.10:8181
            api_key: Tautulli API key
            timeout: Default per-call timeout in seconds
            verify_ssl: Verify TLS certificates
        """
        self.base_url = (base_url or '').rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    @classmethod
    def from_config(cls, config: DashboardConfig, timeout: float = DEFAULT_TIMEOUT) -> 'TautulliClient':
        if not config.has_tautulli:
            raise UpstreamError('Tautulli is not configured')
        return cls(config.tautulli_url, config.tautulli_api_key, timeout=timeout)

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/v2"

    def _make_request(self, command: str, timeout: Optional[float] = None, **params: Any) -> dict[str, Any]:
        """
        Make a request to the Tautulli API.

        Args:
            command: API command to execute
            timeout: Override of the default timeout
            **params: Additional parameters for the API call

        Returns:
            JSON response from the API

        Raises:
            UpstreamError: If the request fails
        """
        query = {'apikey': self.api_key, 'cmd': command}
        query.update({key: value for key, value in params.items() if value is not None})
        return _get_json(
            self.api_url,
            f"Tautulli '{command}'",
            params=query,
            timeout=timeout or self.timeout,
            verify=self.verify_ssl,
        )

    def _data(self, command: str, timeout: Optional[float] = None, **params: Any) -> Any:
        """Run a command and unwrap ``response.data`` from a successful envelope."""
        payload = self._make_request(command, timeout=timeout, **params)
        envelope = payload.get('response') if isinstance(payload, dict) else None
        if not isinstance(envelope, dict) or envelope.get('result') != 'success':
            message = envelope.get('message') if isinstance(envelope, dict) else None
            raise UpstreamError(
                f"Tautulli '{command}' was not successful: {message or 'unexpected response'}",
                detail=payload,
            )
        return envelope.get('data')

    def get_libraries_table(self) -> list[dict[str, Any]]:
        """Get every library section with counts and last played info."""
        data = self._data('get_libraries_table') or {}
        return data.get('data') or []

    def get_recently_added(self, section_id: Any, count: int = 50,
                           include_details: bool = False) -> list[dict[str, Any]]:
        """
        Get recently added items of one library section.

        Args:
            section_id: Library section ID
            count: Number of items to return
            include_details: Ask for the extended item fields

        Returns:
            Items, newest first
        """
        data = self._data(
            'get_recently_added',
            section_id=section_id,
            count=count,
            include_details=1 if include_details else None,
        ) or {}
        return data.get('recently_added') or []

    def get_metadata(self, rating_key: Any, timeout: Optional[float] = None) -> dict[str, Any]:
        """
        Get metadata for a specific media item.

        Args:
            rating_key: The rating key of the media item
            timeout: Override of the default timeout

        Returns:
            Metadata including media_info, ratings and summary
        """
        return self._data('get_metadata', timeout=timeout, rating_key=rating_key) or {}

    def get_library_media_info(self, section_id: Any) -> dict[str, Any]:
        """Get item counts for a library section."""
        return self._data('get_library_media_info', section_id=section_id) or {}

    def get_library_watch_time_stats(self, section_id: Any) -> dict[str, Any]:
        """
        Get watch statistics for a library section.

        Tautulli answers with one row per query period; the all-time row
        (query_days 0) is returned when present.
        """
        data = self._data('get_library_watch_time_stats', section_id=section_id)
        if isinstance(data, list):
            all_time = [row for row in data if str(row.get('query_days')) == '0']
            rows = all_time or data
            return rows[0] if rows else {}
        return data or {}

    def get_activity(self) -> list[dict[str, Any]]:
        """Get current streaming sessions."""
        data = self._data('get_activity') or {}
        return data.get('sessions') or []

    def get_users_table(self, length: int = 1000) -> list[dict[str, Any]]:
        """Get users with play counts and last seen info."""
        data = self._data('get_users_table', length=length) or {}
        return data.get('data') or []

    def get_history(self, user_id: Any = None, length: int = 25) -> list[dict[str, Any]]:
        """
        Get play history rows, newest first.

        Args:
            user_id: Optional user ID to filter results for a specific user
            length: Maximum number of rows

        Returns:
            History rows
        """
        data = self._data('get_history', user_id=user_id, length=length) or {}
        return data.get('data') or []

    def status(self, timeout: Optional[float] = None) -> dict[str, Any]:
        """
        Raw 'status' envelope.

        Unlike the data commands this does not check ``result`` so callers can
        tell an unreachable server (UpstreamError) from an unhealthy answer.
        """
        return self._make_request('status', timeout=timeout)


class PlexClient:
    """Client for the Plex Media Server JSON API."""

    def __init__(self, base_url: str, token: str, timeout: float = DEFAULT_TIMEOUT,
                 verify_ssl: bool = False):
        self.base_url = (base_url or '').rstrip('/')
        self.token = token
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    @classmethod
    def from_config(cls, config: DashboardConfig, timeout: float = DEFAULT_TIMEOUT) -> 'PlexClient':
        if not config.has_plex:
            raise UpstreamError('Plex is not configured')
        return cls(config.plex_url, config.plex_token, timeout=timeout)

    @property
    def headers(self) -> dict[str, str]:
        headers = dict(PLEX_CLIENT_HEADERS)
        headers['Accept'] = 'application/json'
        headers['X-Plex-Token'] = self.token
        return headers

    def _get(self, path: str, timeout: Optional[float] = None) -> dict[str, Any]:
        payload = _get_json(
            f"{self.base_url}{path}",
            f"Plex '{path}'",
            headers=self.headers,
            timeout=timeout or self.timeout,
            verify=self.verify_ssl,
        )
        return (payload or {}).get('MediaContainer') or {}

    def get_activities(self) -> list[dict[str, Any]]:
        """Server activities such as downloads, transcodes and library scans."""
        return self._get('/activities').get('Activity') or []

    def get_identity(self, timeout: Optional[float] = None) -> dict[str, Any]:
        return self._get('/identity', timeout=timeout)
