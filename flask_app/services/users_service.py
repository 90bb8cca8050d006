"""
Service for the users widget: who is watching now and what everyone else watched last.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from flask_app.extensions import DashboardContext
from flask_app.services.utils import capitalize_first, fan_out, now_ms
from plex_dashboard.api_client import TautulliClient, UpstreamError
from plex_dashboard.cache import history_key
from plex_dashboard.formatters import format_duration, format_show_title, format_time_diff, format_time_hhmm
from plex_dashboard.templating import apply_formats, formatted_entry, select_formats
from plex_dashboard.utils import new_request_id, pad_two, to_int

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 50
USERS_TABLE_LENGTH = 1000
EXCLUDED_USERS = frozenset({'Local'})
WATCHING_MARKER = '\U0001F7E2'
NOTHING_PLAYED = 'Nothing'

# Fields copied from a cached history entry onto the user record
HISTORY_FIELDS = (
    'media_type',
    'title',
    'original_title',
    'year',
    'full_title',
    'parent_title',
    'grandparent_title',
    'media_index',
    'parent_media_index',
)


def _padded_index(value: Any) -> str:
    return pad_two(value) if value not in (None, '') else ''


def watching_entry(session: dict[str, Any], now: float) -> dict[str, Any]:
    """Summary of a playing session, keyed the way user records are."""
    grandparent_title = session.get('grandparent_title')
    title = session.get('title') or ''
    return {
        'current_media': f"{grandparent_title} - {title}" if grandparent_title else title,
        'last_played_modified': format_show_title(session),
        'media_type': session.get('media_type') or '',
        'progress_percent': session.get('progress_percent') or '0',
        'view_offset': (to_int(session.get('view_offset')) or 0) // 1000,
        'duration': (to_int(session.get('duration')) or 0) // 1000,
        'media_duration': to_int(session.get('duration')) or 0,
        'last_seen': int(now),
        'parent_media_index': session.get('parent_media_index'),
        'media_index': session.get('media_index'),
        'title': title,
        'full_title': session.get('full_title') or '',
        'parent_title': session.get('parent_title') or '',
        'grandparent_title': grandparent_title or '',
        'original_title': session.get('original_title') or '',
        'year': session.get('year') or '',
        'rating_key': session.get('rating_key'),
    }


def history_entry(history_item: dict[str, Any]) -> dict[str, Any]:
    """Cacheable summary of a user's most recent history row."""
    entry = {
        'media_type': capitalize_first(history_item.get('media_type')),
        'media_index': _padded_index(history_item.get('media_index') or None),
        'parent_media_index': _padded_index(history_item.get('parent_media_index') or None),
        'last_played_modified': format_show_title(history_item),
        'media_duration': history_item.get('media_duration') or 0,
        'timestamp': now_ms(),
    }
    for field in ('title', 'original_title', 'year', 'full_title', 'parent_title', 'grandparent_title'):
        entry[field] = history_item.get(field) or ''
    return entry


class UsersService:
    """Service building the user list with current and last played media."""

    def __init__(self, context: DashboardContext):
        self.context = context
        self.history_cache = context.caches.history

    def get_users(self, count: int = DEFAULT_COUNT, force_refresh: bool = False) -> dict[str, Any]:
        """
        Users sorted by activity, most recently active first.

        Args:
            count: Maximum number of users returned
            force_refresh: Ignore cached history entries

        Returns:
            Response payload with formatted users and cache counters

        Raises:
            UpstreamError: Sessions or the users table could not be fetched
        """
        request_id = new_request_id()
        logger.info("[%s] Starting users request", request_id)

        client = self.context.settings.tautulli_client()
        formats = self.context.formats.definitions('users')

        try:
            with ThreadPoolExecutor(max_workers=2) as executor:
                sessions_future = executor.submit(client.get_activity)
                users_future = executor.submit(client.get_users_table, USERS_TABLE_LENGTH)
                sessions = sessions_future.result()
                all_users = users_future.result()
        except UpstreamError as e:
            logger.exception("[%s] Error fetching initial data", request_id)
            raise UpstreamError(f"Failed to fetch initial user data: {e}", detail=e.detail) from e

        logger.info("[%s] Fetched %d active sessions and %d users", request_id, len(sessions), len(all_users))

        now = time.time()
        watching = {
            str(session.get('user_id')): watching_entry(session, now)
            for session in sessions if session.get('state') == 'playing'
        }

        def sort_key(user: dict[str, Any]) -> tuple[int, float]:
            if str(user.get('user_id')) in watching:
                return 1, now
            return 0, to_int(user.get('last_seen')) or 0

        candidates = [user for user in all_users if user.get('friendly_name') not in EXCLUDED_USERS]
        candidates.sort(key=sort_key, reverse=True)
        limited = candidates[:count]
        logger.info("[%s] Processing %d users (top %d active users)", request_id, len(limited), count)

        records = []
        for user in limited:
            session = watching.get(str(user.get('user_id')))
            if session:
                self.history_cache.delete(history_key(user.get('user_id')))
            records.append(self._base_record(user, session))

        hits = 0
        pending = []
        for index, record in enumerate(records):
            if record['is_active']:
                if record['duration']:
                    record['formatted_duration'] = format_duration(record['duration'])
                continue
            if record['last_played'] == NOTHING_PLAYED:
                continue

            cached = None if force_refresh else self.history_cache.get(history_key(record['user_id']))
            if cached:
                logger.debug("[%s] Using cached history for user %s", request_id, record['user_id'])
                self._apply_history(record, cached)
                hits += 1
            else:
                pending.append(index)

        if pending:
            logger.info("[%s] Fetching history for %d users", request_id, len(pending))
            results = fan_out(
                lambda index: self._fetch_history(client, records[index]['user_id'], request_id),
                pending,
            )
            for index, history_item in zip(pending, results):
                record = records[index]
                if history_item:
                    entry = history_entry(history_item)
                    self._apply_history(record, entry)
                    self.history_cache.set(history_key(record['user_id']), entry)
                else:
                    record['formatted_duration'] = 'Unknown'
                    logger.warning("[%s] No history for user %s", request_id, record['friendly_name'])

        for record in records:
            if not record['formatted_duration']:
                record['formatted_duration'] = format_duration(record['duration']) if record['duration'] else '0m'

        users = []
        for record in records:
            media_type = str(record.get('media_type') or '').lower()
            applicable = select_formats(formats, media_type=media_type)
            users.append(formatted_entry(apply_formats(applicable, record), record))

        logger.info("[%s] Sending response with %d users", request_id, len(users))
        return {
            'success': True,
            'total': len(candidates),
            'requestedCount': count,
            'users': users,
            'cache': {
                'hits': hits,
                'misses': len(pending),
                'total': len(self.history_cache),
            },
        }

    @staticmethod
    def _base_record(user: dict[str, Any], session: Optional[dict[str, Any]]) -> dict[str, Any]:
        """User record before history lookups; a playing session fills the media fields."""
        last_played = user.get('last_played') or NOTHING_PLAYED
        record = {
            'friendly_name': user.get('friendly_name') or '',
            'user_id': user.get('user_id'),
            'email': user.get('email') or '',
            'plays': to_int(user.get('plays')) or 0,
            'duration': session['media_duration'] if session else 0,
            'formatted_duration': '',
            'last_seen': session['last_seen'] if session else to_int(user.get('last_seen')),
            'last_seen_formatted': WATCHING_MARKER if session else (
                format_time_diff(user.get('last_seen')) if user.get('last_seen') else 'Never'
            ),
            'is_active': bool(session),
            'is_watching': 'Watching' if session else 'Watched',
            'state': 'watching' if session else 'watched',
            'last_played': session['current_media'] if session else last_played,
            'last_played_modified': session['last_played_modified'] if session else last_played,
        }

        if session:
            record.update({
                'media_type': capitalize_first(session['media_type']),
                'progress_percent': f"{session['progress_percent']}%",
                'progress_time': (
                    f"{format_time_hhmm(session['view_offset'] * 1000)} / "
                    f"{format_time_hhmm(session['duration'] * 1000)}"
                ),
                'title': session['title'],
                'original_title': session['original_title'],
                'year': session['year'],
                'full_title': session['full_title'],
                'parent_title': session['parent_title'],
                'grandparent_title': session['grandparent_title'],
                'media_index': _padded_index(session['media_index']),
                'parent_media_index': _padded_index(session['parent_media_index']),
            })
        else:
            record.update({field: '' for field in HISTORY_FIELDS})
            record.update({'progress_percent': '', 'progress_time': ''})
        return record

    @staticmethod
    def _apply_history(record: dict[str, Any], entry: dict[str, Any]) -> None:
        for field in HISTORY_FIELDS:
            record[field] = entry.get(field) or ''
        record['last_played_modified'] = entry.get('last_played_modified') or record['last_played']
        record['duration'] = entry.get('media_duration') or 0
        record['formatted_duration'] = format_duration(record['duration'])

    def _fetch_history(self, client: TautulliClient, user_id: Any, request_id: str) -> Optional[dict[str, Any]]:
        """Most recent history row of a user with the item's full duration; None on failure."""
        try:
            rows = client.get_history(user_id=user_id, length=1)
        except UpstreamError:
            logger.exception("[%s] Error fetching history for user %s", request_id, user_id)
            return None

        if not rows:
            logger.debug("[%s] No history found for user %s", request_id, user_id)
            return None

        history_item = dict(rows[0])
        rating_key = history_item.get('rating_key')
        if rating_key:
            try:
                metadata = client.get_metadata(rating_key, timeout=self.context.metadata_timeout)
            except UpstreamError:
                logger.exception("[%s] Error fetching metadata for %s", request_id, rating_key)
            else:
                if metadata.get('duration'):
                    history_item['media_duration'] = metadata['duration']
        return history_item
