import unittest
from unittest.mock import MagicMock

from flask_app.extensions import DashboardContext
from flask_app.services.users_service import UsersService
from plex_dashboard.api_client import UpstreamError
from plex_dashboard.cache import CacheSet, history_key
from plex_dashboard.models import FormatDefinition

SESSION = {
    'state': 'playing',
    'user_id': 2,
    'title': 'Ep',
    'grandparent_title': 'Show',
    'parent_media_index': 1,
    'media_index': 2,
    'media_type': 'episode',
    'view_offset': 60000,
    'duration': 1800000,
    'progress_percent': '3',
}

USERS = [
    {'user_id': 1, 'friendly_name': 'Alice', 'last_seen': 1700000000, 'last_played': 'Movie A', 'plays': '5'},
    {'user_id': 2, 'friendly_name': 'Bob', 'last_seen': 1600000000, 'last_played': 'Something'},
    {'user_id': 3, 'friendly_name': 'Local', 'last_seen': 1800000000, 'last_played': 'x'},
    {'user_id': 4, 'friendly_name': 'Carol', 'last_seen': 1700000500, 'last_played': None},
]

HISTORY = [{'media_type': 'movie', 'title': 'Movie A', 'rating_key': '9', 'year': 2010}]


def make_context(client, formats=None):
    settings = MagicMock()
    settings.tautulli_client.return_value = client
    format_store = MagicMock()
    format_store.definitions.return_value = [FormatDefinition.from_dict(f) for f in formats or []]
    return DashboardContext(
        settings=settings,
        formats=format_store,
        sections=MagicMock(),
        caches=CacheSet.create(),
        refresher=MagicMock(),
        log_handler=MagicMock(),
    )


def make_client():
    client = MagicMock()
    client.get_activity.return_value = [SESSION, {'state': 'paused', 'user_id': 1}]
    client.get_users_table.return_value = USERS
    client.get_history.return_value = HISTORY
    client.get_metadata.return_value = {'duration': '5400000'}
    return client


class UsersServiceTests(unittest.TestCase):
    def test_users_sorted_watching_first(self):
        client = make_client()
        service = UsersService(make_context(client))

        result = service.get_users()

        self.assertTrue(result['success'])
        self.assertEqual(result['total'], 3)
        self.assertEqual(result['requestedCount'], 50)
        names = [user['raw_data']['friendly_name'] for user in result['users']]
        self.assertEqual(names, ['Bob', 'Carol', 'Alice'])
        client.get_users_table.assert_called_once_with(1000)

    def test_watching_user_record(self):
        service = UsersService(make_context(make_client()))

        bob = service.get_users()['users'][0]['raw_data']

        self.assertTrue(bob['is_active'])
        self.assertEqual(bob['state'], 'watching')
        self.assertEqual(bob['last_seen_formatted'], '\U0001F7E2')
        self.assertEqual(bob['media_type'], 'Episode')
        self.assertEqual(bob['last_played'], 'Show - Ep')
        self.assertEqual(bob['last_played_modified'], 'Show - S01E02')
        self.assertEqual(bob['progress_percent'], '3%')
        self.assertEqual(bob['progress_time'], '00:01 / 00:30')
        self.assertEqual(bob['formatted_duration'], '30m')
        self.assertEqual(bob['parent_media_index'], '01')
        self.assertEqual(bob['media_index'], '02')

    def test_history_fills_idle_users(self):
        client = make_client()
        service = UsersService(make_context(client))

        result = service.get_users()
        alice = result['users'][2]['raw_data']
        carol = result['users'][1]['raw_data']

        self.assertEqual(alice['media_type'], 'Movie')
        self.assertEqual(alice['title'], 'Movie A')
        self.assertEqual(alice['formatted_duration'], '1h 30m')
        self.assertEqual(alice['plays'], 5)
        self.assertEqual(carol['last_played'], 'Nothing')
        self.assertEqual(carol['formatted_duration'], '0m')
        self.assertEqual(result['cache'], {'hits': 0, 'misses': 1, 'total': 1})
        client.get_history.assert_called_once_with(user_id=1, length=1)
        client.get_metadata.assert_called_once_with('9', timeout=5)

    def test_history_is_cached_between_requests(self):
        client = make_client()
        service = UsersService(make_context(client))

        service.get_users()
        result = service.get_users()

        self.assertEqual(result['cache'], {'hits': 1, 'misses': 0, 'total': 1})
        self.assertEqual(result['users'][2]['raw_data']['formatted_duration'], '1h 30m')
        client.get_history.assert_called_once()

        service.get_users(force_refresh=True)
        self.assertEqual(client.get_history.call_count, 2)

    def test_watching_user_drops_cached_history(self):
        context = make_context(make_client())
        context.caches.history.set(history_key(2), {'title': 'Old'})

        UsersService(context).get_users()

        self.assertIsNone(context.caches.history.get(history_key(2)))

    def test_formats_filtered_by_media_type(self):
        formats = [
            {'name': 'who', 'template': '{friendly_name}'},
            {'name': 'movie_line', 'template': '{friendly_name}: {title}', 'mediaType': 'movie'},
        ]
        service = UsersService(make_context(make_client(), formats))

        users = service.get_users()['users']

        self.assertEqual(users[0]['formatted'], {'who': 'Bob'})
        self.assertEqual(users[2]['formatted'], {'who': 'Alice', 'movie_line': 'Alice: Movie A'})
        self.assertEqual(users[2]['movie_line'], 'Alice: Movie A')

    def test_count_limits_users_not_total(self):
        service = UsersService(make_context(make_client()))

        result = service.get_users(count=1)

        self.assertEqual(result['total'], 3)
        self.assertEqual(len(result['users']), 1)
        self.assertEqual(result['requestedCount'], 1)

    def test_history_failure_marks_duration_unknown(self):
        client = make_client()
        client.get_history.side_effect = UpstreamError('timeout')
        service = UsersService(make_context(client))

        alice = service.get_users()['users'][2]['raw_data']

        self.assertEqual(alice['formatted_duration'], 'Unknown')
        self.assertEqual(alice['last_played'], 'Movie A')

    def test_initial_fetch_failure(self):
        client = make_client()
        client.get_activity.side_effect = UpstreamError('refused')
        service = UsersService(make_context(client))

        with self.assertRaises(UpstreamError) as ctx:
            service.get_users()
        self.assertEqual(str(ctx.exception), 'Failed to fetch initial user data: refused')


if __name__ == '__main__':
    unittest.main()
