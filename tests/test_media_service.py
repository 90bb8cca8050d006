import unittest
from unittest.mock import MagicMock

from flask_app.extensions import DashboardContext
from flask_app.services.media_service import MediaService, SectionNotFoundError
from plex_dashboard.api_client import UpstreamError
from plex_dashboard.cache import CacheSet
from plex_dashboard.models import FormatDefinition

SECTIONS = [
    {'section_id': 1, 'section_name': 'Movies', 'section_type': 'movie'},
    {'section_id': 2, 'section_name': 'Kids Movies', 'section_type': 'movie'},
    {'section_id': 3, 'section_name': 'TV Shows', 'section_type': 'show'},
]

ITEMS = {
    1: [{'title': 'Old', 'added_at': 100}, {'title': 'New', 'added_at': 900}],
    2: [{'title': 'Middle', 'added_at': 500}],
}


class MediaServiceTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.client.get_libraries_table.return_value = SECTIONS
        self.client.get_recently_added.side_effect = lambda section_id, count, include_details: ITEMS.get(section_id, [])
        self.client.get_library_media_info.return_value = {'count': 10, 'parent_count': 0}
        self.client.get_library_watch_time_stats.return_value = {'total_plays': 4, 'last_played': 'Dune'}

        settings = MagicMock()
        settings.tautulli_client.return_value = self.client
        self.formats = MagicMock()
        self.formats.definitions.return_value = []
        self.context = DashboardContext(
            settings=settings,
            formats=self.formats,
            sections=MagicMock(),
            caches=CacheSet.create(),
            refresher=MagicMock(),
            log_handler=MagicMock(),
        )

    def test_media_merged_across_sections(self):
        result = MediaService(self.context).get_media('movies')

        self.assertEqual(result['total'], 3)
        self.assertEqual([entry['media']['title'] for entry in result['media']], ['New', 'Middle', 'Old'])
        self.assertEqual(result['sections'], [{'id': 1, 'name': 'Movies'}, {'id': 2, 'name': 'Kids Movies'}])
        first = result['media'][0]['media']
        self.assertEqual(first['count'], 10)
        self.assertEqual(first['total_plays'], 4)
        self.assertEqual(first['library_name'], 'Movies')
        self.client.get_recently_added.assert_any_call(1, count=10, include_details=True)

    def test_count_and_section_filter(self):
        result = MediaService(self.context).get_media('movies', section='1', count=1)

        self.assertEqual([entry['media']['title'] for entry in result['media']], ['New'])
        self.assertEqual(result['sections'], [{'id': 1, 'name': 'Movies'}])

    def test_unknown_section(self):
        with self.assertRaises(SectionNotFoundError):
            MediaService(self.context).get_media('movies', section='3')

    def test_unsupported_type(self):
        with self.assertRaises(ValueError):
            MediaService(self.context).get_media('music')

    def test_section_formats(self):
        self.formats.definitions.return_value = [
            FormatDefinition(name='line', template='{library_name}: {title}', section_id='2'),
        ]

        result = MediaService(self.context).get_media('movies')

        self.assertEqual(result['media'][1]['line'], 'Kids Movies: Middle')
        self.assertEqual(result['media'][0]['formatted'], {})
        self.formats.definitions.assert_called_once_with('sections')

    def test_library_details_failure_zeroes_stats(self):
        self.client.get_library_watch_time_stats.side_effect = UpstreamError('timeout')

        details = MediaService(self.context).get_library_details(self.client, 1)

        self.assertEqual(details, {
            'count': 0,
            'parent_count': 0,
            'child_count': 0,
            'total_plays': 0,
            'last_accessed': None,
            'last_played': None,
        })


if __name__ == '__main__':
    unittest.main()
