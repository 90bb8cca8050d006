import os
import unittest
from unittest.mock import patch

from plex_dashboard.models import FormatDefinition, MediaItem
from plex_dashboard.templating import (
    FIELD_RULES,
    FieldRule,
    apply_formats,
    formatted_entry,
    is_episode_like,
    render,
    select_formats,
    to_text,
)


class RenderTests(unittest.TestCase):
    def test_empty_template(self):
        self.assertEqual(render('', {'title': 'X'}), '')
        self.assertEqual(render(None, {'title': 'X'}), '')

    def test_plain_substitution(self):
        self.assertEqual(render('{title} ({year})', {'title': 'Dune', 'year': 2021}), 'Dune (2021)')

    def test_missing_key_is_left_in_place(self):
        self.assertEqual(render('{title} - {missing}', {'title': 'X'}), 'X - {missing}')

    def test_none_renders_empty(self):
        self.assertEqual(render('[{rating}]', {'rating': None}), '[]')

    def test_repeated_variable_is_replaced_everywhere(self):
        self.assertEqual(render('{title}/{title}/{title}', {'title': 'A'}), 'A/A/A')

    def test_scalars(self):
        self.assertEqual(to_text(True), 'true')
        self.assertEqual(to_text(False), 'false')
        self.assertEqual(to_text(8.0), '8')
        self.assertEqual(to_text(7.5), '7.5')
        self.assertEqual(render('{rating}', {'rating': 8.0}), '8')

    def test_duration_field(self):
        self.assertEqual(render('{title} ({duration})', {'title': 'X', 'duration': 5400}), 'X (1h 30m)')
        self.assertEqual(render('{duration}', {'duration': '2h 15m'}), '2h 15m')
        self.assertEqual(render('{duration}', {}), '0m')

    def test_timestamp_field_with_modifier(self):
        with patch.dict(os.environ, {'TZ': 'UTC'}):
            data = {'added_at': 1700000000}
            self.assertEqual(render('{added_at:short}', data), 'Nov 14')
            self.assertEqual(render('{added_at}', data), 'November 14, 2023')
            self.assertEqual(render('{added_at:time}', data), '10:13 PM')
            self.assertTrue(render('{added_at:relative}', data).endswith('ago'))
        self.assertEqual(render('{last_viewed_at}', {}), 'Never')

    def test_array_field(self):
        self.assertEqual(render('{genres}', {'genres': ['Drama', 'Comedy']}), 'Drama, Comedy')
        self.assertEqual(render('[{genres}]', {'genres': []}), '[]')

    def test_episode_pair(self):
        data = {'mediaType': 'episode', 'parent_media_index': 1, 'media_index': 5, 'grandparent_title': 'Show'}
        self.assertEqual(render('{grandparent_title} {parent_media_index}E{media_index}', data), 'Show S01E05')

    def test_episode_pair_for_shows_type(self):
        data = {'media_type': 'shows', 'parent_media_index': '2', 'media_index': '10'}
        self.assertEqual(render('{parent_media_index}E{media_index}', data), 'S02E10')

    def test_single_episode_indexes_get_prefixes(self):
        data = {'media_type': 'episode', 'parent_media_index': 3, 'media_index': 7}
        self.assertEqual(render('{parent_media_index} / {media_index}', data), 'S03 / E07')

    def test_indexes_on_non_episode_records_are_plain(self):
        data = {'media_type': 'movie', 'parent_media_index': 1, 'media_index': 5}
        self.assertEqual(render('{parent_media_index}E{media_index}', data), '1E5')

    def test_failing_rule_blanks_only_that_variable(self):
        def explode(key, modifier, data):
            raise RuntimeError('boom')

        rules = (FieldRule('broken', lambda key, data: key == 'bad', explode),) + FIELD_RULES
        with self.assertLogs('plex_dashboard.templating', level='ERROR'):
            result = render('{title}:{bad}:{year}', {'title': 'X', 'bad': 1, 'year': 2000}, rules)
        self.assertEqual(result, 'X::2000')

    def test_media_item_is_a_record(self):
        item = MediaItem.from_upstream({'title': 'X', 'media_type': 'episode', 'parent_media_index': 1, 'media_index': 2})
        self.assertEqual(render('{title} {parent_media_index}E{media_index}', item), 'X S01E02')

    def test_is_episode_like(self):
        self.assertTrue(is_episode_like({'mediaType': 'Episode'}))
        self.assertTrue(is_episode_like({'media_type': 'show'}))
        self.assertFalse(is_episode_like({'media_type': 'movie'}))
        self.assertFalse(is_episode_like({}))


class SelectFormatsTests(unittest.TestCase):
    def setUp(self):
        self.formats = [
            FormatDefinition(name='a', template='{title}', section_id='all', type='movies'),
            FormatDefinition(name='b', template='{title}', section_id='2', type='movies'),
            FormatDefinition(name='c', template='{title}', section_id='all', type='shows'),
            FormatDefinition(name='d', template='{title}', media_type='movie'),
        ]

    def test_no_criteria_keeps_everything(self):
        self.assertEqual([f.name for f in select_formats(self.formats)], ['a', 'b', 'c', 'd'])

    def test_section_filter(self):
        names = [f.name for f in select_formats(self.formats, section_id=1)]
        self.assertEqual(names, ['a', 'c', 'd'])
        names = [f.name for f in select_formats(self.formats, section_id=2)]
        self.assertEqual(names, ['a', 'b', 'c', 'd'])

    def test_type_filter(self):
        names = [f.name for f in select_formats(self.formats, section_id=2, format_type='movies')]
        self.assertEqual(names, ['a', 'b'])

    def test_media_type_filter_keeps_untyped_formats(self):
        names = [f.name for f in select_formats(self.formats, media_type='episode')]
        self.assertEqual(names, ['a', 'b', 'c'])
        names = [f.name for f in select_formats(self.formats, media_type='movie')]
        self.assertEqual(names, ['a', 'b', 'c', 'd'])


class ApplyFormatsTests(unittest.TestCase):
    def test_keys_by_format_name(self):
        formats = [
            FormatDefinition(name='line', template='{title} ({duration})'),
            FormatDefinition(name='genre', template='{genres}'),
        ]
        output = apply_formats(formats, {'title': 'X', 'duration': 5400, 'genres': ['Drama']})
        self.assertEqual(output, {'line': 'X (1h 30m)', 'genre': 'Drama'})

    def test_formatted_entry(self):
        entry = formatted_entry({'line': 'X'}, {'title': 'X'})
        self.assertEqual(entry['line'], 'X')
        self.assertEqual(entry['formatted'], {'line': 'X'})
        self.assertEqual(entry['raw_data'], {'title': 'X'})

        entry = formatted_entry({}, {'title': 'X'}, raw_key='media')
        self.assertEqual(entry, {'formatted': {}, 'media': {'title': 'X'}})


if __name__ == '__main__':
    unittest.main()
