import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from flask_app.services.format_store import FORMAT_TYPES, FormatStore
from flask_app.services.section_store import SectionStore
from plex_dashboard.json_store import JsonFileStore


class JsonFileStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / 'nested' / 'doc.json'
        self.store = JsonFileStore(self.path, lambda: {'items': []})

    def test_missing_document_is_created(self):
        self.assertEqual(self.store.load(), {'items': []})
        self.assertTrue(self.path.exists())

    def test_save_leaves_no_temp_files(self):
        self.store.save({'items': [1, 2]})
        self.assertEqual(json.loads(self.path.read_text(encoding='utf-8')), {'items': [1, 2]})
        self.assertEqual([p.name for p in self.path.parent.iterdir()], ['doc.json'])

    def test_failed_save_keeps_previous_document(self):
        self.store.save({'items': [1]})
        with self.assertRaises(TypeError):
            self.store.save({'items': {object()}})
        self.assertEqual(self.store.load(), {'items': [1]})
        self.assertEqual([p.name for p in self.path.parent.iterdir()], ['doc.json'])

    def test_malformed_document_reads_as_default(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text('{"items": [', encoding='utf-8')
        self.assertEqual(self.store.load(), {'items': []})


class FormatStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.store = FormatStore(self.tmp.name)

    def test_defaults_have_every_type(self):
        self.assertEqual(self.store.get_formats(), {format_type: [] for format_type in FORMAT_TYPES})

    def test_partial_file_is_filled_in(self):
        path = Path(self.tmp.name) / 'formats.json'
        path.write_text(json.dumps({'users': [{'name': 'u', 'template': '{friendly_name}'}, 'junk'], 'downloads': 3}))

        formats = self.store.get_formats()

        self.assertEqual(formats['users'], [{'name': 'u', 'template': '{friendly_name}'}])
        self.assertEqual(formats['downloads'], [])
        self.assertEqual(formats['recentlyAdded'], [])

    def test_update_replaces_one_type_only(self):
        self.store.update('users', [{'name': 'u', 'template': '{friendly_name}'}])
        result = self.store.update('recentlyAdded', [{'name': 'r', 'template': '{title}', 'type': 'movies'}])

        self.assertEqual(result['users'], [{'name': 'u', 'template': '{friendly_name}'}])
        self.assertEqual(self.store.get_formats()['recentlyAdded'][0]['name'], 'r')

    def test_library_formats_default_media_type(self):
        result = self.store.update('libraries', [
            {'name': 'a', 'template': '{section_name}', 'sectionId': '1'},
            {'name': 'b', 'template': '{count}', 'sectionId': '2', 'mediaType': 'shows'},
        ])
        self.assertEqual([f['mediaType'] for f in result['libraries']], ['movies', 'shows'])

    def test_definitions(self):
        self.store.update('recentlyAdded', [{'name': 'r', 'template': '{title}', 'sectionId': 3, 'type': 'movies'}])
        definition = self.store.definitions('recentlyAdded')[0]
        self.assertEqual(definition.section_id, '3')
        self.assertEqual(definition.type, 'movies')

    def test_save_failure_is_reported(self):
        with patch.object(self.store.store, 'save', side_effect=OSError('read-only')):
            self.assertFalse(self.store.save_formats({'users': []}))
            self.assertIsNone(self.store.update('users', []))


class SectionStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.store = SectionStore(self.tmp.name)

    def test_empty_by_default(self):
        self.assertEqual(self.store.load(), [])

    def test_non_list_file(self):
        (Path(self.tmp.name) / 'sections.json').write_text('{"section_id": 1}', encoding='utf-8')
        self.assertEqual(self.store.load(), [])

    def test_save_and_reset(self):
        self.store.save([{'section_id': 1, 'type': 'movies'}, 'junk'])
        self.assertEqual(self.store.load(), [{'section_id': 1, 'type': 'movies'}])
        self.store.reset()
        self.assertEqual(self.store.load(), [])


if __name__ == '__main__':
    unittest.main()
