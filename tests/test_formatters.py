import os
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from plex_dashboard.formatters import (
    format_array,
    format_date,
    format_duration,
    format_episode_code,
    format_show_title,
    format_time_diff,
    format_time_hhmm,
    parse_timestamp,
    strip_title_year,
)

# 2023-11-14 22:13:20 UTC
TIMESTAMP = 1700000000
MOMENT = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


class FormatDateTests(unittest.TestCase):
    def setUp(self):
        patcher = patch.dict(os.environ, {'TZ': 'UTC'})
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_empty_values_are_never(self):
        for value in (None, 0, '', False):
            self.assertEqual(format_date(value, 'relative'), 'Never')
            self.assertEqual(format_date(value), 'Never')

    def test_seconds_and_milliseconds_resolve_to_same_moment(self):
        self.assertEqual(parse_timestamp(TIMESTAMP), MOMENT)
        self.assertEqual(parse_timestamp(TIMESTAMP * 1000), MOMENT)
        self.assertEqual(parse_timestamp(str(TIMESTAMP)), MOMENT)

    def test_seconds_threshold(self):
        # Just below 2**32 is still seconds, 2**32 itself is milliseconds
        below = parse_timestamp(4294967295)
        at = parse_timestamp(4294967296)
        self.assertEqual(below.year, 2106)
        self.assertEqual(at.year, 1970)

    def test_display_formats(self):
        self.assertEqual(format_date(TIMESTAMP), 'November 14, 2023')
        self.assertEqual(format_date(TIMESTAMP, 'default'), 'November 14, 2023')
        self.assertEqual(format_date(TIMESTAMP, 'short'), 'Nov 14')
        self.assertEqual(format_date(TIMESTAMP, 'full'), 'Tuesday, November 14, 2023')
        self.assertEqual(format_date(TIMESTAMP, 'time'), '10:13 PM')

    def test_unknown_format_falls_back_to_default(self):
        self.assertEqual(format_date(TIMESTAMP, 'fancy'), 'November 14, 2023')

    def test_display_uses_configured_timezone(self):
        with patch.dict(os.environ, {'TZ': 'America/Los_Angeles'}):
            self.assertEqual(format_date(TIMESTAMP, 'time'), '02:13 PM')

    def test_iso_strings(self):
        self.assertEqual(format_date('2023-11-14'), 'November 14, 2023')
        self.assertEqual(format_date('2023-11-14T22:13:20+00:00', 'short'), 'Nov 14')

    def test_invalid_input(self):
        self.assertEqual(format_date('not a date'), 'Invalid Date')
        self.assertEqual(format_date('2023-13-45'), 'Invalid Date')
        self.assertEqual(format_date(['x']), 'Invalid Date')

    def test_relative_past_timestamp_ends_with_ago(self):
        self.assertTrue(format_date(TIMESTAMP, 'relative').endswith('ago'))

    def test_relative_buckets(self):
        cases = [
            (timedelta(seconds=0), '0 seconds ago'),
            (timedelta(seconds=1), '1 second ago'),
            (timedelta(seconds=45), '45 seconds ago'),
            (timedelta(minutes=1), '1 minute ago'),
            (timedelta(hours=5), '5 hours ago'),
            (timedelta(days=1), '1 day ago'),
            (timedelta(days=3), '3 days ago'),
            (timedelta(days=60), '2 months ago'),
            (timedelta(days=400), '1 year ago'),
            (timedelta(days=800), '2 years ago'),
        ]
        for delta, expected in cases:
            with self.subTest(delta=delta):
                self.assertEqual(format_date(TIMESTAMP, 'relative', now=MOMENT + delta), expected)

    def test_relative_future_date_is_absolute(self):
        self.assertEqual(format_date(TIMESTAMP, 'relative', now=MOMENT - timedelta(days=2)), '11/14/2023')


class FormatDurationTests(unittest.TestCase):
    def test_small_values_are_seconds(self):
        self.assertEqual(format_duration(5400), '1h 30m')
        self.assertEqual(format_duration(90), '1m')
        self.assertEqual(format_duration(3600), '1h')
        self.assertEqual(format_duration(9999), '2h 46m')

    def test_large_values_are_milliseconds(self):
        self.assertEqual(format_duration(10000), '0m')
        self.assertEqual(format_duration(5400000), '1h 30m')
        self.assertEqual(format_duration('5400000'), '1h 30m')
        self.assertEqual(format_duration(60000), '1m')

    def test_empty_or_negative(self):
        for value in (None, 0, '', -5, 'abc'):
            with self.subTest(value=value):
                self.assertEqual(format_duration(value), '0m')

    def test_formatted_strings_pass_through(self):
        for value in ('2h 15m', '45m', '3h', ' 45m '):
            with self.subTest(value=value):
                self.assertEqual(format_duration(value), value.strip())
                self.assertEqual(format_duration(format_duration(value)), value.strip())


class SmallFormatterTests(unittest.TestCase):
    def test_episode_code(self):
        self.assertEqual(format_episode_code(1, 5), 'S01E05')
        self.assertEqual(format_episode_code('12', 103), 'S12E103')

    def test_array(self):
        self.assertEqual(format_array(['Drama', 'Comedy']), 'Drama, Comedy')
        self.assertEqual(format_array([]), '')
        self.assertEqual(format_array('Drama'), '')

    def test_time_hhmm(self):
        self.assertEqual(format_time_hhmm(3723000), '01:02')
        self.assertEqual(format_time_hhmm(0), '00:00')
        self.assertEqual(format_time_hhmm(None), '00:00')

    def test_time_diff(self):
        now = 1700000000
        self.assertEqual(format_time_diff(now - 30, now=now), 'Just now')
        self.assertEqual(format_time_diff(now - 300, now=now), '5m ago')
        self.assertEqual(format_time_diff(now - 7200, now=now), '2h ago')
        self.assertEqual(format_time_diff(now - 172800, now=now), '2d ago')
        self.assertEqual(format_time_diff(None, now=now), 'Never')

    def test_show_title(self):
        session = {'grandparent_title': 'Show (2019)', 'parent_media_index': 1, 'media_index': 2, 'title': 'Pilot'}
        self.assertEqual(format_show_title(session), 'Show - S01E02')
        self.assertEqual(format_show_title({'title': 'Movie (2010)'}), 'Movie')
        self.assertEqual(format_show_title(None), '')

    def test_strip_title_year(self):
        self.assertEqual(strip_title_year('Dune - 2021'), 'Dune')
        self.assertEqual(strip_title_year('Dune'), 'Dune')


if __name__ == '__main__':
    unittest.main()
