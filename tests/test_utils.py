"""Tests for URL, date and text helpers."""

from datetime import date, datetime, timedelta, timezone

from folio_pkg.utils import (
    capitalize, format_date, obfuscate_email, parse_date, resolve_page_url,
    resolve_url, slugify, strip_tags, unique_sorted,
)


class TestUrls:
    def test_resolve_url_collapses_slashes(self):
        assert resolve_url('https://x.com/', '', '/blog/a/') == 'https://x.com/blog/a'

    def test_resolve_url_skips_none(self):
        assert resolve_url(None, 'tag', None, 'python') == 'tag/python'

    def test_resolve_url_empty(self):
        assert resolve_url('', '/') == ''

    def test_resolve_page_url(self):
        assert resolve_page_url('tag', 'python') == '/tag/python/'
        assert resolve_page_url('tag', 'python', prefix='/me') == '/me/tag/python/'

    def test_resolve_page_url_home(self):
        assert resolve_page_url('/') == '/'
        assert resolve_page_url('/', prefix='me') == '/me/'


class TestDates:
    def test_parse_string_formats(self):
        assert parse_date('2021-03-04') == datetime(2021, 3, 4)
        assert parse_date('2021-03-04T10:20:30') == datetime(2021, 3, 4, 10, 20, 30)

    def test_parse_date_object(self):
        assert parse_date(date(2020, 1, 2)) == datetime(2020, 1, 2)

    def test_month_name_format(self):
        assert parse_date('Mar 05, 2021') == datetime(2021, 3, 5)

    def test_aware_datetime_becomes_naive_utc(self):
        aware = datetime(2021, 3, 4, 12, 0, tzinfo=timezone(timedelta(hours=2)))

        parsed = parse_date(aware)

        assert parsed == datetime(2021, 3, 4, 10, 0)
        assert parsed.tzinfo is None

    def test_offset_string_becomes_naive_utc(self):
        assert parse_date('2021-03-04T10:00:00Z') == datetime(2021, 3, 4, 10, 0)
        assert parse_date('2021-03-04T10:00:00+01:00') == datetime(2021, 3, 4, 9, 0)

    def test_unparseable_is_min(self):
        assert parse_date('someday') == datetime.min
        assert parse_date(None) == datetime.min

    def test_format_date(self):
        assert format_date('2021-03-04') == 'March 04, 2021'
        assert format_date(None) == ''


class TestText:
    def test_capitalize_first_character_only(self):
        assert capitalize('javaScript') == 'JavaScript'
        assert capitalize('') == ''

    def test_unique_sorted_by_code_point(self):
        assert unique_sorted(['web', 'Python', 'css', 'web']) == ['Python', 'css', 'web']

    def test_slugify(self):
        assert slugify('Hello, <em>World</em>!') == 'hello-world'
        assert slugify('???') == 'section'

    def test_obfuscate_email(self):
        assert obfuscate_email('a@b') == '&#97;&#64;&#98;'
        assert obfuscate_email(None) == ''

    def test_strip_tags(self):
        assert strip_tags('<p>one <b>two</b></p>\n<p>three</p>') == 'one two three'
