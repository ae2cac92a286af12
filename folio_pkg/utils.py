"""
Small URL, date and text helpers shared by the Folio build.
"""

import re
from datetime import datetime, date, timezone

DATE_FORMATS = ['%Y-%m-%dT%H:%M:%S%z', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d', '%b %d, %Y']
DISPLAY_DATE_FORMAT = '%B %d, %Y'


def capitalize(text):
    """Upper-case the first character only, leaving the rest untouched."""
    if not text:
        return ''
    text = str(text)
    return text[0].upper() + text[1:]


def resolve_url(*parts):
    """
    Join URL parts with single slashes.

    Empty parts are skipped and leading/trailing slashes of each part are
    stripped, so ``resolve_url('https://x.com/', '', '/blog/a')`` gives
    ``https://x.com/blog/a``.
    """
    resolved = ''
    for part in parts:
        if part is None:
            continue
        piece = str(part).strip().strip('/')
        if not piece:
            continue
        resolved = piece if not resolved else f"{resolved}/{piece}"
    return resolved


def resolve_page_url(*parts, prefix=''):
    """Absolute site path for a page, always starting and ending with '/'."""
    path = resolve_url(prefix, *parts)
    if not path:
        return '/'
    return f"/{path}/"


def parse_date(value):
    """Parse a frontmatter date; unparseable values become datetime.min.

    Aware datetimes are converted to naive UTC so every post date compares.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        for fmt in DATE_FORMATS:
            try:
                return parse_date(datetime.strptime(value.strip(), fmt))
            except ValueError:
                continue
    return datetime.min


def format_date(value):
    """Format a date the way post lists show it (e.g. 'March 04, 2021')."""
    parsed = parse_date(value)
    if parsed == datetime.min:
        return ''
    return parsed.strftime(DISPLAY_DATE_FORMAT)


def slugify(text):
    text = re.sub(r'<[^>]+>', '', str(text)).lower()
    text = re.sub(r'[^\w\s-]', '', text, flags=re.UNICODE)
    text = re.sub(r'[\s_-]+', '-', text).strip('-')
    return text or 'section'


def obfuscate_email(address):
    """Encode every character of an address as an HTML entity."""
    if not address:
        return ''
    return ''.join(f"&#{ord(char)};" for char in str(address))


def unique_sorted(values):
    """Drop duplicates (first occurrence wins) and sort by code point."""
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return sorted(seen)


def strip_tags(html):
    text = re.sub(r'<[^>]+>', ' ', html or '')
    return re.sub(r'\s+', ' ', text).strip()
