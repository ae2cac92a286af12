"""
RSS feed, XML sitemap, robots.txt and web app manifest generation.
"""

import logging
import os
import calendar
from datetime import datetime
from email.utils import formatdate
from xml.sax.saxutils import escape

from PIL import Image

from .content import newest_first, visible
from .utils import resolve_url

MANIFEST_ICON_SIZES = [48, 72, 96, 144, 192, 256, 384, 512]

logger = logging.getLogger('Folio.feeds')


def cdata(text):
    """Wrap text in a CDATA section, splitting any embedded terminator."""
    return '<![CDATA[' + (text or '').replace(']]>', ']]]]><![CDATA[>') + ']]>'


def rfc822(value):
    if not value or value == datetime.min:
        return formatdate()
    # Naive front matter dates are taken as UTC
    if value.tzinfo is None:
        return formatdate(calendar.timegm(value.timetuple()))
    return formatdate(value.timestamp())


def feed_title(settings):
    feed = settings.get('feed') or {}
    if feed.get('title'):
        return feed['title']
    return f"{settings.get('site_title') or 'Folio'}'s feed"


def generate_rss(posts, settings):
    """RSS 2.0 document for the newest visible posts."""
    site_url = settings['site_url']
    path_prefix = settings.get('path_prefix') or ''
    feed = settings.get('feed') or {}
    limit = feed.get('limit') or 10
    author = settings.get('author') or ''
    output = feed.get('output') or 'rss.xml'

    recent_posts = newest_first(visible(posts))[:limit]

    rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/" xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:atom="http://www.w3.org/2005/Atom">
<channel>
<title>{escape(feed_title(settings))}</title>
<link>{escape(resolve_url(site_url, path_prefix) + '/')}</link>
<description>{escape(settings.get('site_description') or '')}</description>
<atom:link href="{escape(resolve_url(site_url, path_prefix, output))}" rel="self" type="application/rss+xml"/>
<lastBuildDate>{formatdate()}</lastBuildDate>
'''

    for post in recent_posts:
        link = resolve_url(site_url, path_prefix, post['path'])
        guid = f"{site_url}{post['path']}{post['title']}"
        rss_content += f'''
<item>
<title>{escape(post['title'])}</title>
<description>{escape(str(post.get('excerpt') or ''))}</description>
<link>{escape(link)}</link>
<guid isPermaLink="false">{escape(guid)}</guid>
<dc:creator>{escape(author)}</dc:creator>
<pubDate>{rfc822(post.get('date'))}</pubDate>
<content:encoded>{cdata(post.get('html'))}</content:encoded>
</item>'''

    rss_content += '''
</channel>
</rss>
'''
    return rss_content


def format_xml_sitemap_entry(url, lastmod):
    """Format a single sitemap entry."""
    if not lastmod or lastmod == datetime.min:
        lastmod = datetime.now()
    return f'''<url>
<loc>{escape(url)}</loc>
<lastmod>{lastmod.strftime('%Y-%m-%d')}</lastmod>
</url>
'''


def generate_sitemap(entries, site_url):
    """Sitemap for (path, lastmod) pairs; paths are absolute site paths."""
    sitemap_content = '''<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
'''
    for path, lastmod in entries:
        url = resolve_url(site_url, path)
        if path.endswith('/'):
            url += '/'
        sitemap_content += format_xml_sitemap_entry(url, lastmod)
    sitemap_content += '</urlset>\n'
    return sitemap_content


def generate_robots(mode, site_url=None):
    if mode != 'public':
        return "User-agent: *\nDisallow: /\n"
    lines = ["User-agent: *", "Allow: /"]
    if site_url:
        lines.append(f"Sitemap: {resolve_url(site_url, 'sitemap.xml')}")
        lines.append(f"Host: {site_url.rstrip('/')}")
    return '\n'.join(lines) + '\n'


def build_manifest_icons(icon_path, output_dir, path_prefix=''):
    """Render the site icon at every manifest size; returns manifest icon entries."""
    icons = []
    if not icon_path or not os.path.isfile(icon_path):
        if icon_path:
            logger.warning(f"Manifest icon not found: {icon_path}")
        return icons

    icons_dir = os.path.join(output_dir, 'icons')
    os.makedirs(icons_dir, exist_ok=True)
    try:
        with Image.open(icon_path) as img:
            img = img.convert('RGBA')
            for size in MANIFEST_ICON_SIZES:
                name = f"icon-{size}x{size}.png"
                img.resize((size, size), Image.LANCZOS).save(os.path.join(icons_dir, name), 'PNG')
                icons.append({
                    'src': '/' + resolve_url(path_prefix, 'icons', name),
                    'sizes': f"{size}x{size}",
                    'type': 'image/png',
                })
    except (IOError, OSError, ValueError) as e:
        logger.error(f"Failed to render manifest icons from {icon_path}: {e}")
        return []
    return icons


def generate_manifest(settings, icons=None):
    manifest = settings.get('manifest') or {}
    name = manifest.get('name') or settings.get('site_title') or 'Folio'
    return {
        'name': name,
        'short_name': manifest.get('short_name') or name,
        'description': settings.get('site_description') or '',
        'start_url': manifest.get('start_url') or '/',
        'background_color': manifest.get('background_color'),
        'theme_color': manifest.get('theme_color'),
        'display': manifest.get('display') or 'standalone',
        'icons': icons or [],
    }
