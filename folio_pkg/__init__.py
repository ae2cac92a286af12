"""
Folio - a static site generator for a personal portfolio and blog.

Folio renders Markdown/MDX posts with YAML front matter, JSON project entries
and an about page through Jinja2 templates. It also builds tag pages, an RSS
feed, an XML sitemap, robots.txt and a web app manifest.
"""

__version__ = "1.0.0"

from .core import Folio
from .settings import FolioSettings

__all__ = ['Folio', 'FolioSettings']
