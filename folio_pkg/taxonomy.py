"""
Tag taxonomy: display names, descriptions, images and per-tag post lists.

Tag metadata comes from the ``tags`` dictionary in the site configuration.
A tag without an entry still works: it is logged and shown under its
capitalised slug.
"""

import logging
import os

from .content import newest_first, visible
from .utils import capitalize, resolve_page_url, unique_sorted

TAG_IMAGE_WIDTH = 400

logger = logging.getLogger('Folio.taxonomy')


class TagRegistry:
    def __init__(self, tags_config, tag_page='tag', path_prefix='', images_dir=None, media=None):
        self.tags_config = tags_config or {}
        self.tag_page = tag_page
        self.path_prefix = path_prefix or ''
        self.images_dir = images_dir
        self.media = media
        self._images = {}

    def url_for(self, tag):
        return resolve_page_url(self.tag_page, tag, prefix=self.path_prefix)

    def describe(self, tag):
        """Name, description and URL of a tag, falling back to the capitalised slug."""
        tag_data = self.tags_config.get(tag)
        if not tag_data:
            logger.error(f"Tag data for {tag} not found")
            tag_data = {}
        elif not isinstance(tag_data, dict):
            tag_data = {'name': str(tag_data)}
        return {
            'slug': tag,
            'name': tag_data.get('name') or capitalize(tag),
            'description': tag_data.get('description') or '',
            'url': self.url_for(tag),
        }

    def display_name(self, tag):
        return self.describe(tag)['name']

    def tag_list(self, tags):
        """Deduplicated, alphabetically sorted tags ready for rendering."""
        return [self.describe(tag) for tag in unique_sorted(t for t in tags or [] if t)]

    def tag_image(self, tag):
        """Public URL of <images>/tags/<tag>.*, or None when there is none."""
        if tag in self._images:
            return self._images[tag]

        image = None
        source = self._find_image_file(tag)
        if source and self.media is not None:
            image = self.media.publish(os.path.basename(source), os.path.dirname(source), max_width=TAG_IMAGE_WIDTH)
        if image is None:
            logger.error(f"Tag image for {tag} not found")

        self._images[tag] = image
        return image

    def _find_image_file(self, tag):
        if not self.images_dir or not os.path.isdir(self.images_dir):
            return None
        for name in sorted(os.listdir(self.images_dir)):
            if os.path.splitext(name)[0] == tag:
                return os.path.join(self.images_dir, name)
        return None

    def all_tags(self, posts, projects=()):
        """Every tag used by a visible post or project."""
        raw = []
        for item in list(visible(posts)) + list(visible(projects)):
            raw.extend(item.get('tags') or [])
        return unique_sorted(t for t in raw if t)

    def summarize(self, posts, projects=()):
        """Tag index entries: description, image and occurrences across visible posts."""
        raw_tags = []
        for post in visible(posts):
            raw_tags.extend(post.get('tags') or [])

        summaries = []
        for tag in self.all_tags(posts, projects):
            entry = self.describe(tag)
            entry['count'] = raw_tags.count(tag)
            entry['image'] = self.tag_image(tag)
            summaries.append(entry)
        return summaries

    def posts_for(self, tag, posts):
        """Visible posts carrying the tag, newest first."""
        return newest_first([post for post in visible(posts) if tag in (post.get('tags') or [])])

    def projects_for(self, tag, projects):
        return [project for project in visible(projects) if tag in (project.get('tags') or [])]
