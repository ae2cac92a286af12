"""
Loading of posts, static pages and the about page.

Posts live in ``<content>/posts/<dir>/index.md`` (or ``index.mdx``) with YAML
frontmatter; their bodies may embed components and reference sibling files.
"""

import os
import re
import logging
from datetime import datetime

import mistune
import yaml
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .components import ComponentRenderer
from .media import media_item
from .utils import capitalize, format_date, parse_date, resolve_url, resolve_page_url, slugify, strip_tags

POST_FILENAMES = ('index.md', 'index.mdx')
EXCERPT_WORDS = 30
BODY_IMAGE_WIDTH = 1000
COVER_IMAGE_WIDTH = 600

MARKDOWN_IMAGE_RE = re.compile(r'(!\[[^\]]*\]\()\s*([^)\s]+)')
MARKDOWN_LINK_RE = re.compile(r'((?<!!)\[[^\]]*\]\()\s*([^)\s#]+)')
HTML_SRC_RE = re.compile(r'(<(?:img|video|source)\b[^>]*\ssrc=")([^"]+)(")')
HEADING_ANCHOR_RE = re.compile(r'<a class="anchor"[^>]*>.*?</a>')


class FolioRenderer(mistune.HTMLRenderer):
    """HTML renderer with highlighted code, linked headings and image captions."""

    def __init__(self):
        super().__init__(escape=False)
        self.formatter = HtmlFormatter(cssclass='highlight')

    def block_code(self, code, info=None):
        lang = info.split()[0] if info else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
                return highlight(code, lexer, self.formatter)
            except ClassNotFound:
                pass
        return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>\n'.format(mistune.escape(code))

    def heading(self, text, level, **attrs):
        anchor = slugify(text)
        return (
            f'<h{level} id="{anchor}">'
            f'<a class="anchor" href="#{anchor}" aria-hidden="true">#</a>{text}</h{level}>\n'
        )

    def image(self, text, url, title=None):
        src = self.safe_url(url)
        alt = mistune.escape(strip_tags(text))
        caption = mistune.escape(title) if title else alt
        img = f'<img src="{src}" alt="{alt}" loading="lazy" />'
        if not caption:
            return f'<figure>{img}</figure>'
        return f'<figure>{img}<figcaption>{caption}</figcaption></figure>'

    def paragraph(self, text):
        stripped = text.strip()
        # A paragraph holding only images becomes the figures themselves
        if stripped.startswith('<figure>') and stripped.endswith('</figure>'):
            return stripped + '\n'
        return f'<p>{text}</p>\n'


def create_markdown_parser():
    """Create a Mistune markdown parser with the Folio renderer."""
    return mistune.create_markdown(
        renderer=FolioRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )


def generate_excerpt(html, words=EXCERPT_WORDS):
    """Generate an excerpt from rendered HTML."""
    plain = strip_tags(HEADING_ANCHOR_RE.sub('', html or '')).split()
    if len(plain) > words:
        return ' '.join(plain[:words]) + '...'
    return ' '.join(plain)


class ContentLoader:
    def __init__(self, content_dir, settings, media, env):
        self.content_dir = content_dir
        self.settings = settings
        self.media = media
        self.env = env
        self.posts_dir = os.path.join(content_dir, 'posts')
        self.pages_dir = os.path.join(content_dir, 'pages')
        self.about_dir = os.path.join(content_dir, 'about')
        self.path_prefix = settings.get('path_prefix') or ''
        self.markdown_parser = create_markdown_parser()
        self.logger = logging.getLogger('Folio.content')

    def parse_markdown_with_metadata(self, filepath):
        """Parse a markdown file with YAML front matter."""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read().lstrip('\ufeff')
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to read markdown file {filepath}: {e}")
            return {}, ""

        if not content.startswith('---'):
            return {}, content

        parts = content.split('---', 2)
        if len(parts) < 3:
            return {}, content

        try:
            metadata = yaml.safe_load(parts[1]) or {}
        except yaml.YAMLError as e:
            self.logger.error(f"Invalid YAML front matter in {filepath}: {e}")
            metadata = {}
        if not isinstance(metadata, dict):
            self.logger.error(f"Front matter in {filepath} is not a mapping")
            metadata = {}
        return metadata, parts[2].strip()

    def render_markdown(self, text, base_dir):
        """Expand components, publish referenced files and convert to HTML."""
        components = ComponentRenderer(self.env, lambda src: self.publish_reference(src, base_dir))
        text = components.expand(text)
        text = self.rewrite_references(text, base_dir)
        return self.markdown_parser(text)

    def publish_reference(self, src, base_dir, max_width=BODY_IMAGE_WIDTH):
        return self.media.publish(src, base_dir, max_width=max_width)

    def rewrite_references(self, text, base_dir):
        """Point local image, file link and src references at their published copies."""
        def replace(match, group=2):
            target = match.group(group)
            if target.startswith(('/', '#', 'mailto:', 'http://', 'https://', '//', 'data:')):
                return match.group(0)
            if os.path.splitext(target)[1].lower() in ('.md', '.mdx', '.html', ''):
                return match.group(0)
            published = self.publish_reference(target, base_dir)
            if not published:
                return match.group(0)
            # Splice at the target's own span; alt text may repeat the file name
            start = match.start(group) - match.start()
            end = match.end(group) - match.start()
            return match.group(0)[:start] + published + match.group(0)[end:]

        text = MARKDOWN_IMAGE_RE.sub(replace, text)
        text = MARKDOWN_LINK_RE.sub(replace, text)
        text = HTML_SRC_RE.sub(replace, text)
        return text

    def find_post_files(self):
        """Return every post index file under the posts directory."""
        post_files = []
        if not os.path.isdir(self.posts_dir):
            return post_files
        for root, dirs, files in os.walk(self.posts_dir):
            dirs.sort()
            for name in sorted(files):
                if name in POST_FILENAMES:
                    post_files.append(os.path.join(root, name))
        return post_files

    def load_post(self, filepath):
        metadata, body = self.parse_markdown_with_metadata(filepath)
        base_dir = os.path.dirname(filepath)
        dir_name = os.path.basename(base_dir)

        title = metadata.get('title')
        title = str(title) if title else 'Untitled'

        path = metadata.get('path') or resolve_url(self.settings['pages'].get('blog', 'blog'), dir_name)
        path = '/' + resolve_url(path)

        tags = metadata.get('tags') or []
        if isinstance(tags, str):
            tags = [tags]
        tags = [str(tag) for tag in tags if tag]

        html = self.render_markdown(body, base_dir)

        cover = None
        if metadata.get('cover'):
            cover = self.media.publish(metadata['cover'], base_dir, max_width=COVER_IMAGE_WIDTH)

        project_images = []
        for image in metadata.get('projectImages') or []:
            if isinstance(image, str):
                image = {'src': image}
            if not isinstance(image, dict) or not image.get('src'):
                continue
            item = media_item(image['src'], image.get('alt', ''))
            item['src'] = self.publish_reference(image['src'], base_dir) or image['src']
            project_images.append(item)

        date = parse_date(metadata.get('date'))
        return {
            'title': title,
            'date': date,
            'date_display': format_date(date),
            'path': path,
            'url': resolve_page_url(path, prefix=self.path_prefix),
            'tags': tags,
            'excerpt': metadata.get('excerpt') or generate_excerpt(html),
            'cover': cover,
            'hidden': bool(metadata.get('hidden', False)),
            'project_images': project_images,
            'html': html,
            'lang': metadata.get('lang') or self.settings.get('default_language', 'en'),
            'keywords': metadata.get('keywords') or tags,
            'source': filepath,
            'metadata': metadata,
        }

    def load_posts(self):
        """Load every post, newest first. Later duplicates of a path are skipped."""
        posts = []
        seen_paths = {}
        for filepath in self.find_post_files():
            try:
                post = self.load_post(filepath)
            except (ValueError, TypeError, KeyError) as e:
                self.logger.error(f"Error processing {filepath}: {e}")
                continue
            if post['path'] in seen_paths:
                self.logger.warning(
                    f"Duplicate post path {post['path']} in {filepath}, already used by {seen_paths[post['path']]}"
                )
                continue
            seen_paths[post['path']] = filepath
            posts.append(post)
        return sorted(posts, key=lambda p: p['date'], reverse=True)

    def load_pages(self):
        """Load static pages metadata and HTML."""
        pages = []
        if not os.path.isdir(self.pages_dir):
            return pages
        for name in sorted(os.listdir(self.pages_dir)):
            if not name.endswith(('.md', '.mdx')):
                continue
            filepath = os.path.join(self.pages_dir, name)
            metadata, body = self.parse_markdown_with_metadata(filepath)
            slug = str(metadata.get('slug') or os.path.splitext(name)[0])
            pages.append({
                'title': metadata.get('title') or slug.replace('-', ' ').title(),
                'slug': slug,
                'permalink': resolve_page_url(slug, prefix=self.path_prefix),
                'order': metadata.get('order', 1000),
                'description': metadata.get('description', ''),
                'html': self.render_markdown(body, self.pages_dir),
                'metadata': metadata,
            })
        return sorted(pages, key=lambda p: (p['order'], p['title']))

    def load_about(self):
        """Load the about page body and its profile photo, icons and resumes."""
        about = {'title': 'About', 'html': '', 'photo': None, 'skills': [], 'tools': [], 'resumes': []}
        if not os.path.isdir(self.about_dir):
            return about

        for name in POST_FILENAMES:
            filepath = os.path.join(self.about_dir, name)
            if os.path.exists(filepath):
                metadata, body = self.parse_markdown_with_metadata(filepath)
                about['title'] = metadata.get('title', about['title'])
                about['description'] = metadata.get('description', '')
                about['html'] = self.render_markdown(body, self.about_dir)
                break

        for name in sorted(os.listdir(self.about_dir)):
            if os.path.splitext(name)[0] == 'profile-photo':
                about['photo'] = self.media.publish(name, self.about_dir, max_width=800)
                break

        about['skills'] = self.load_icons(os.path.join(self.about_dir, 'skills'))
        about['tools'] = self.load_icons(os.path.join(self.about_dir, 'tools'))
        about['resumes'] = self.load_resumes(os.path.join(self.about_dir, 'resumes'))
        return about

    def _sorted_files(self, directory):
        if not os.path.isdir(directory):
            return []
        names = [n for n in os.listdir(directory) if os.path.isfile(os.path.join(directory, n))]
        return sorted(names, key=lambda n: os.path.splitext(n)[0].lower())

    def load_icons(self, directory):
        """Skill/tool icons sorted by name, labelled from icon_names or the capitalised name."""
        icon_names = self.settings.get('icon_names') or {}
        icons = []
        for name in self._sorted_files(directory):
            stem = os.path.splitext(name)[0]
            src = self.media.publish(name, directory, max_width=50)
            if not src:
                continue
            label = icon_names.get(stem) or capitalize(stem)
            icons.append({'name': stem, 'src': src, 'label': label})
        return icons

    def load_resumes(self, directory):
        resumes = []
        for name in self._sorted_files(directory):
            src = self.media.publish(name, directory, max_width=None)
            if src:
                resumes.append({'name': os.path.splitext(name)[0], 'url': src})
        return resumes


def visible(posts):
    return [post for post in posts if not post.get('hidden')]


def newest_first(posts):
    return sorted(posts, key=lambda p: p.get('date') or datetime.min, reverse=True)
