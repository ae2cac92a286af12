import os
import json
import shutil
import logging
import time
from datetime import datetime

import csscompressor
import rjsmin
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, TemplateSyntaxError, select_autoescape
from pygments.formatters import HtmlFormatter

from .content import ContentLoader, newest_first, visible
from .feeds import build_manifest_icons, generate_manifest, generate_robots, generate_rss, generate_sitemap
from .media import MediaProcessor, media_kind
from .projects import load_projects
from .remote import SafeRequestor, URLValidator
from .settings import FolioSettings
from .taxonomy import TagRegistry
from .utils import obfuscate_email, resolve_page_url, resolve_url

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
PACKAGE_TEMPLATES = os.path.join(PACKAGE_DIR, 'templates')
PACKAGE_ASSETS = os.path.join(PACKAGE_DIR, 'assets')
CODE_STYLE = 'solarized-light'


class InfoFilter(logging.Filter):
    """Show warnings, errors and selected INFO milestones on the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total posts generated:",
            "Total pages generated:",
            "Total images converted to WebP:",
            "Building post archive",
            "Building tag pages",
            "Building projects page",
            "Building home page",
            "Generating RSS feed",
            "Generating XML sitemap",
            "Generating web manifest",
            "Generating robots.txt",
            "Building 404 page",
            "Skipping RSS feed",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Folio:
    def __init__(self, content_dir='content', templates_dir='templates', output_dir='output', assets_dir=None,
                 site_url=None, minify=False, log_dir='logs', settings=None, requestor=None):
        defaults = FolioSettings()
        self.settings = defaults._merge(defaults.settings, settings or {})
        self.content_dir = content_dir
        self.templates_dir = templates_dir
        self.output_dir = output_dir
        self.assets_dir = assets_dir
        self.site_url = (site_url or self.settings.get('site_url') or '').rstrip('/') or None
        self.settings['site_url'] = self.site_url
        self.minify = minify
        self.log_dir = log_dir
        self.path_prefix = self.settings.get('path_prefix') or ''
        self.page_slugs = self.settings.get('pages') or {}
        self.posts_per_page = max(1, int(self.settings.get('posts_per_archive_page') or 1))

        self.posts_generated = 0
        self.pages_generated = 0
        self.posts = []
        self.pages = []
        self.projects = []
        self.about = {}
        self.sitemap_entries = []

        self.setup_logging()

        if not os.path.isdir(self.content_dir):
            raise FileNotFoundError(f"Content directory not found: {self.content_dir}")

        self.requestor = requestor or SafeRequestor(URLValidator())
        self.media = MediaProcessor(self.output_dir, self.content_dir, self.path_prefix, self.requestor)
        self.tags = TagRegistry(
            self.settings.get('tags'),
            tag_page=self.page_slugs.get('tag', 'tag'),
            path_prefix=self.path_prefix,
            images_dir=os.path.join(self.content_dir, 'images', 'tags'),
            media=self.media,
        )

        # User templates override the packaged defaults of the same name
        self.env = Environment(
            loader=FileSystemLoader([self.templates_dir, PACKAGE_TEMPLATES]),
            autoescape=select_autoescape(['html', 'xml']),
        )
        self.env.filters['obfuscate'] = obfuscate_email
        self.env.globals.update(
            site=self.settings,
            page_url=self.page_url,
            tag_list=self.tags.tag_list,
            media_kind=media_kind,
            current_year=datetime.now().year,
        )

        self.loader = ContentLoader(self.content_dir, self.settings, self.media, self.env)

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Folio')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('folio_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(self.log_dir, log_filename))
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                self.logger.addHandler(file_handler)

    def page_url(self, *parts):
        """Site path of a page slug, honouring the path prefix."""
        return resolve_page_url(*parts, prefix=self.path_prefix)

    def slug(self, name):
        return self.page_slugs.get(name, name)

    def generated_entries(self):
        """Top-level output entries a build owns; anything else is preserved."""
        feed_output = (self.settings.get('feed') or {}).get('output') or 'rss.xml'
        entries = {
            'index.html', '404.html', 'sitemap.xml', 'robots.txt', 'manifest.webmanifest', feed_output,
            'assets', 'static', 'icons',
        }
        for name in ('blog', 'posts', 'tag', 'archive', 'projects'):
            entries.add(resolve_url(self.slug(name)).split('/')[0])

        for filepath in self.loader.find_post_files():
            metadata, _ = self.loader.parse_markdown_with_metadata(filepath)
            if metadata.get('path'):
                entries.add(resolve_url(metadata['path']).split('/')[0])

        pages_dir = os.path.join(self.content_dir, 'pages')
        if os.path.isdir(pages_dir):
            for name in os.listdir(pages_dir):
                if name.endswith(('.md', '.mdx')):
                    metadata, _ = self.loader.parse_markdown_with_metadata(os.path.join(pages_dir, name))
                    entries.add(str(metadata.get('slug') or os.path.splitext(name)[0]))
        entries.discard('')
        return entries

    def create_output_dir(self):
        """Create output directory, removing only what a previous build generated."""
        if not os.path.exists(self.output_dir):
            os.makedirs(self.output_dir, exist_ok=True)
            return

        generated = self.generated_entries()
        preserved_items = []
        for item in os.listdir(self.output_dir):
            item_path = os.path.join(self.output_dir, item)
            if item in generated:
                if os.path.isdir(item_path):
                    shutil.rmtree(item_path)
                else:
                    os.remove(item_path)
            else:
                preserved_items.append(item)

        if preserved_items:
            self.logger.info(f"Preserved non-Folio files: {', '.join(sorted(preserved_items))}")

    def copy_assets_to_output(self):
        """Copy packaged assets, then the site's own assets over them."""
        output_assets_dir = os.path.join(self.output_dir, 'assets')
        sources = [PACKAGE_ASSETS]
        if self.assets_dir:
            if os.path.isdir(self.assets_dir):
                sources.append(self.assets_dir)
            else:
                self.logger.warning(f"Assets directory not found: {self.assets_dir}")

        for source in sources:
            if not os.path.isdir(source):
                continue
            try:
                shutil.copytree(source, output_assets_dir, dirs_exist_ok=True)
                self.logger.debug(f"Copied assets from {source}")
            except (IOError, OSError, PermissionError, shutil.Error) as e:
                self.logger.error(f"Failed to copy assets from {source}: {e}")

        highlight_css = os.path.join(output_assets_dir, 'css', 'highlight.css')
        if not os.path.exists(highlight_css):
            os.makedirs(os.path.dirname(highlight_css), exist_ok=True)
            self.write_text(
                os.path.relpath(highlight_css, self.output_dir),
                HtmlFormatter(style=CODE_STYLE).get_style_defs('.highlight'),
            )

    def minify_assets(self):
        """Minify CSS and JS assets."""
        assets_output_dir = os.path.join(self.output_dir, 'assets')
        minifiers = {
            'css': ('.css', '.min.css', csscompressor.compress),
            'js': ('.js', '.min.js', rjsmin.jsmin),
        }
        for folder, (ext, min_ext, minify) in minifiers.items():
            directory = os.path.join(assets_output_dir, folder)
            if not os.path.exists(directory):
                continue
            for file in os.listdir(directory):
                if not file.endswith(ext) or file.endswith(min_ext):
                    continue
                path = os.path.join(directory, file)
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        minified = minify(f.read())
                    with open(path[:-len(ext)] + min_ext, 'w', encoding='utf-8') as f:
                        f.write(minified)
                    self.logger.debug(f"Minified {folder.upper()}: {file}")
                except (IOError, OSError, PermissionError) as e:
                    self.logger.error(f"Failed to minify {file}: {e}")

    def calculate_relative_path(self, current_output_dir):
        """Calculate relative path from current directory to root."""
        rel_path = os.path.relpath(self.output_dir, current_output_dir)
        if rel_path == '.':
            return ''
        return rel_path.replace(os.sep, '/') + '/'

    def output_dir_for(self, path):
        """Output directory for a site path, refusing paths that escape the output root."""
        segments = [segment for segment in resolve_url(path).split('/') if segment]
        if any(segment in ('.', '..') for segment in segments):
            raise ValueError(f"Unsafe page path: {path}")
        return os.path.join(self.output_dir, *segments)

    def render_template(self, template_name, **context):
        """Render a Jinja2 template."""
        try:
            template = self.env.get_template(template_name)
            return template.render(**context)
        except (TemplateNotFound, TemplateSyntaxError) as e:
            self.logger.error(f"Template error in {template_name}: {e}")
            return None

    def write_page(self, path, template_name, lastmod=None, in_sitemap=True, **context):
        """Render template_name into <path>/index.html and record it for the sitemap."""
        try:
            page_dir = self.output_dir_for(path)
        except ValueError as e:
            self.logger.error(str(e))
            return False

        seo = context.setdefault('seo', {})
        seo.setdefault('path', self.page_url(path))
        seo.setdefault('canonical', resolve_url(self.site_url, seo['path']) + '/' if self.site_url else None)
        context.setdefault('lang', self.settings.get('default_language', 'en'))
        context.setdefault('pages', self.pages)
        context['relative_path'] = self.calculate_relative_path(page_dir)

        html = self.render_template(template_name, **context)
        if html is None:
            return False

        os.makedirs(page_dir, exist_ok=True)
        output_file_path = os.path.join(page_dir, 'index.html')
        try:
            with open(output_file_path, 'w', encoding='utf-8') as f:
                f.write(html)
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write HTML file {output_file_path}: {e}")
            return False

        self.logger.debug(f"Generated HTML: {output_file_path}")
        if in_sitemap:
            self.sitemap_entries.append((self.page_url(path), lastmod))
        return True

    def load_content(self):
        self.pages = self.loader.load_pages()
        self.posts = self.loader.load_posts()
        self.projects = load_projects(os.path.join(self.content_dir, 'projects'), self.media)
        self.about = self.loader.load_about()
        if not self.posts:
            self.logger.warning("No posts found to process.")

    def build_posts(self):
        for post in self.posts:
            rendered = self.write_page(
                post['path'], 'post.html',
                lastmod=post['date'],
                in_sitemap=not post['hidden'],
                post=post,
                lang=post['lang'],
                seo={
                    'title': post['title'],
                    'description': post['excerpt'],
                    'keywords': post['keywords'],
                    'image': post['cover'],
                    'type': 'article',
                },
            )
            if rendered:
                self.posts_generated += 1

    def build_post_archive(self):
        """/posts/ holds the first page of the post list, /archive/<n>/ the rest."""
        self.logger.info("Building post archive")
        posts = newest_first(visible(self.posts))
        per_page = self.posts_per_page
        total_pages = max(1, (len(posts) + per_page - 1) // per_page)

        for page_num in range(1, total_pages + 1):
            page_posts = posts[(page_num - 1) * per_page:page_num * per_page]
            path = self.archive_path(page_num)
            rendered = self.write_page(
                path, 'posts.html',
                posts=page_posts,
                current_page=page_num,
                total_pages=total_pages,
                prev_url=self.page_url(self.archive_path(page_num - 1)) if page_num > 1 else None,
                next_url=self.page_url(self.archive_path(page_num + 1)) if page_num < total_pages else None,
                seo={
                    'title': 'Posts' if page_num == 1 else f'Posts - page {page_num}',
                    'description': self.settings.get('site_description'),
                },
            )
            if rendered:
                self.pages_generated += 1

    def archive_path(self, page_num):
        if page_num <= 1:
            return self.slug('posts')
        return resolve_url(self.slug('archive'), str(page_num))

    def build_tag_pages(self):
        self.logger.info("Building tag pages")
        if self.write_page(
            self.slug('tag'), 'tags.html',
            tags=self.tags.summarize(self.posts, self.projects),
            seo={'title': 'Tags', 'description': 'All present tags in the site'},
        ):
            self.pages_generated += 1

        for tag in self.tags.all_tags(self.posts, self.projects):
            info = self.tags.describe(tag)
            rendered = self.write_page(
                resolve_url(self.slug('tag'), tag), 'tag.html',
                tag=info,
                image=self.tags.tag_image(tag),
                posts=self.tags.posts_for(tag, self.posts),
                projects=self.tags.projects_for(tag, self.projects),
                seo={
                    'title': info['name'],
                    'description': f"All post about {info['name']}",
                    'keywords': [info['name']],
                },
            )
            if rendered:
                self.pages_generated += 1

    def build_projects_page(self):
        self.logger.info("Building projects page")
        if self.write_page(
            self.slug('projects'), 'projects.html',
            projects=self.projects,
            seo={'title': 'Projects', 'description': 'Projects and work showcase'},
        ):
            self.pages_generated += 1

    def build_static_pages(self):
        for page in self.pages:
            if self.write_page(
                page['slug'], 'page.html',
                page=page,
                seo={'title': page['title'], 'description': page['description']},
            ):
                self.pages_generated += 1

    def build_home_page(self):
        self.logger.info("Building home page")
        if self.write_page(
            self.slug('home'), 'index.html',
            about=self.about,
            projects=self.projects,
            posts=newest_first(visible(self.posts))[:self.posts_per_page],
            seo={
                'title': self.about.get('title') or 'Home',
                'description': self.about.get('description') or self.settings.get('site_description'),
                'image': self.about.get('photo'),
            },
        ):
            self.pages_generated += 1

    def build_404_page(self):
        """Build 404 error page."""
        self.logger.info("Building 404 page")
        html = self.render_template(
            '404.html',
            relative_path='',
            pages=self.pages,
            lang=self.settings.get('default_language', 'en'),
            seo={'title': 'Page not found', 'path': '/404.html'},
        )
        if html is None:
            return False
        try:
            with open(os.path.join(self.output_dir, '404.html'), 'w', encoding='utf-8') as f:
                f.write(html)
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write 404 page: {e}")
            return False
        return True

    def write_text(self, name, text):
        path = os.path.join(self.output_dir, name)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(text)
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write {path}: {e}")
            return False
        return True

    def generate_rss_feed(self):
        """Generate the RSS feed of the newest visible posts."""
        output = (self.settings.get('feed') or {}).get('output') or 'rss.xml'
        if self.write_text(resolve_url(output), generate_rss(self.posts, self.settings)):
            self.logger.info("Generating RSS feed")
            return True
        return False

    def generate_xml_sitemap(self):
        if self.write_text('sitemap.xml', generate_sitemap(self.sitemap_entries, self.site_url)):
            self.logger.info("Generating XML sitemap")
            return True
        return False

    def generate_web_manifest(self):
        icon = (self.settings.get('manifest') or {}).get('icon')
        icon_path = os.path.join(self.content_dir, icon) if icon and not os.path.isabs(icon) else icon
        icons = build_manifest_icons(icon_path, self.output_dir, self.path_prefix)
        manifest = generate_manifest(self.settings, icons)
        if self.write_text('manifest.webmanifest', json.dumps(manifest, indent=2)):
            self.logger.info("Generating web manifest")
            return True
        return False

    def generate_robots_txt(self):
        if self.write_text('robots.txt', generate_robots(self.settings.get('robots', 'public'), self.site_url)):
            self.logger.info("Generating robots.txt")
            return True
        return False

    def build(self):
        """Main build process."""
        start_time = time.time()
        self.logger.info("Starting site build...")

        self.create_output_dir()
        self.copy_assets_to_output()
        if self.minify:
            self.minify_assets()

        self.load_content()
        self.build_posts()
        self.build_post_archive()
        self.build_tag_pages()
        self.build_projects_page()
        self.build_static_pages()
        self.build_home_page()
        self.build_404_page()

        if self.site_url:
            self.generate_rss_feed()
            self.generate_xml_sitemap()
            self.generate_web_manifest()
        else:
            self.logger.info("Skipping RSS feed, XML sitemap and web manifest (no site_url).")
        self.generate_robots_txt()

        self.logger.info(f"Site build completed in {time.time() - start_time:.6f} seconds.")
        self.logger.info(f"Total posts generated: {self.posts_generated}")
        self.logger.info(f"Total pages generated: {self.pages_generated}")
        self.logger.info(f"Total images converted to WebP: {self.media.images_converted}")

    def close(self):
        """Close the HTTP session used for remote media."""
        self.requestor.close()
