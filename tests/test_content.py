"""Tests for post, page and about loading."""

import os
import re
from datetime import datetime

import pytest

from conftest import make_image

from folio_pkg.content import ContentLoader, create_markdown_parser, generate_excerpt, newest_first, visible
from folio_pkg.media import MediaProcessor


@pytest.fixture
def loader(mock_content_dir, mock_output_dir, site_settings, jinja_env, mock_requestor):
    media = MediaProcessor(mock_output_dir, mock_content_dir, requestor=mock_requestor)
    return ContentLoader(mock_content_dir, site_settings, media, jinja_env)


class TestMarkdown:
    def test_highlighted_code(self):
        html = create_markdown_parser()('```python\nprint("hi")\n```\n')

        assert '<div class="highlight">' in html

    def test_unknown_language_is_escaped(self):
        html = create_markdown_parser()('```nolang\n<b>x</b>\n```\n')

        assert '&lt;b&gt;x&lt;/b&gt;' in html

    def test_heading_anchor(self):
        html = create_markdown_parser()('## Getting Started\n')

        assert '<h2 id="getting-started">' in html
        assert 'href="#getting-started"' in html

    def test_image_becomes_figure(self):
        html = create_markdown_parser()('![A cat](cat.webp)\n')

        assert html.strip() == (
            '<figure><img src="cat.webp" alt="A cat" loading="lazy" /><figcaption>A cat</figcaption></figure>'
        )

    def test_tables_and_strikethrough(self):
        html = create_markdown_parser()('| a |\n|---|\n| b |\n\n~~old~~\n')

        assert '<table>' in html
        assert '<del>old</del>' in html

    def test_excerpt(self):
        html = '<p>' + ' '.join(f'w{i}' for i in range(40)) + '</p>'

        excerpt = generate_excerpt(html)

        assert excerpt.endswith('w29...')
        assert generate_excerpt('<p>short text</p>') == 'short text'


class TestContentLoader:
    def test_front_matter(self, loader, temp_dir):
        path = os.path.join(temp_dir, 'note.md')
        with open(path, 'w', encoding='utf-8') as f:
            f.write('\ufeff---\ntitle: Note\ntags: [a]\n---\n\nBody\n')

        metadata, body = loader.parse_markdown_with_metadata(path)

        assert metadata == {'title': 'Note', 'tags': ['a']}
        assert body == 'Body'

    def test_no_front_matter(self, loader, temp_dir):
        path = os.path.join(temp_dir, 'plain.md')
        with open(path, 'w', encoding='utf-8') as f:
            f.write('Just text')

        assert loader.parse_markdown_with_metadata(path) == ({}, 'Just text')

    def test_invalid_front_matter(self, loader, temp_dir):
        path = os.path.join(temp_dir, 'bad.md')
        with open(path, 'w', encoding='utf-8') as f:
            f.write('---\ntitle: [oops\n---\nBody')

        metadata, body = loader.parse_markdown_with_metadata(path)

        assert metadata == {}
        assert body == 'Body'

    def test_find_post_files(self, loader):
        names = sorted(os.path.relpath(p, loader.posts_dir) for p in loader.find_post_files())

        assert names == [
            os.path.join('draft', 'index.md'),
            os.path.join('first-post', 'index.md'),
            os.path.join('second-post', 'index.mdx'),
        ]

    def test_load_post(self, loader):
        post = loader.load_post(os.path.join(loader.posts_dir, 'first-post', 'index.md'))

        assert post['title'] == 'First Post'
        assert post['path'] == '/blog/first-post'
        assert post['url'] == '/blog/first-post/'
        assert post['tags'] == ['python', 'tooling', 'python']
        assert post['date'] == datetime(2021, 3, 4)
        assert post['date_display'] == 'March 04, 2021'
        assert post['cover'].endswith('/cover-600.webp')
        assert '/cover-1000.webp' in post['html']
        assert post['excerpt'] == 'Hello Some text with an image. A red square'
        assert post['hidden'] is False

    def test_custom_path_and_components(self, loader, mock_requestor):
        post = loader.load_post(os.path.join(loader.posts_dir, 'second-post', 'index.mdx'))

        assert post['path'] == '/writing/second'
        assert '<video class="standard-video"' in post['html']
        assert '<p class="caption">Demo</p>' in post['html']
        assert '<div class="highlight">' in post['html']
        mock_requestor.safe_get.assert_called_once_with('https://cdn.example.com/demo.mp4')

    def test_load_posts_newest_first(self, loader):
        titles = [post['title'] for post in loader.load_posts()]

        assert titles == ['Hidden Draft', 'Second Post', 'First Post']

    def test_duplicate_paths_skipped(self, loader):
        duplicate = os.path.join(loader.posts_dir, 'zz-copy')
        os.makedirs(duplicate)
        with open(os.path.join(duplicate, 'index.md'), 'w', encoding='utf-8') as f:
            f.write('---\ntitle: Copy\npath: writing/second\n---\nCopy\n')

        titles = [post['title'] for post in loader.load_posts()]

        assert 'Copy' not in titles
        assert 'Second Post' in titles

    def test_load_pages(self, loader):
        pages = loader.load_pages()

        assert [page['slug'] for page in pages] == ['uses']
        assert pages[0]['permalink'] == '/uses/'
        assert '<p>Tools I use.</p>' in pages[0]['html']

    def test_load_about(self, loader):
        about = loader.load_about()

        assert about['title'] == 'About me'
        assert about['photo'].endswith('/profile-photo-800.webp')
        assert [icon['label'] for icon in about['skills']] == ['CSS', 'Python']
        assert about['tools'] == []
        assert '<p>I build things.</p>' in about['html']


class TestVisibility:
    def test_visible_and_newest_first(self):
        posts = [
            {'title': 'a', 'date': datetime(2020, 1, 1)},
            {'title': 'b', 'date': datetime(2022, 1, 1), 'hidden': True},
            {'title': 'c', 'date': datetime(2021, 1, 1)},
        ]

        assert [p['title'] for p in newest_first(visible(posts))] == ['c', 'a']


def write_post(posts_dir, name, front_matter, body='Body'):
    directory = os.path.join(posts_dir, name)
    os.makedirs(directory, exist_ok=True)
    with open(os.path.join(directory, 'index.md'), 'w', encoding='utf-8') as f:
        f.write(f'---\n{front_matter}\n---\n\n{body}\n')
    return directory


class TestPostDates:
    def test_mixed_aware_naive_and_missing_dates(self, loader):
        write_post(loader.posts_dir, 'aware', 'title: Aware\ndate: 2021-03-04T10:00:00Z')
        write_post(loader.posts_dir, 'naive', 'title: Naive\ndate: 2021-03-05')
        write_post(loader.posts_dir, 'month-name', 'title: Month Name\ndate: Mar 03, 2021')
        write_post(loader.posts_dir, 'undated', 'title: Undated\ndate: someday')

        posts = loader.load_posts()
        titles = [post['title'] for post in posts]

        assert titles.index('Naive') < titles.index('Aware') < titles.index('First Post') < titles.index('Month Name')
        assert titles[-1] == 'Undated'
        aware = next(post for post in posts if post['title'] == 'Aware')
        assert aware['date'] == datetime(2021, 3, 4, 10, 0)
        assert aware['date_display'] == 'March 04, 2021'
        assert newest_first(visible(posts))[-1]['title'] == 'Undated'


class TestReferenceRewriting:
    def test_alt_text_matching_file_name_is_kept(self, loader):
        base_dir = os.path.join(loader.posts_dir, 'first-post')
        make_image(os.path.join(base_dir, 'shot.png'))

        html = loader.render_markdown('![shot.png](shot.png)', base_dir)

        assert re.search(r'<img src="/static/[0-9a-f]{12}/shot-1000\.webp" alt="shot\.png"', html)
        assert '<figcaption>shot.png</figcaption>' in html

    def test_linked_files_are_copied(self, loader, mock_output_dir):
        base_dir = os.path.join(loader.posts_dir, 'first-post')
        with open(os.path.join(base_dir, 'cv.pdf'), 'wb') as f:
            f.write(b'%PDF-1.4')

        html = loader.render_markdown('Read my [cv.pdf](cv.pdf) or [the intro](#hello).', base_dir)

        match = re.search(r'<a href="(/static/[0-9a-f]{12}/cv\.pdf)">cv\.pdf</a>', html)
        assert match
        assert os.path.exists(os.path.join(mock_output_dir, match.group(1).lstrip('/')))
        assert '<a href="#hello">the intro</a>' in html

    def test_raw_html_sources_are_published(self, loader):
        base_dir = os.path.join(loader.posts_dir, 'first-post')
        make_image(os.path.join(base_dir, 'inline.png'))
        with open(os.path.join(base_dir, 'clip.mp4'), 'wb') as f:
            f.write(b'\x00\x00\x00\x18ftypmp42')

        html = loader.render_markdown(
            '<img src="inline.png" alt="inline.png">\n\n<video src="clip.mp4" muted></video>\n', base_dir
        )

        assert re.search(r'<img src="/static/[0-9a-f]{12}/inline-1000\.webp" alt="inline\.png">', html)
        assert re.search(r'<video src="/static/[0-9a-f]{12}/clip\.mp4" muted>', html)

    def test_missing_reference_left_untouched(self, loader):
        base_dir = os.path.join(loader.posts_dir, 'first-post')

        html = loader.render_markdown('![gone.png](gone.png)', base_dir)

        assert 'src="gone.png"' in html
