"""Test configuration and fixtures for Folio tests."""

import pytest
import tempfile
import shutil
import os
import json
from pathlib import Path
from unittest.mock import Mock

from jinja2 import Environment, FileSystemLoader, select_autoescape
from PIL import Image

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from folio_pkg.core import PACKAGE_TEMPLATES
from folio_pkg.media import media_kind
from folio_pkg.settings import FolioSettings


def make_image(path, size=(20, 10), color='red', mode='RGB', fmt='PNG'):
    """Write a small test image and return its path as a string."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color=color).save(str(path), fmt)
    return str(path)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_content_dir(temp_dir):
    """Create a content tree with posts, projects, an about page and a static page."""
    content_dir = Path(temp_dir) / 'content'
    posts_dir = content_dir / 'posts'

    first = posts_dir / 'first-post'
    first.mkdir(parents=True)
    make_image(first / 'cover.png', size=(1200, 600))
    (first / 'index.md').write_text("""---
title: First Post
date: 2021-03-04
tags:
  - python
  - tooling
  - python
cover: cover.png
---

# Hello

Some text with an image.

![A red square](cover.png)
""", encoding='utf-8')

    second = posts_dir / 'second-post'
    second.mkdir(parents=True)
    (second / 'index.mdx').write_text("""---
title: Second Post
date: 2022-05-01
tags: [web]
path: /writing/second
---

<GifVideo src="https://cdn.example.com/demo.mp4" caption="Demo" />

```python
print("hi")
```
""", encoding='utf-8')

    hidden = posts_dir / 'draft'
    hidden.mkdir(parents=True)
    (hidden / 'index.md').write_text("""---
title: Hidden Draft
date: 2023-01-01
tags: [secret]
hidden: true
---

Not listed anywhere.
""", encoding='utf-8')

    projects_dir = content_dir / 'projects'
    projects_dir.mkdir()
    (projects_dir / 'projects.json').write_text(json.dumps([
        {
            'title': 'Folio',
            'description': 'This site.',
            'startDate': '2021-01-01',
            'tags': ['python'],
            'links': [{'name': 'Source', 'url': 'https://github.com/example/folio'}],
        },
        {
            'title': 'Old Tool',
            'startDate': '2018-01-01',
            'endDate': '2019-06-01',
            'tags': ['tooling'],
        },
        {'title': 'Secret', 'startDate': '2020-01-01', 'hidden': True},
    ]), encoding='utf-8')

    about_dir = content_dir / 'about'
    about_dir.mkdir()
    (about_dir / 'index.md').write_text("""---
title: About me
description: Developer
---

I build things.
""", encoding='utf-8')
    make_image(about_dir / 'profile-photo.png', size=(900, 900))
    make_image(about_dir / 'skills' / 'python.png', size=(64, 64))
    make_image(about_dir / 'skills' / 'css.png', size=(64, 64))

    pages_dir = content_dir / 'pages'
    pages_dir.mkdir()
    (pages_dir / 'uses.md').write_text("""---
title: Uses
order: 1
---

Tools I use.
""", encoding='utf-8')

    make_image(content_dir / 'images' / 'tags' / 'python.png', size=(800, 400))

    return str(content_dir)


@pytest.fixture
def mock_templates_dir(temp_dir):
    """An empty user templates directory; the packaged templates apply."""
    templates_dir = Path(temp_dir) / 'templates'
    templates_dir.mkdir()
    return str(templates_dir)


@pytest.fixture
def mock_output_dir(temp_dir):
    """Create a mock output directory."""
    output_dir = Path(temp_dir) / 'output'
    output_dir.mkdir()
    return str(output_dir)


@pytest.fixture
def log_dir(temp_dir):
    return os.path.join(temp_dir, 'logs')


@pytest.fixture
def site_settings():
    """Default settings with a site URL and a small tag dictionary."""
    overrides = {
        'site_url': 'https://example.com',
        'site_title': 'Test Site',
        'author': 'Jane Doe',
        'tags': {
            'python': {'name': 'Python', 'description': 'A programming language.'},
            'web': {'name': 'Web'},
        },
    }
    loader = FolioSettings()
    return loader._merge(loader.settings, overrides)


@pytest.fixture
def jinja_env():
    """Environment over the packaged templates only."""
    env = Environment(
        loader=FileSystemLoader([PACKAGE_TEMPLATES]),
        autoescape=select_autoescape(['html', 'xml']),
    )
    env.globals['media_kind'] = media_kind
    return env


@pytest.fixture
def mock_session():
    """Create a mock requests session."""
    session = Mock()
    session.timeout = 30
    session.headers = {}
    return session


@pytest.fixture
def mock_requestor():
    """A requestor that serves a tiny mp4 payload for every URL."""
    requestor = Mock()
    response = Mock()
    response.content = b'\x00\x00\x00\x18ftypmp42'
    requestor.safe_get.return_value = (True, response)
    return requestor
