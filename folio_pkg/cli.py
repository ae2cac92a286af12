#!/usr/bin/env python3
"""
Command-line interface for Folio.
"""

import os
import sys
import shutil
import argparse

from PIL import Image

from . import __version__
from .core import Folio, PACKAGE_ASSETS
from .settings import FolioSettings

SAMPLE_COVER_COLOR = '#0C2744'

SAMPLE_POST = """---
title: "Hello, Folio"
date: 2024-01-15
tags:
  - python
  - tooling
cover: cover.png
excerpt: "The first post of a brand new portfolio."
---

Welcome to your new portfolio. Posts live in `content/posts/<name>/index.md`
and may reference images stored next to them:

![A sample cover](cover.png)

Components can be embedded in `.mdx` posts:

```jsx
<GifVideo src="demo.mp4" alt="A short demo" />
```

## Code

```python
print("hello from folio")
```
"""

SAMPLE_PROJECTS = """[
  {
    "title": "Folio",
    "description": "Static site generator for this portfolio.",
    "startDate": "2024-01-01",
    "tags": ["python", "tooling"],
    "links": [{"name": "Source", "url": "https://github.com/username/folio"}],
    "images": []
  }
]
"""

SAMPLE_ABOUT = """---
title: "About me"
description: "Developer and writer."
---

Hi! I build tools and write about them. Drop a `profile-photo.png` next to this
file, skill icons into `skills/`, tool icons into `tools/` and resume PDFs into
`resumes/`.
"""

SAMPLE_PAGE = """---
title: "Uses"
order: 1
description: "Hardware and software I use every day."
---

A list of the tools I use.
"""


def write_sample(path, text):
    if os.path.exists(path):
        print(f"File already exists: {os.path.relpath(path)}")
        return
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
    print(f"Created: {os.path.relpath(path)}")


def write_sample_cover(path):
    """Placeholder cover image the sample post refers to."""
    if os.path.exists(path):
        print(f"File already exists: {os.path.relpath(path)}")
        return
    os.makedirs(os.path.dirname(path), exist_ok=True)
    Image.new('RGB', (1200, 630), color=SAMPLE_COVER_COLOR).save(path, 'PNG')
    print(f"Created: {os.path.relpath(path)}")


def create_starter_structure(root=None):
    """Create a starter content tree and copy the default assets."""
    root = root or os.getcwd()
    content = os.path.join(root, 'content')

    for directory in ('templates', 'content/images/tags', 'content/about/skills',
                      'content/about/tools', 'content/about/resumes'):
        os.makedirs(os.path.join(root, directory), exist_ok=True)

    write_sample(os.path.join(content, 'posts', 'hello-folio', 'index.md'), SAMPLE_POST)
    write_sample_cover(os.path.join(content, 'posts', 'hello-folio', 'cover.png'))
    write_sample(os.path.join(content, 'projects', 'projects.json'), SAMPLE_PROJECTS)
    write_sample(os.path.join(content, 'about', 'index.md'), SAMPLE_ABOUT)
    write_sample(os.path.join(content, 'pages', 'uses.md'), SAMPLE_PAGE)

    assets_dest = os.path.join(root, 'assets')
    if os.path.exists(assets_dest):
        print("Assets directory already exists: assets")
    else:
        shutil.copytree(PACKAGE_ASSETS, assets_dest)
        print("Created assets: assets")


def build_parser():
    parser = argparse.ArgumentParser(description='Folio - portfolio and blog site generator')
    parser.add_argument('--output', type=str, help='Output directory for generated site')
    parser.add_argument('--content', type=str, help='Content directory (posts, projects, about, pages)')
    parser.add_argument('--templates', type=str, help='Templates directory overriding the defaults')
    parser.add_argument('--assets', type=str, help='Assets directory to copy to output')
    parser.add_argument('--site-url', type=str, help='Site URL for RSS feed, sitemap and manifest')
    parser.add_argument('--site-title', type=str, help='Site title for metadata')
    parser.add_argument('--path-prefix', type=str, help='URL prefix for every internal link')
    parser.add_argument('--posts-per-page', type=int, help='Number of posts per archive page')
    parser.add_argument('--robots', type=str, choices=['public', 'private'], help='Robots.txt configuration')
    parser.add_argument('--minify', action='store_true', default=None, help='Minify CSS and JS assets')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter content')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.init:
        settings_loader = FolioSettings()
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        create_starter_structure()
        print("\nYour new Folio site is ready! Run 'folio' to build it.")
        return

    settings_loader = FolioSettings()
    settings_loader.load_settings()

    args_dict = {k: v for k, v in vars(args).items() if v is not None and k != 'init'}
    final_settings = settings_loader.merge_with_args(args_dict)

    output_dir = os.path.expanduser(final_settings['output'])

    generator = None
    try:
        generator = Folio(
            content_dir=final_settings['content'],
            templates_dir=final_settings['templates'],
            output_dir=output_dir,
            assets_dir=final_settings['assets'],
            site_url=final_settings['site_url'],
            minify=bool(final_settings['minify']),
            log_dir=final_settings['log_dir'],
            settings=final_settings,
        )
        generator.build()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if generator is not None:
            generator.close()


if __name__ == '__main__':
    main()
