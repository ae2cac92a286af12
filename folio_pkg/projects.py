"""
Project showcase entries loaded from ``<content>/projects/*.json``.
"""

import json
import logging
import os
from datetime import datetime

from .media import media_item
from .utils import parse_date

PROJECT_IMAGE_WIDTH = 600
PERIOD_FORMAT = '%b %Y'

logger = logging.getLogger('Folio.projects')


def read_project_files(projects_dir):
    """Raw project entries from every JSON file, in file name order."""
    entries = []
    if not projects_dir or not os.path.isdir(projects_dir):
        return entries
    for name in sorted(os.listdir(projects_dir)):
        if not name.endswith('.json'):
            continue
        file_path = os.path.join(projects_dir, name)
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (IOError, OSError, PermissionError) as e:
            logger.error(f"Failed to read projects file {file_path}: {e}")
            continue
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in projects file {file_path}: {e}")
            continue
        entries.extend(data if isinstance(data, list) else [data])
    return entries


def format_period(start, end):
    if start == datetime.min:
        return ''
    if end == datetime.min:
        return f"{start.strftime(PERIOD_FORMAT)} - Present"
    if (start.year, start.month) == (end.year, end.month):
        return start.strftime(PERIOD_FORMAT)
    return f"{start.strftime(PERIOD_FORMAT)} - {end.strftime(PERIOD_FORMAT)}"


def normalize_project(entry, projects_dir=None, media=None):
    """Turn a raw JSON entry into a project dict, or None if it is unusable."""
    if not isinstance(entry, dict):
        logger.warning(f"Skipping project entry that is not an object: {entry!r}")
        return None
    title = entry.get('title')
    if not title:
        logger.warning("Skipping project entry without a title")
        return None

    start = parse_date(entry.get('startDate'))
    end = parse_date(entry.get('endDate'))

    items = []
    for image in entry.get('images') or []:
        if isinstance(image, dict):
            src, alt = image.get('src'), image.get('alt', '')
        else:
            src, alt = image, ''
        if not src:
            continue
        item = media_item(src, alt or title)
        if media is not None:
            item['src'] = media.publish(src, projects_dir, max_width=PROJECT_IMAGE_WIDTH)
            if not item['src']:
                continue
        items.append(item)

    links = []
    for link in entry.get('links') or []:
        if isinstance(link, dict) and link.get('url'):
            links.append({'name': link.get('name') or link['url'], 'url': link['url']})
        elif isinstance(link, str):
            links.append({'name': link, 'url': link})

    tags = entry.get('tags') or []
    if isinstance(tags, str):
        tags = [tags]

    return {
        'title': str(title),
        'description': entry.get('description', ''),
        'links': links,
        'start': start,
        'end': end,
        'ongoing': end == datetime.min,
        'period': format_period(start, end),
        'media': items,
        'tags': [str(tag) for tag in tags if tag],
        'post': entry.get('post'),
        'hidden': bool(entry.get('hidden', False)),
    }


def sort_projects(projects):
    """Ongoing projects first, then most recently ended, then most recently started."""
    return sorted(
        projects,
        key=lambda p: (
            not p['ongoing'],
            -p['end'].toordinal() if not p['ongoing'] else 0,
            -p['start'].toordinal(),
            p['title'].lower(),
        )
    )


def load_projects(projects_dir, media=None):
    """Visible, deduplicated (by title, first wins) and sorted projects."""
    projects = []
    seen = set()
    for entry in read_project_files(projects_dir):
        project = normalize_project(entry, projects_dir, media)
        if project is None or project['hidden']:
            continue
        if project['title'] in seen:
            logger.warning(f"Duplicate project {project['title']}, keeping the first entry")
            continue
        seen.add(project['title'])
        projects.append(project)
    return sort_projects(projects)
