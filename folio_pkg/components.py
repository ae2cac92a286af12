"""
Embedded component expansion for MDX post bodies.

Supports self-closing ``<GifVideo />``, ``<CompareSlider />`` and
``<SlickCarousel />`` tags. They are rendered through Jinja2 partials before
the Markdown pass; fenced code blocks are left alone.
"""

import json
import logging
import re

import yaml
from jinja2 import TemplateError

from .media import media_item

FENCE_RE = re.compile(r'^[ \t]*(`{3,}|~{3,})')
ATTR_NAME_RE = re.compile(r'[A-Za-z_][\w-]*')

DEFAULT_THRESHOLD = 0.15

logger = logging.getLogger('Folio.components')


class ComponentSyntaxError(ValueError):
    """Raised when an embedded component tag cannot be parsed."""


def parse_attributes(source):
    """
    Parse JSX-style attributes into a dict.

    ``key="text"`` and ``key='text'`` give strings, ``key={expr}`` is read as
    JSON or YAML flow syntax, and a bare ``key`` is True.
    """
    attrs = {}
    pos = 0
    length = len(source)
    while pos < length:
        if source[pos].isspace():
            pos += 1
            continue
        match = ATTR_NAME_RE.match(source, pos)
        if not match:
            raise ComponentSyntaxError(f"Unexpected character {source[pos]!r} in attributes")
        name = match.group(0)
        pos = match.end()
        while pos < length and source[pos].isspace():
            pos += 1
        if pos >= length or source[pos] != '=':
            attrs[name] = True
            continue
        pos += 1
        while pos < length and source[pos].isspace():
            pos += 1
        if pos >= length:
            raise ComponentSyntaxError(f"Missing value for attribute {name}")

        quote = source[pos]
        if quote in ('"', "'"):
            end = source.find(quote, pos + 1)
            if end == -1:
                raise ComponentSyntaxError(f"Unterminated string for attribute {name}")
            attrs[name] = source[pos + 1:end]
            pos = end + 1
        elif quote == '{':
            end = _matching_brace(source, pos)
            attrs[name] = _parse_expression(source[pos + 1:end], name)
            pos = end + 1
        else:
            raise ComponentSyntaxError(f"Unquoted value for attribute {name}")
    return attrs


def _matching_brace(source, start):
    depth = 0
    quote = None
    for index in range(start, len(source)):
        char = source[index]
        if quote:
            if char == quote and source[index - 1] != '\\':
                quote = None
            continue
        if char in ('"', "'", '`'):
            quote = char
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return index
    raise ComponentSyntaxError("Unbalanced braces in attribute expression")


def _parse_expression(expression, name):
    expression = expression.strip()
    try:
        return json.loads(expression)
    except ValueError:
        pass
    try:
        return yaml.safe_load(expression)
    except yaml.YAMLError as e:
        raise ComponentSyntaxError(f"Cannot parse expression for attribute {name}: {e}")


def find_tag_end(text, start):
    """Index just past the '/>' closing a component tag opened at start."""
    quote = None
    depth = 0
    for index in range(start, len(text) - 1):
        char = text[index]
        if quote:
            if char == quote and text[index - 1] != '\\':
                quote = None
            continue
        if char in ('"', "'"):
            quote = char
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
        elif depth == 0 and char == '/' and text[index + 1] == '>':
            return index + 2
    return -1


class ComponentRenderer:
    """Expand embedded components using Jinja2 partials."""

    PARTIALS = {
        'GifVideo': 'components/gif-video.html',
        'CompareSlider': 'components/compare-slider.html',
        'SlickCarousel': 'components/slick-carousel.html',
    }

    def __init__(self, env, resolve_src=None):
        self.env = env
        self.resolve_src = resolve_src or (lambda src: src)
        self.tag_re = re.compile(r'<(%s)\b' % '|'.join(self.PARTIALS))

    def expand(self, text):
        """Expand components outside fenced code blocks."""
        chunks = []
        buffer = []
        fence = None
        for line in text.splitlines(keepends=True):
            match = FENCE_RE.match(line)
            if fence is None:
                if match:
                    chunks.append(self._expand_chunk(''.join(buffer)))
                    buffer = [line]
                    fence = match.group(1)[0] * len(match.group(1))
                else:
                    buffer.append(line)
            else:
                buffer.append(line)
                if match and match.group(1).startswith(fence):
                    chunks.append(''.join(buffer))
                    buffer = []
                    fence = None
        remainder = ''.join(buffer)
        chunks.append(remainder if fence else self._expand_chunk(remainder))
        return ''.join(chunks)

    def _expand_chunk(self, text):
        output = []
        pos = 0
        while True:
            match = self.tag_re.search(text, pos)
            if not match:
                output.append(text[pos:])
                break
            end = find_tag_end(text, match.end())
            if end == -1:
                logger.warning(f"Unterminated <{match.group(1)}> component, leaving it as text")
                output.append(text[pos:])
                break
            output.append(text[pos:match.start()])
            attr_source = text[match.end():end - 2]
            output.append(self.render(match.group(1), attr_source))
            pos = end
        return ''.join(output)

    def render(self, name, attr_source):
        try:
            attrs = parse_attributes(attr_source)
            context = getattr(self, '_context_' + name)(attrs)
        except (ComponentSyntaxError, KeyError, TypeError) as e:
            logger.error(f"Invalid <{name}> component: {e}")
            return ''

        try:
            html = self.env.get_template(self.PARTIALS[name]).render(**context)
        except TemplateError as e:
            logger.error(f"Template error in {self.PARTIALS[name]}: {e}")
            return ''
        # Blank lines would end the raw HTML block in Markdown
        html = '\n'.join(line for line in html.splitlines() if line.strip())
        return f"\n\n{html}\n\n"

    def _item(self, src, alt=''):
        item = media_item(src, alt)
        item['src'] = self.resolve_src(src) or src
        return item

    def _context_GifVideo(self, attrs):
        if not attrs.get('src'):
            raise KeyError('src')
        return {
            'item': self._item(attrs['src'], attrs.get('caption', '')),
            'caption': attrs.get('caption'),
            'threshold': attrs.get('threshold', DEFAULT_THRESHOLD),
            'class_name': attrs.get('className', ''),
        }

    def _context_CompareSlider(self, attrs):
        if not attrs.get('src1') or not attrs.get('src2'):
            raise KeyError('src1/src2')
        return {
            'first': self._item(attrs['src1'], 'image 1'),
            'second': self._item(attrs['src2'], 'image 2'),
            'threshold': attrs.get('threshold', DEFAULT_THRESHOLD),
        }

    def _context_SlickCarousel(self, attrs):
        images = attrs.get('images')
        if not isinstance(images, list):
            raise TypeError('images must be a list of {src, alt}')
        items = []
        for image in images:
            if isinstance(image, str):
                items.append(self._item(image))
            elif isinstance(image, dict) and image.get('src'):
                items.append(self._item(image['src'], image.get('alt', '')))
        return {
            'items': items,
            'settings': attrs.get('settings') or {},
            'threshold': attrs.get('threshold', DEFAULT_THRESHOLD),
        }
