"""
Media selection and publishing.

Images referenced by content are copied into ``<output>/static/<hash>/`` and
converted to WebP; videos and other files are copied as they are.
"""

import hashlib
import logging
import os
import shutil
from urllib.parse import urlparse

from PIL import Image, ImageSequence

from .utils import resolve_url

RASTER_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp', '.tiff', '.gif')
DEFAULT_MAX_WIDTH = 1000
WEBP_QUALITY = 80


def media_kind(src):
    """Sources ending in mp4 are played as video, everything else is an image."""
    if not src:
        return 'image'
    return 'video' if str(src).lower().endswith('mp4') else 'image'


def media_item(src, alt=''):
    return {'src': src, 'alt': alt or '', 'kind': media_kind(src)}


def is_remote(src):
    return str(src).startswith(('http://', 'https://', '//'))


class MediaProcessor:
    def __init__(self, output_dir, content_dir, path_prefix='', requestor=None):
        self.output_dir = output_dir
        self.content_dir = content_dir
        self.path_prefix = path_prefix or ''
        self.requestor = requestor
        self.static_dir = os.path.join(output_dir, 'static')
        self.images_converted = 0
        self.logger = logging.getLogger('Folio.media')
        self._published = {}

    def publish(self, src, base_dir=None, max_width=DEFAULT_MAX_WIDTH):
        """
        Publish a local or remote media file and return its public URL.

        Returns None (and logs a warning) when the source cannot be used.
        """
        if not src:
            return None
        src = str(src).strip()
        if src.startswith(('/', '#', 'mailto:', 'data:')):
            # Already a site path or not a file reference
            return src

        cache_key = (src, base_dir, max_width)
        if cache_key in self._published:
            return self._published[cache_key]

        if is_remote(src):
            url = self._publish_remote(src, max_width)
        else:
            url = self._publish_local(src, base_dir or self.content_dir, max_width)

        self._published[cache_key] = url
        return url

    def resolve_local(self, src, base_dir):
        """Resolve a relative reference, refusing anything outside the content directory."""
        full_path = os.path.abspath(os.path.join(base_dir, src))
        content_root = os.path.abspath(self.content_dir)
        if os.path.commonpath([full_path, content_root]) != content_root:
            self.logger.warning(f"Skipping media path outside content directory: {src}")
            return None
        if not os.path.isfile(full_path):
            self.logger.warning(f"Media file not found: {src}")
            return None
        return full_path

    def _publish_local(self, src, base_dir, max_width):
        source_path = self.resolve_local(src, base_dir)
        if source_path is None:
            return None
        with open(source_path, 'rb') as f:
            digest = hashlib.md5(f.read()).hexdigest()[:12]
        return self._store(source_path, digest, max_width, keep_source=True)

    def _publish_remote(self, url, max_width):
        if self.requestor is None:
            self.logger.warning(f"No requestor configured, skipping remote media {url}")
            return None
        if url.startswith('//'):
            url = 'https:' + url

        success, result = self.requestor.safe_get(url)
        if not success:
            self.logger.warning(f"Failed to download media {url}: {result}")
            return None

        name = os.path.basename(urlparse(url).path) or 'download'
        digest = hashlib.md5(url.encode('utf-8')).hexdigest()[:12]
        download_dir = os.path.join(self.static_dir, digest)
        os.makedirs(download_dir, exist_ok=True)
        download_path = os.path.join(download_dir, name)
        try:
            with open(download_path, 'wb') as f:
                f.write(result.content)
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write downloaded media {download_path}: {e}")
            return None
        return self._store(download_path, digest, max_width, keep_source=False)

    def _store(self, source_path, digest, max_width, keep_source):
        """Copy or convert source_path into static/<digest>/ and return its URL."""
        target_dir = os.path.join(self.static_dir, digest)
        os.makedirs(target_dir, exist_ok=True)
        name = os.path.basename(source_path)
        stem, ext = os.path.splitext(name)

        if ext.lower() in RASTER_EXTENSIONS:
            suffix = f"-{max_width}" if max_width else ''
            target_name = f"{stem}{suffix}.webp"
            target_path = os.path.join(target_dir, target_name)
            if not os.path.exists(target_path):
                if not self.convert_image_to_webp(source_path, target_path, max_width):
                    return None
            if not keep_source and os.path.abspath(source_path) != os.path.abspath(target_path):
                os.remove(source_path)
        else:
            target_name = name
            target_path = os.path.join(target_dir, target_name)
            if os.path.abspath(source_path) != os.path.abspath(target_path):
                try:
                    shutil.copy2(source_path, target_path)
                except (IOError, OSError, PermissionError) as e:
                    self.logger.error(f"Failed to copy media {source_path}: {e}")
                    return None

        self.logger.debug(f"Published media {source_path} -> {target_path}")
        return '/' + resolve_url(self.path_prefix, 'static', digest, target_name)

    def convert_image_to_webp(self, image_path, webp_path, max_width=None):
        try:
            with Image.open(image_path) as img:
                if getattr(img, 'is_animated', False):
                    frames = [self._fit(frame.copy(), max_width) for frame in ImageSequence.Iterator(img)]
                    frames[0].save(
                        webp_path, 'WEBP', save_all=True, append_images=frames[1:],
                        quality=WEBP_QUALITY, duration=img.info.get('duration', 100),
                        loop=img.info.get('loop', 0)
                    )
                else:
                    self._fit(img, max_width).save(webp_path, 'WEBP', quality=WEBP_QUALITY)
        except (IOError, OSError, ValueError) as e:
            self.logger.error(f"Failed to convert {image_path}: {e}")
            return False

        self.images_converted += 1
        return True

    def _fit(self, img, max_width):
        if img.mode not in ('RGB', 'RGBA'):
            img = img.convert('RGBA')
        if max_width and img.width > max_width:
            height = max(1, round(img.height * max_width / img.width))
            img = img.resize((max_width, height), Image.LANCZOS)
        return img
