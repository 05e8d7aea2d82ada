"""
Google Fonts download and cache for preview image rendering.
"""

import os
import re
import logging
from typing import Optional

from .errors import FontLoadError
from .url_validator import SafeRequestor, URLValidator

logger = logging.getLogger(__name__)

GOOGLE_FONTS_API = 'https://fonts.googleapis.com/css2?family={font_name}:wght@{weight}'

# Google serves TrueType/OpenType to clients that do not announce woff2 support.
FONT_SRC_PATTERN = re.compile(r"src:\s*url\((.+?)\)\s*format\('(opentype|truetype)'\)")


class GoogleFontLoader:
    """
    Fetches a font family/weight from Google Fonts once and keeps the file
    in ``cache_dir``; later calls read the cached file.
    """

    def __init__(self, cache_dir, requestor: Optional[SafeRequestor] = None):
        self.cache_dir = cache_dir
        self.requestor = requestor or SafeRequestor(URLValidator())

    def font_path(self, family, weight):
        font_slug = family.strip().lower().replace(' ', '-')
        return os.path.join(self.cache_dir, f'{font_slug}-{weight}.ttf')

    def load(self, family, weight=400):
        """
        Path to a local TrueType file for ``family`` at ``weight``.

        Raises:
            FontLoadError: if the font cannot be fetched or written.
        """
        path = self.font_path(family, weight)
        if os.path.exists(path) and os.path.getsize(path) > 0:
            logger.debug(f"Font cache hit: {path}")
            return path

        css_url = GOOGLE_FONTS_API.format(font_name=family.strip().replace(' ', '+'), weight=weight)
        success, result = self.requestor.safe_get(css_url)
        if not success:
            raise FontLoadError(f"Failed to fetch Google Fonts CSS for {family} {weight}: {result}")

        match = FONT_SRC_PATTERN.search(result.text)
        if not match:
            raise FontLoadError(f"No TrueType source in Google Fonts CSS for {family} {weight}")

        font_url = match.group(1).strip('\'"')
        success, result = self.requestor.safe_get(font_url)
        if not success:
            raise FontLoadError(f"Failed to download font file {font_url}: {result}")

        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            with open(path, 'wb') as f:
                f.write(result.content)
        except (IOError, OSError) as e:
            raise FontLoadError(f"Failed to write font file {path}: {e}")

        logger.info(f"Downloaded font: {family} {weight}")
        return path

    def close(self):
        self.requestor.close()
