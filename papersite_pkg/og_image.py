"""
Social preview (Open Graph) image rendering.

Images are 1200x630 PNG cards composed with Pillow: a bordered card with an
offset shadow, the post title, the author and the site title. Output depends
only on the text and the configured fonts, so the same inputs always encode
to the same bytes.
"""

import io
import logging
from urllib.parse import urlparse

from PIL import Image, ImageDraw, ImageFont

from .errors import FontLoadError, RenderError

logger = logging.getLogger(__name__)

WIDTH, HEIGHT = 1200, 630

BACKGROUND = (254, 251, 251)
FOREGROUND = (0, 0, 0)

CARD_BOX = (40, 30, 1150, 590)
SHADOW_BOX = (60, 50, 1170, 610)
CARD_BORDER = 4
PADDING = 50

TITLE_SIZE = 64
TITLE_MAX_LINES = 3
META_SIZE = 28
SITE_TITLE_SIZE = 72
SITE_DESC_SIZE = 32


class OgImageRenderer:
    """
    Renders preview images for the site and for single posts.

    Fonts come from ``og_font_path`` (a local TrueType file), ``og_font``
    (a Google font fetched through ``font_loader``), or Pillow's bundled
    font when neither is configured.
    """

    def __init__(self, settings, font_loader=None):
        self.settings = settings
        self.font_loader = font_loader
        self._fonts = {}

    # Fonts

    def _font_file(self, bold):
        if self.settings.get('og_font_path'):
            return self.settings['og_font_path']
        family = self.settings.get('og_font')
        if family:
            if self.font_loader is None:
                raise FontLoadError(f"Font '{family}' configured but no font loader available")
            return self.font_loader.load(family, 700 if bold else 400)
        return None

    def get_font(self, size, bold=False):
        key = (size, bold)
        if key not in self._fonts:
            font_file = self._font_file(bold)
            try:
                if font_file:
                    self._fonts[key] = ImageFont.truetype(font_file, size)
                else:
                    self._fonts[key] = ImageFont.load_default(size=size)
            except (OSError, ValueError) as e:
                raise FontLoadError(f"Cannot open font {font_file or '<default>'}: {e}")
        return self._fonts[key]

    # Layout helpers

    @staticmethod
    def _text_width(draw, text, font):
        left, _, right, _ = draw.textbbox((0, 0), text, font=font)
        return right - left

    def _fit_text(self, draw, text, font, max_width):
        """Greedy word wrap; a word wider than the line gets a line of its own."""
        words, lines, current = text.split(), [], []
        for word in words:
            candidate = ' '.join(current + [word])
            if self._text_width(draw, candidate, font) <= max_width or not current:
                current.append(word)
            else:
                lines.append(' '.join(current))
                current = [word]
        if current:
            lines.append(' '.join(current))
        return lines

    def _truncate_lines(self, draw, lines, font, max_width, max_lines):
        if len(lines) <= max_lines:
            return lines
        kept = lines[:max_lines]
        last = kept[-1]
        while last and self._text_width(draw, last + '...', font) > max_width:
            last = last[:-1].rstrip()
        kept[-1] = last + '...'
        return kept

    def _check_glyphs(self, text, font):
        """Refuse text the font can only draw as its 'missing glyph' box."""
        if not isinstance(font, ImageFont.FreeTypeFont):
            return
        missing = self._glyph_signature(font, '\U0010fffd')
        if not any(missing):
            return
        for ch in sorted(set(text)):
            if ch.isspace():
                continue
            if self._glyph_signature(font, ch) == missing:
                raise RenderError(f"Font has no glyph for {ch!r} (U+{ord(ch):04X})")

    @staticmethod
    def _glyph_signature(font, ch):
        image = Image.new('L', (font.size * 2, font.size * 2), 0)
        ImageDraw.Draw(image).text((0, 0), ch, font=font, fill=255)
        return image.tobytes()

    def _new_card(self):
        image = Image.new('RGB', (WIDTH, HEIGHT), BACKGROUND)
        draw = ImageDraw.Draw(image)
        draw.rectangle(SHADOW_BOX, fill=FOREGROUND)
        draw.rectangle(CARD_BOX, fill=BACKGROUND, outline=FOREGROUND, width=CARD_BORDER)
        return image, draw

    @staticmethod
    def _encode(image):
        buffer = io.BytesIO()
        image.save(buffer, format='PNG')
        return buffer.getvalue()

    def _site_host(self):
        website = self.settings.get('website') or ''
        return urlparse(website).netloc.replace('www.', '') or website

    # Public API

    def render_site_image(self):
        """PNG bytes of the site-wide preview card."""
        title = (self.settings.get('title') or '').strip()
        if not title:
            raise RenderError("Cannot render a site image without a site title")
        desc = (self.settings.get('desc') or '').strip()

        try:
            title_font = self.get_font(SITE_TITLE_SIZE, bold=True)
            desc_font = self.get_font(SITE_DESC_SIZE)
            meta_font = self.get_font(META_SIZE, bold=True)
            self._check_glyphs(title + desc, title_font)

            image, draw = self._new_card()
            inner_left, inner_top, inner_right, inner_bottom = CARD_BOX
            max_width = inner_right - inner_left - 2 * PADDING
            center_x = (inner_left + inner_right) // 2

            title_lines = self._truncate_lines(
                draw, self._fit_text(draw, title, title_font, max_width), title_font, max_width, 2)
            desc_lines = self._truncate_lines(
                draw, self._fit_text(draw, desc, desc_font, max_width), desc_font, max_width, 3)

            y = inner_top + 150
            for line in title_lines:
                draw.text((center_x, y), line, font=title_font, fill=FOREGROUND, anchor='mt')
                y += int(SITE_TITLE_SIZE * 1.2)
            y += 20
            for line in desc_lines:
                draw.text((center_x, y), line, font=desc_font, fill=FOREGROUND, anchor='mt')
                y += int(SITE_DESC_SIZE * 1.4)

            draw.text((inner_right - PADDING, inner_bottom - PADDING), self._site_host(),
                      font=meta_font, fill=FOREGROUND, anchor='rb')
            return self._encode(image)
        except RenderError:
            raise
        except (OSError, ValueError, UnicodeError) as e:
            raise RenderError(f"Failed to render site image: {e}")

    def render_post_image(self, post):
        """PNG bytes of the preview card for ``post``."""
        title = (post.title or '').strip()
        if not title:
            raise RenderError("Cannot render a post image without a title")
        author = (post.author or self.settings.get('author') or '').strip()
        site_title = (self.settings.get('title') or '').strip()

        try:
            title_font = self.get_font(TITLE_SIZE, bold=True)
            meta_font = self.get_font(META_SIZE)
            site_font = self.get_font(META_SIZE, bold=True)
            self._check_glyphs(title, title_font)

            image, draw = self._new_card()
            inner_left, inner_top, inner_right, inner_bottom = CARD_BOX
            max_width = inner_right - inner_left - 2 * PADDING

            lines = self._truncate_lines(
                draw, self._fit_text(draw, title, title_font, max_width),
                title_font, max_width, TITLE_MAX_LINES)

            y = inner_top + PADDING + 20
            for line in lines:
                draw.text((inner_left + PADDING, y), line, font=title_font, fill=FOREGROUND)
                y += int(TITLE_SIZE * 1.25)

            baseline = inner_bottom - PADDING
            if author:
                draw.text((inner_left + PADDING, baseline), f"by {author}",
                          font=meta_font, fill=FOREGROUND, anchor='lb')
            if site_title:
                draw.text((inner_right - PADDING, baseline), site_title,
                          font=site_font, fill=FOREGROUND, anchor='rb')
            return self._encode(image)
        except RenderError:
            raise
        except (OSError, ValueError, UnicodeError) as e:
            raise RenderError(f"Failed to render image for {title!r}: {e}")
