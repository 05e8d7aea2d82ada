"""
HTTP-shaped handlers for the preview image routes.

``/og.png`` serves the site image and ``/posts/<slug>/index.png`` serves a
post image, where ``<slug>`` is the slug of the post title. The handlers
return plain ``ImageResponse`` values so any web framework, or the static
builder, can transport them.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict

from .errors import InvalidInputError, RenderError
from .posts import DEFAULT_SCHEDULED_POST_MARGIN, post_filter
from .slugify import Slugger

logger = logging.getLogger(__name__)

PNG_HEADERS = {
    'Content-Type': 'image/png',
    'Cache-Control': 'public, max-age=3600',
}

ERROR_HEADERS = {
    'Content-Type': 'text/plain; charset=utf-8',
    'Cache-Control': 'no-store',
}


@dataclass
class ImageResponse:
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self):
        return self.status == 200


def _error(status, message):
    return ImageResponse(status=status, body=message.encode('utf-8'), headers=dict(ERROR_HEADERS))


def get_static_paths(posts, now=None, margin=DEFAULT_SCHEDULED_POST_MARGIN):
    """
    Route parameters for every post that needs a generated image.

    Returns an ordered ``{slug: post}`` mapping keyed by the slug of the
    post title, in input order; titles that slug to the same value get
    numbered suffixes.
    """
    slugger = Slugger()
    paths = OrderedDict()
    candidates = [post for post in posts if post_filter(post, now, margin) and not post.og_image]
    for post in candidates:
        try:
            paths[slugger.slug(post.title)] = post
        except InvalidInputError as e:
            logger.error(f"No image route for {post.source_path or post.title!r}: {e}")
    return paths


def site_og_image(renderer):
    """Response for ``/og.png``."""
    try:
        body = renderer.render_site_image()
    except RenderError as e:
        logger.error(f"Site image rendering failed: {e}")
        return _error(500, "Failed to render site image")
    return ImageResponse(status=200, body=body, headers=dict(PNG_HEADERS))


def post_og_image(renderer, paths, slug):
    """
    Response for ``/posts/<slug>/index.png``.

    ``paths`` is the mapping returned by ``get_static_paths``.
    """
    post = paths.get(slug)
    if post is None:
        return _error(404, f"No post image for '{slug}'")
    try:
        body = renderer.render_post_image(post)
    except RenderError as e:
        logger.error(f"Post image rendering failed for '{slug}': {e}")
        return _error(500, f"Failed to render image for '{slug}'")
    return ImageResponse(status=200, body=body, headers=dict(PNG_HEADERS))
