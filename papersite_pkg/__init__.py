"""
PaperSite - content indexing and preview images for a Markdown blog.

PaperSite reads Markdown posts with YAML front matter, gives every post a
unique slug, derives sorted category and tag taxonomies, selects and
paginates the visible posts, and renders social preview images as PNG.
"""

__version__ = "1.0.0"

from .core import PaperSite
from .content import Post, load_posts
from .errors import ContentError, InvalidInputError, RenderError
from .og_image import OgImageRenderer
from .posts import (
    CategoryEntry,
    get_posts_by_category,
    get_unique_categories,
    get_visible_posts,
    post_filter,
)
from .slugify import Slugger, slugify_str

__all__ = [
    'PaperSite',
    'Post',
    'load_posts',
    'ContentError',
    'InvalidInputError',
    'RenderError',
    'OgImageRenderer',
    'CategoryEntry',
    'get_posts_by_category',
    'get_unique_categories',
    'get_visible_posts',
    'post_filter',
    'Slugger',
    'slugify_str',
]
