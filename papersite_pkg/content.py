"""
Content loading for PaperSite.

Posts are Markdown files with a YAML front matter block. This module is the
boundary where malformed records are rejected; everything downstream can
assume well-formed ``Post`` objects.
"""

import os
import html
import re
import logging
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from typing import List, Optional

import mistune
import yaml

from .errors import ContentError

logger = logging.getLogger(__name__)

# Front matter keys accepted for each Post attribute, first match wins.
FIELD_ALIASES = {
    'pub_datetime': ('pubDatetime', 'pub_datetime', 'datetime', 'scheduledDate', 'scheduled_date', 'date'),
    'mod_datetime': ('modDatetime', 'mod_datetime'),
    'og_image': ('ogImage', 'og_image'),
    'canonical_url': ('canonicalURL', 'canonical_url'),
}

DATE_FORMATS = ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d', '%b %d, %Y']

EXCERPT_WORDS = 30


@dataclass
class Post:
    title: str
    pub_datetime: datetime
    slug: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    draft: bool = False
    mod_datetime: Optional[datetime] = None
    description: str = ''
    author: str = ''
    featured: bool = False
    og_image: Optional[str] = None
    canonical_url: Optional[str] = None
    body: str = ''
    source_path: Optional[str] = None

    def __post_init__(self):
        # Naive timestamps are UTC, as in parse_date.
        if self.pub_datetime is not None and self.pub_datetime.tzinfo is None:
            self.pub_datetime = self.pub_datetime.replace(tzinfo=timezone.utc)
        if self.mod_datetime is not None and self.mod_datetime.tzinfo is None:
            self.mod_datetime = self.mod_datetime.replace(tzinfo=timezone.utc)

    @property
    def sort_datetime(self) -> datetime:
        """Timestamp used for listing order: last modification, else publication."""
        return self.mod_datetime or self.pub_datetime


def parse_date(value):
    """
    Parse a front matter date into a timezone-aware datetime.

    YAML already turns most timestamps into ``datetime``/``date`` objects;
    strings in a few common formats are accepted too. Naive values are
    taken to be UTC. Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = None
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_list(value, key, source_path):
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    raise ContentError(f"'{key}' must be a list of strings", source_path)


def _as_bool(value, key, source_path):
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ContentError(f"'{key}' must be true or false, got {value!r}", source_path)
    return value


def _lookup(metadata, attribute):
    for key in FIELD_ALIASES.get(attribute, (attribute,)):
        if key in metadata and metadata[key] is not None:
            return metadata[key]
    return None


def _markdown_parser():
    return mistune.create_markdown(plugins=['table', 'strikethrough'])


def generate_excerpt(markdown_content, markdown_parser=None):
    """Plain-text excerpt of the first words of a Markdown body."""
    parser = markdown_parser or _markdown_parser()
    html_content = parser(markdown_content)
    plain_text = html.unescape(re.sub(r'<[^>]+>', '', html_content))
    words = plain_text.split()
    if len(words) > EXCERPT_WORDS:
        return ' '.join(words[:EXCERPT_WORDS]) + '...'
    return ' '.join(words)


def split_front_matter(content):
    """Split a document into (metadata dict, markdown body)."""
    if not content.lstrip().startswith('---'):
        return {}, content

    parts = content.lstrip().split('---', 2)
    if len(parts) < 3:
        return {}, content

    metadata = yaml.safe_load(parts[1]) or {}
    if not isinstance(metadata, dict):
        raise yaml.YAMLError("front matter is not a mapping")
    return metadata, parts[2].strip()


def post_from_metadata(metadata, body='', source_path=None, markdown_parser=None):
    """Build a Post from a front matter mapping, validating required fields."""
    title = metadata.get('title')
    if not isinstance(title, str) or not title.strip():
        raise ContentError("missing required 'title'", source_path)

    raw_pub = _lookup(metadata, 'pub_datetime')
    if raw_pub is None:
        raise ContentError("missing required publication date ('pubDatetime')", source_path)
    pub_datetime = parse_date(raw_pub)
    if pub_datetime is None:
        raise ContentError(f"unparseable publication date {raw_pub!r}", source_path)

    raw_mod = _lookup(metadata, 'mod_datetime')
    mod_datetime = parse_date(raw_mod) if raw_mod is not None else None
    if raw_mod is not None and mod_datetime is None:
        logger.warning(f"{source_path or title!r}: ignoring unparseable modification date {raw_mod!r}")

    description = metadata.get('description')
    if not description and body:
        description = generate_excerpt(body, markdown_parser)

    slug = metadata.get('slug')
    return Post(
        title=title.strip(),
        pub_datetime=pub_datetime,
        slug=str(slug) if slug else None,
        categories=_as_list(metadata.get('categories'), 'categories', source_path),
        tags=_as_list(metadata.get('tags'), 'tags', source_path),
        draft=_as_bool(metadata.get('draft'), 'draft', source_path),
        mod_datetime=mod_datetime,
        description=description or '',
        author=str(metadata.get('author') or ''),
        featured=_as_bool(metadata.get('featured'), 'featured', source_path),
        og_image=_lookup(metadata, 'og_image'),
        canonical_url=_lookup(metadata, 'canonical_url'),
        body=body,
        source_path=source_path,
    )


def load_post(filepath, default_author='', markdown_parser=None):
    """Read and parse a single Markdown post file."""
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
    except (IOError, OSError) as e:
        raise ContentError(f"cannot read file: {e}", filepath)

    try:
        metadata, body = split_front_matter(content)
    except yaml.YAMLError as e:
        raise ContentError(f"invalid YAML front matter: {e}", filepath)

    if default_author and not metadata.get('author'):
        metadata['author'] = default_author
    return post_from_metadata(metadata, body, filepath, markdown_parser)


def get_markdown_files(directory):
    """All ``.md``/``.mdx`` files below ``directory``, in a stable order."""
    markdown_files = []
    if os.path.exists(directory):
        for root, dirs, files in os.walk(directory):
            dirs.sort()
            # Directories and files starting with "_" are ignored.
            dirs[:] = [d for d in dirs if not d.startswith('_')]
            for file in sorted(files):
                if file.endswith(('.md', '.mdx')) and not file.startswith('_'):
                    markdown_files.append(os.path.join(root, file))
    return markdown_files


def load_posts(posts_dir, default_author='', strict=False):
    """
    Load every post below ``posts_dir``.

    Malformed files are logged and skipped, or re-raised when ``strict``.
    Returns posts in file order so slug assignment stays deterministic.
    """
    markdown_parser = _markdown_parser()
    posts = []
    for filepath in get_markdown_files(posts_dir):
        try:
            posts.append(load_post(filepath, default_author, markdown_parser))
        except ContentError as e:
            if strict:
                raise
            logger.error(f"Skipping post: {e}")
    logger.debug(f"Loaded {len(posts)} posts from {posts_dir}")
    return posts
