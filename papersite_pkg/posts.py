"""
Post selection and taxonomy helpers.

Everything here is a pure function over a sequence of ``Post`` records.
Callers pass ``now`` explicitly when they need reproducible results; only
when it is omitted is the wall clock read.
"""

import logging
import math
import unicodedata
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .errors import InvalidInputError
from .slugify import Slugger, slugify_post, slugify_str

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULED_POST_MARGIN = timedelta(minutes=15)


@dataclass(frozen=True)
class CategoryEntry:
    category: str
    category_name: str


# Tags share the same (key, display name) shape.
TagEntry = CategoryEntry


@dataclass
class Page:
    number: int
    per_page: int
    total_pages: int
    total_items: int
    items: list = field(default_factory=list)

    @property
    def has_previous(self):
        return self.number > 1

    @property
    def has_next(self):
        return self.number < self.total_pages

    @property
    def previous(self):
        return self.number - 1 if self.has_previous else None

    @property
    def next(self):
        return self.number + 1 if self.has_next else None

    @property
    def page_numbers(self):
        return get_pagination_links(self.number, self.total_pages)


def _resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _resolve_margin(margin) -> timedelta:
    """Accept a timedelta or a number of minutes."""
    if margin is None:
        return timedelta(0)
    if not isinstance(margin, timedelta):
        margin = timedelta(minutes=margin)
    if margin < timedelta(0):
        raise ValueError(f"scheduled post margin must not be negative, got {margin}")
    return margin


def collation_key(text: str):
    """
    Sort key approximating root-locale collation.

    Accents and case are ignored first, then the original text breaks ties.
    For slug keys (``[a-z0-9-]``) this gives the same order as the Unicode
    root collation: hyphen, digits, letters.
    """
    folded = unicodedata.normalize('NFKD', text.casefold())
    primary = ''.join(ch for ch in folded if not unicodedata.combining(ch))
    return (primary, text)


def post_filter(post, now: Optional[datetime] = None, margin=DEFAULT_SCHEDULED_POST_MARGIN) -> bool:
    """
    True when a post may be listed.

    Drafts are never listed. A scheduled post becomes visible once ``now``
    is past its publication time minus ``margin``.
    """
    if post.draft:
        return False
    now = _resolve_now(now)
    return now > post.pub_datetime - _resolve_margin(margin)


def get_visible_posts(posts, now: Optional[datetime] = None, margin=DEFAULT_SCHEDULED_POST_MARGIN) -> list:
    """Visible posts, newest first (by modification time when present)."""
    now = _resolve_now(now)
    margin = _resolve_margin(margin)
    visible = [post for post in posts if post_filter(post, now, margin)]
    return sorted(visible, key=lambda post: post.sort_datetime, reverse=True)


def _unique_entries(values) -> List[CategoryEntry]:
    entries = OrderedDict()
    for value in values:
        try:
            key = slugify_str(value)
        except InvalidInputError:
            logger.warning(f"Ignoring taxonomy term without alphanumeric content: {value!r}")
            continue
        if key not in entries:
            entries[key] = CategoryEntry(category=key, category_name=value)
    return sorted(entries.values(), key=lambda entry: collation_key(entry.category))


def get_unique_categories(posts, now: Optional[datetime] = None,
                          margin=DEFAULT_SCHEDULED_POST_MARGIN) -> List[CategoryEntry]:
    """
    Deduplicated, sorted categories of all visible posts.

    Two raw categories with the same slug are the same category; the first
    display form seen wins.
    """
    visible = [post for post in posts if post_filter(post, _resolve_now(now), margin)]
    return _unique_entries(category for post in visible for category in post.categories)


def get_unique_tags(posts, now: Optional[datetime] = None,
                    margin=DEFAULT_SCHEDULED_POST_MARGIN) -> List[TagEntry]:
    """Deduplicated, sorted tags of all visible posts."""
    visible = [post for post in posts if post_filter(post, _resolve_now(now), margin)]
    return _unique_entries(tag for post in visible for tag in post.tags)


def _matches(values, key):
    for value in values:
        try:
            if slugify_str(value) == key:
                return True
        except InvalidInputError:
            continue
    return False


def get_posts_by_category(posts, category: str) -> list:
    """
    Posts with at least one category whose slug equals the slug of ``category``.

    The input order is kept. Pass visible posts to get a listing.
    """
    try:
        key = slugify_str(category)
    except InvalidInputError:
        return []
    return [post for post in posts if _matches(post.categories, key)]


def get_posts_by_tag(posts, tag: str) -> list:
    try:
        key = slugify_str(tag)
    except InvalidInputError:
        return []
    return [post for post in posts if _matches(post.tags, key)]


def get_featured_posts(posts) -> list:
    return [post for post in posts if post.featured]


def get_recent_posts(posts, limit: int) -> list:
    """Non-featured posts, at most ``limit`` of them, as shown on the home page."""
    return [post for post in posts if not post.featured][:limit]


def posts_needing_og_image(posts, now: Optional[datetime] = None,
                           margin=DEFAULT_SCHEDULED_POST_MARGIN) -> list:
    """Visible posts without an author-supplied ``og_image``."""
    return [post for post in get_visible_posts(posts, now, margin) if not post.og_image]


def assign_slugs(posts, skip_invalid=False) -> Dict[str, object]:
    """
    Give every post of the batch a unique slug, in input order.

    Returns an ordered ``{slug: post}`` mapping. Posts whose title (or slug
    override) has no alphanumeric content raise ``InvalidInputError``, or
    are logged and left out when ``skip_invalid`` is set.
    """
    slugger = Slugger()
    assigned = OrderedDict()
    for post in posts:
        try:
            slug = slugify_post(post, slugger)
        except InvalidInputError as e:
            if not skip_invalid:
                raise
            logger.error(f"Cannot build a slug for {post.source_path or post.title!r}: {e}")
            continue
        assigned[slug] = post
    return assigned


def get_pagination_links(current_page, total_pages):
    """
    Page numbers (and '...' gaps) to show for a listing.

    Always shows page 1 and the last page, plus two pages either side of
    the current one.
    """
    delta = 2
    links = [1]

    start = max(current_page - delta, 2)
    end = min(current_page + delta, total_pages - 1)

    if start > 2:
        links.append('...')

    links.extend(range(start, end + 1))

    if end < total_pages - 1:
        links.append('...')

    if total_pages > 1:
        links.append(total_pages)

    return links


def paginate(items, page: int, per_page: int) -> Page:
    """Slice ``items`` into page ``page`` (1-based); pages past the end are empty."""
    if per_page < 1:
        raise ValueError(f"per_page must be a positive integer, got {per_page}")
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    items = list(items)
    total_pages = max(1, math.ceil(len(items) / per_page))
    start = (page - 1) * per_page
    return Page(
        number=page,
        per_page=per_page,
        total_pages=total_pages,
        total_items=len(items),
        items=items[start:start + per_page],
    )


def iter_pages(items, per_page: int):
    """Yield every Page of ``items``; an empty listing still has one page."""
    items = list(items)
    first = paginate(items, 1, per_page)
    yield first
    for number in range(2, first.total_pages + 1):
        yield paginate(items, number, per_page)


def get_archives(posts) -> "OrderedDict[int, OrderedDict[int, list]]":
    """Posts grouped by publication year, then month, newest first."""
    archives = OrderedDict()
    for post in sorted(posts, key=lambda p: p.pub_datetime, reverse=True):
        year = post.pub_datetime.year
        month = post.pub_datetime.month
        archives.setdefault(year, OrderedDict()).setdefault(month, []).append(post)
    return archives
