"""
Slug generation for post URLs, category and tag keys.

``slugify_str`` is stateless and is used wherever two strings must be
compared in key space (categories, tags, route lookups). ``Slugger`` adds a
per-batch registry so that every slug it hands out is unique within that
batch; create a new one for every build.
"""

import re
import unicodedata
from typing import Iterable, List, Set

from .errors import InvalidInputError

# Characters that separate words; every other punctuation or symbol is dropped.
SEPARATORS = {'-', '_'}

_HYPHEN_RUNS = re.compile(r'-{2,}')


def _fallback_token(ch: str) -> str:
    """Stable ASCII token for a letter or digit with no ASCII decomposition."""
    return f'-u{ord(ch):04x}-'


def slugify_str(text: str) -> str:
    """
    Convert display text to a URL slug.

    Diacritics are folded to their base letters, punctuation and symbols are
    removed (so ``.NET`` and ``N.E.T`` both become ``net``), whitespace,
    hyphens and underscores turn into single hyphens.

    Raises:
        InvalidInputError: if nothing alphanumeric is left.
    """
    if text is None:
        raise InvalidInputError("Cannot build a slug from None")

    folded = unicodedata.normalize('NFKD', str(text).casefold())
    parts = []
    for ch in folded:
        if unicodedata.combining(ch):
            continue
        if ch.isascii() and ch.isalnum():
            parts.append(ch)
        elif ch.isspace() or ch in SEPARATORS:
            parts.append('-')
        elif unicodedata.category(ch)[0] in ('L', 'N'):
            parts.append(_fallback_token(ch))
        # Punctuation, symbols and control characters are dropped.

    slug = _HYPHEN_RUNS.sub('-', ''.join(parts)).strip('-')
    if not slug:
        raise InvalidInputError(f"No alphanumeric content in {text!r}")
    return slug


def slugify_all(items: Iterable[str]) -> List[str]:
    """Slugify every string of ``items``, keeping order and duplicates."""
    return [slugify_str(item) for item in items]


class Slugger:
    """
    Slug registry for a single batch.

    The first text to produce a given slug keeps it; later ones get ``-2``,
    ``-3`` and so on, skipping any suffixed form that is already taken.
    """

    def __init__(self):
        self._occurrences = {}
        self._seen: Set[str] = set()

    def slug(self, text: str) -> str:
        base = slugify_str(text)
        count = self._occurrences.get(base, 1)
        candidate = base
        while candidate in self._seen:
            count += 1
            candidate = f'{base}-{count}'
        self._occurrences[base] = count
        self._seen.add(candidate)
        return candidate

    def reset(self):
        self._occurrences.clear()
        self._seen.clear()

    @property
    def seen(self):
        return frozenset(self._seen)

    def __contains__(self, slug):
        return slug in self._seen

    def __len__(self):
        return len(self._seen)


def slugify_post(post, slugger: Slugger = None) -> str:
    """Slug for a post: the explicit ``slug`` override if set, else the title."""
    source = post.slug if getattr(post, 'slug', None) else post.title
    if slugger is not None:
        return slugger.slug(source)
    return slugify_str(source)
