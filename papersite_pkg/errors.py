"""
Exception types raised by PaperSite.

Indexing helpers (category and post selection) never raise; only the
slug generator, the content loader and the preview image renderer do.
"""


class PaperSiteError(Exception):
    """Base class for all PaperSite errors."""


class InvalidInputError(PaperSiteError, ValueError):
    """Text has no alphanumeric content to build a slug from."""


class ContentError(PaperSiteError, ValueError):
    """A post file is missing required front matter or cannot be parsed."""

    def __init__(self, message, source_path=None):
        self.source_path = source_path
        if source_path:
            message = f"{source_path}: {message}"
        super().__init__(message)


class RenderError(PaperSiteError, RuntimeError):
    """A preview image could not be composed or encoded."""


class FontLoadError(RenderError):
    """A font for the preview image could not be fetched or opened."""
