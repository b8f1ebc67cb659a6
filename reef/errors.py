from __future__ import annotations


class ReefError(Exception):
    """Base class for errors raised by the reader core."""


class DocumentLoadError(ReefError):
    """The document directory or one of its files could not be read."""


class SearchError(ReefError):
    """Base class for search failures."""


class InvalidPatternError(SearchError):
    def __init__(self, pattern: str, message: str) -> None:
        super().__init__(f"Invalid regex pattern: {message}")
        self.pattern = pattern
        self.message = message


class SearchTimeoutError(SearchError):
    """Raised when the time budget ran out before a single match was collected."""

    def __init__(self, elapsed: float) -> None:
        super().__init__(f"Search cancelled (timeout after {elapsed:.1f}s)")
        self.elapsed = elapsed


class BookmarkError(ReefError, ValueError):
    """Rejected bookmark (bad label or limit reached)."""


__all__ = [
    "BookmarkError",
    "DocumentLoadError",
    "InvalidPatternError",
    "ReefError",
    "SearchError",
    "SearchTimeoutError",
]
