from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from reef.errors import BookmarkError
from reef.models.bookmark import Bookmark

logger = logging.getLogger(__name__)

MAX_BOOKMARKS = 1000
MAX_LABEL_LENGTH = 100
SUGGESTION_LENGTH = 50


def add_bookmark(bookmarks: List[Bookmark], chapter_idx: int, line: int, label: str) -> Bookmark:
    """Insert a bookmark, keeping the list ordered by ``(chapter_idx, line)``."""

    trimmed = label.strip()
    if not trimmed:
        raise BookmarkError("Bookmark label cannot be empty")
    if len(trimmed) > MAX_LABEL_LENGTH:
        raise BookmarkError(f"Bookmark label too long (max {MAX_LABEL_LENGTH} characters)")
    if len(bookmarks) >= MAX_BOOKMARKS:
        raise BookmarkError(f"Maximum bookmarks ({MAX_BOOKMARKS}) reached")

    bookmark = Bookmark(chapter_idx=chapter_idx, line=line, label=trimmed)
    bookmarks.append(bookmark)
    bookmarks.sort(key=lambda item: (item.chapter_idx, item.line))
    logger.info("Bookmark '%s' added at chapter %d, line %d", trimmed, chapter_idx, line)
    return bookmark


def truncate_label(text: str, max_len: int) -> str:
    single_line = text.replace("\r", " ").replace("\n", " ").strip()
    if len(single_line) <= max_len:
        return single_line
    return f"{single_line[:max(0, max_len - 3)]}..."


def suggest_label(line_text: str, chapter_title: str) -> Optional[str]:
    """Label from the current line, or the chapter title when the line is blank."""

    for candidate in (line_text.strip(), chapter_title.strip()):
        if candidate:
            return truncate_label(candidate, SUGGESTION_LENGTH)
    return None


def next_index(bookmarks: List[Bookmark], current: int) -> int:
    if not bookmarks:
        return 0
    return (current + 1) % len(bookmarks)


def previous_index(bookmarks: List[Bookmark], current: int) -> int:
    if not bookmarks:
        return 0
    return (current - 1) % len(bookmarks)


def delete_bookmark(bookmarks: List[Bookmark], index: int) -> int:
    """Remove the bookmark at ``index`` and return a selection index that is still valid."""

    if 0 <= index < len(bookmarks):
        removed = bookmarks.pop(index)
        logger.info("Bookmark '%s' deleted", removed.label)
    if not bookmarks:
        return 0
    return min(index, len(bookmarks) - 1)


def jump_position(bookmarks: List[Bookmark], index: int, viewport_height: int) -> Optional[Tuple[int, int, int]]:
    """``(chapter_idx, line, scroll_offset)`` centering the bookmarked line."""

    if not 0 <= index < len(bookmarks):
        return None
    bookmark = bookmarks[index]
    return bookmark.chapter_idx, bookmark.line, max(0, bookmark.line - viewport_height // 2)


__all__ = [
    "MAX_BOOKMARKS",
    "MAX_LABEL_LENGTH",
    "add_bookmark",
    "delete_bookmark",
    "jump_position",
    "next_index",
    "previous_index",
    "suggest_label",
    "truncate_label",
]
