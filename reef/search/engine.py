"""Regex search over rendered lines, result navigation and highlight spans.

Matches carry line numbers and columns of one particular layout. Whenever a
chapter is laid out again those numbers are stale and the search has to be
run again before highlights are applied.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional, Sequence

from reef.errors import InvalidPatternError, SearchTimeoutError
from reef.models.configs import SearchConfig
from reef.models.document import Document
from reef.models.search import JumpPosition, SearchMatch, SearchResult

logger = logging.getLogger(__name__)


class SearchEngine:
    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or SearchConfig()
        self._clock = clock

    def search(self, document: Document, pattern: str) -> SearchResult:
        """Scan every line of every chapter for ``pattern``.

        Raises :class:`InvalidPatternError` when the pattern does not compile
        and :class:`SearchTimeoutError` when the time budget runs out before
        anything was found. The budget is checked between chapters only.
        """

        logger.info("Starting search: pattern=%r", pattern)
        try:
            regex = re.compile(pattern)
        except re.error as exc:
            logger.warning("Invalid regex pattern %r: %s", pattern, exc)
            raise InvalidPatternError(pattern, str(exc)) from exc

        result = SearchResult(pattern=pattern)
        started = self._clock()

        for chapter_idx, chapter in enumerate(document.chapters):
            elapsed = self._clock() - started
            if elapsed > self.config.timeout_seconds:
                result.elapsed = elapsed
                if not result.matches:
                    logger.warning("Search timed out after %.1fs with no results", elapsed)
                    raise SearchTimeoutError(elapsed)
                logger.warning("Search timed out after %.1fs (%d results kept)", elapsed, len(result.matches))
                result.timed_out = True
                return result

            for line_idx, line in enumerate(chapter.content_lines):
                for match in regex.finditer(line.text):
                    result.matches.append(
                        SearchMatch(
                            chapter_idx=chapter_idx,
                            line=line_idx,
                            column=match.start(),
                            length=match.end() - match.start(),
                        )
                    )
                    if len(result.matches) >= self.config.max_results:
                        result.limit_reached = True
                        result.elapsed = self._clock() - started
                        logger.warning("Search hit maximum result limit (%d results)", self.config.max_results)
                        return result

        result.elapsed = self._clock() - started
        logger.info("Search completed: %d matches in %.3fs", len(result.matches), result.elapsed)
        return result


def _jump_to(matches: Sequence[SearchMatch], index: int, viewport_height: int) -> JumpPosition:
    match = matches[index]
    scroll_offset = max(0, match.line - viewport_height // 2)
    return JumpPosition(index=index, chapter_idx=match.chapter_idx, line=match.line, scroll_offset=scroll_offset)


def next_match(matches: Sequence[SearchMatch], current_idx: int, viewport_height: int) -> Optional[JumpPosition]:
    if not matches:
        return None
    return _jump_to(matches, (current_idx + 1) % len(matches), viewport_height)


def previous_match(matches: Sequence[SearchMatch], current_idx: int, viewport_height: int) -> Optional[JumpPosition]:
    if not matches:
        return None
    return _jump_to(matches, (current_idx - 1) % len(matches), viewport_height)


def clear_highlights(document: Document) -> None:
    for chapter in document.chapters:
        for line in chapter.content_lines:
            line.search_spans = []


def apply_highlights(document: Document, matches: Sequence[SearchMatch]) -> int:
    """Replace every line's search spans with ``matches``; returns how many were placed."""

    clear_highlights(document)
    applied = 0
    for match in matches:
        chapter = document.chapter(match.chapter_idx)
        if chapter is None or not 0 <= match.line < len(chapter.content_lines):
            logger.debug("Skipping highlight outside the current layout: %s", match)
            continue
        line = chapter.content_lines[match.line]
        line.search_spans.append((match.column, min(match.end, len(line.text))))
        applied += 1
    logger.debug("Applied %d of %d search highlights", applied, len(matches))
    return applied


__all__ = ["SearchEngine", "apply_highlights", "clear_highlights", "next_match", "previous_match"]
