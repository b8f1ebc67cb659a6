from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from reef.models.document import Chapter, Document, RenderedLine, Section
from reef.render.layout import Heading, LayoutEngine
from reef.render.sections import SectionResolver

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag checked between chapters; a chapter already in progress always finishes."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(slots=True)
class RenderedChapter:
    """Result of laying out one chapter, not yet attached to it."""

    chapter_idx: int
    lines: List[RenderedLine] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    headings: List[Heading] = field(default_factory=list)


class ChapterRenderer:
    """Coordinates layout and section resolution for chapters and whole documents."""

    def __init__(
        self,
        engine: Optional[LayoutEngine] = None,
        resolver: Optional[SectionResolver] = None,
    ) -> None:
        self.engine = engine or LayoutEngine()
        self.resolver = resolver or SectionResolver()

    def render(self, chapter: Chapter, width: int, chapter_idx: int = 0) -> RenderedChapter:
        result = self.engine.layout(chapter.raw_markup, width)
        sections = self.resolver.resolve(chapter.declared_sections, result.headings)
        logger.debug(
            "Rendered chapter %d '%s': %d lines, %d sections",
            chapter_idx,
            chapter.title,
            len(result.lines),
            len(sections),
        )
        return RenderedChapter(
            chapter_idx=chapter_idx,
            lines=result.lines,
            sections=sections,
            headings=result.headings,
        )

    @staticmethod
    def apply(chapter: Chapter, rendered: RenderedChapter) -> None:
        """Swap in a finished layout. Lines and sections are replaced together, never patched."""

        chapter.content_lines = rendered.lines
        chapter.sections = rendered.sections

    def render_chapter(self, chapter: Chapter, width: int, chapter_idx: int = 0) -> Chapter:
        self.apply(chapter, self.render(chapter, width, chapter_idx))
        return chapter

    def render_document(
        self,
        document: Document,
        width: int,
        *,
        cancel_token: Optional[CancellationToken] = None,
        on_chapter: Optional[Callable[[RenderedChapter], None]] = None,
    ) -> int:
        """Lay out every chapter in order; returns how many chapters were replaced."""

        rendered_count = 0
        for index, chapter in enumerate(document.chapters):
            if cancel_token is not None and cancel_token.cancelled:
                logger.info("Layout cancelled after %d of %d chapters", rendered_count, len(document.chapters))
                break
            rendered = self.render(chapter, width, index)
            self.apply(chapter, rendered)
            rendered_count += 1
            if on_chapter is not None:
                on_chapter(rendered)
        return rendered_count


__all__ = ["CancellationToken", "ChapterRenderer", "RenderedChapter"]
