from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from reef import bookmarks as bookmark_ops
from reef.errors import SearchError
from reef.models.bookmark import Bookmark
from reef.models.configs import (
    DEFAULT_TERMINAL_HEIGHT,
    DEFAULT_TERMINAL_WIDTH,
    ReaderConfig,
    next_width_preset,
)
from reef.models.document import Chapter, Document, RenderedLine
from reef.models.search import JumpPosition, SearchResult
from reef.outline.sync import OutlineSync, parse_id
from reef.render.layout import effective_width
from reef.render.pipeline import ChapterRenderer
from reef.search.engine import SearchEngine, apply_highlights, clear_highlights, next_match, previous_match
from reef.storage import ReadingProgress, StateStore
from reef.tasks import LayoutMessage, TerminalSize, debounce_resizes

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ChromeState:
    toc_visible: bool
    bookmarks_visible: bool
    titlebar_visible: bool
    statusbar_visible: bool


class ReaderSession:
    """Reading position, viewport and search state for one open document.

    Every re-layout goes through :meth:`rerender` (or :meth:`handle_layout_message`
    for background passes), which rebuilds the outline and runs the active
    search again before any highlight is applied, so displayed matches always
    refer to the current lines.
    """

    def __init__(
        self,
        document: Document,
        config: Optional[ReaderConfig] = None,
        *,
        renderer: Optional[ChapterRenderer] = None,
        search_engine: Optional[SearchEngine] = None,
        store: Optional[StateStore] = None,
        terminal_width: int = DEFAULT_TERMINAL_WIDTH,
        terminal_height: int = DEFAULT_TERMINAL_HEIGHT,
        max_width_override: Optional[int] = None,
    ) -> None:
        self.document = document
        self.config = config or ReaderConfig()
        self.renderer = renderer or ChapterRenderer()
        self.search_engine = search_engine or SearchEngine(self.config.search)
        self.store = store
        self.outline = OutlineSync(document)

        self.terminal_width = terminal_width
        self.terminal_height = terminal_height
        self.max_width_override = max_width_override
        self.rendered_width: Optional[int] = None

        self.current_chapter = 0
        self.cursor_line = 0
        self.scroll_offset = 0

        self.toc_visible = False
        self.bookmarks_visible = False
        self.titlebar_visible = True
        self.statusbar_visible = True
        self._pre_zen: Optional[_ChromeState] = None

        self.search_query = ""
        self.search_result: Optional[SearchResult] = None
        self.search_index = 0

        self.bookmarks: List[Bookmark] = []
        self.bookmark_index = 0

    # ------------------------------------------------------------------ geometry
    @property
    def viewport_height(self) -> int:
        reserved = int(self.titlebar_visible) + int(self.statusbar_visible)
        return max(1, self.terminal_height - reserved)

    @property
    def max_width(self) -> Optional[int]:
        if self.max_width_override is not None:
            return self.max_width_override
        return self.config.max_width

    def available_width(self) -> int:
        width = self.terminal_width
        if self.toc_visible:
            width -= self.config.toc_panel_width + 1
        if self.bookmarks_visible:
            width -= self.config.bookmarks_panel_width + 1
        return max(1, width)

    def text_width(self) -> int:
        return effective_width(self.available_width(), self.max_width, self.config.margin)

    def resize(self, width: int, height: int) -> bool:
        """Apply a (debounced) terminal size. Returns True when the chapters were laid out again."""

        self.terminal_width = width
        self.terminal_height = height
        if self.rendered_width is not None and self.text_width() == self.rendered_width:
            self._clamp_cursor_to_viewport()
            return False
        self.rerender()
        return True

    async def follow_resizes(self, resizes: "asyncio.Queue[Optional[TerminalSize]]") -> int:
        """Apply terminal sizes from ``resizes`` once each burst has settled.

        Bursts are coalesced over ``config.resize_debounce_ms``. A ``None`` on
        ``resizes`` ends the loop. Returns how many sizes caused a re-layout.
        """

        settled: asyncio.Queue[Optional[TerminalSize]] = asyncio.Queue()

        async def debounce() -> None:
            try:
                await debounce_resizes(resizes, settled, self.config.resize_debounce_ms)
            finally:
                settled.put_nowait(None)

        debouncer = asyncio.create_task(debounce())
        relayouts = 0
        while True:
            size = await settled.get()
            if size is None:
                break
            if self.resize(*size):
                relayouts += 1
        await debouncer
        return relayouts

    # ------------------------------------------------------------------ layout
    def rerender(self) -> int:
        width = self.text_width()
        count = self.renderer.render_document(self.document, width)
        self.rendered_width = width
        logger.debug("Laid out %d chapters at width %d", count, width)
        self._after_layout()
        return count

    def handle_layout_message(self, message: LayoutMessage) -> None:
        """Bring outline and search highlights up to date after a background layout step."""

        self.rendered_width = message.width
        self._after_layout()

    def _after_layout(self) -> None:
        expanded = self.outline.expand_state()
        self.outline.build(self.document)
        self.outline.restore_expand_state(expanded)
        self._clamp_cursor_to_viewport()
        self._rerun_search()
        self.sync_outline()

    def _rerun_search(self) -> None:
        if self.search_result is None:
            clear_highlights(self.document)
            return
        try:
            result = self.search_engine.search(self.document, self.search_query)
        except SearchError as exc:
            logger.warning("Dropping search results after re-layout: %s", exc)
            self.search_result = None
            self.search_index = 0
            clear_highlights(self.document)
            return
        self.search_result = result
        self.search_index = min(self.search_index, max(len(result.matches) - 1, 0))
        apply_highlights(self.document, result.matches)

    # ------------------------------------------------------------------ chapter access
    @property
    def chapter(self) -> Optional[Chapter]:
        return self.document.chapter(self.current_chapter)

    @property
    def chapter_count(self) -> int:
        return len(self.document.chapters)

    def line_count(self) -> int:
        chapter = self.chapter
        return len(chapter.content_lines) if chapter is not None else 0

    def current_line(self) -> Optional[RenderedLine]:
        chapter = self.chapter
        if chapter is None or not 0 <= self.cursor_line < len(chapter.content_lines):
            return None
        return chapter.content_lines[self.cursor_line]

    def visible_lines(self) -> List[RenderedLine]:
        chapter = self.chapter
        if chapter is None:
            return []
        return chapter.content_lines[self.scroll_offset : self.scroll_offset + self.viewport_height]

    # ------------------------------------------------------------------ scrolling
    def scroll_down(self, lines: int = 1) -> None:
        total = self.line_count()
        if total == 0:
            return
        max_scroll = max(0, total - self.viewport_height)
        self.scroll_offset = min(self.scroll_offset + lines, max_scroll)
        self._clamp_cursor_to_viewport()
        self.sync_outline()

    def scroll_up(self, lines: int = 1) -> None:
        self.scroll_offset = max(0, self.scroll_offset - lines)
        self._clamp_cursor_to_viewport()
        self.sync_outline()

    def page_down(self) -> None:
        self.scroll_down(self.viewport_height)

    def page_up(self) -> None:
        self.scroll_up(self.viewport_height)

    def half_page_down(self) -> None:
        self.scroll_down(self.viewport_height // 2)

    def half_page_up(self) -> None:
        self.scroll_up(self.viewport_height // 2)

    def move_cursor_to_top(self) -> None:
        self.cursor_line = min(self.scroll_offset, self._last_line())
        self.sync_outline()

    def move_cursor_to_middle(self) -> None:
        self.cursor_line = min(self.scroll_offset + self.viewport_height // 2, self._last_line())
        self.sync_outline()

    def move_cursor_to_bottom(self) -> None:
        self.cursor_line = min(self.scroll_offset + self.viewport_height - 1, self._last_line())
        self.sync_outline()

    def move_cursor_to_chapter_start(self) -> None:
        self.cursor_line = 0
        self.scroll_offset = 0
        self.sync_outline()

    def move_cursor_to_chapter_end(self) -> None:
        last = self._last_line()
        self.cursor_line = last
        if last >= self.viewport_height:
            self.scroll_offset = last - (self.viewport_height - 1)
        self.sync_outline()

    def _last_line(self) -> int:
        return max(self.line_count() - 1, 0)

    def _clamp_cursor_to_viewport(self) -> None:
        last = self._last_line()
        self.scroll_offset = max(0, min(self.scroll_offset, last))
        viewport_end = self.scroll_offset + self.viewport_height - 1
        if self.cursor_line < self.scroll_offset:
            self.cursor_line = self.scroll_offset
        elif self.cursor_line > viewport_end:
            self.cursor_line = viewport_end
        self.cursor_line = max(0, min(self.cursor_line, last))

    # ------------------------------------------------------------------ chapters and sections
    def go_to(self, chapter_idx: int, line: int, scroll_offset: Optional[int] = None) -> None:
        if not 0 <= chapter_idx < self.chapter_count:
            logger.debug("Ignoring jump to chapter %d of %d", chapter_idx, self.chapter_count)
            return
        self.current_chapter = chapter_idx
        self.cursor_line = max(0, line)
        self.scroll_offset = max(0, line if scroll_offset is None else scroll_offset)
        self.sync_outline()

    def next_chapter(self) -> None:
        if self.chapter_count == 0:
            return
        previous = self.current_chapter
        self.go_to((self.current_chapter + 1) % self.chapter_count, 0)
        logger.debug("Chapter navigation: %d -> %d (next)", previous, self.current_chapter)

    def previous_chapter(self) -> None:
        if self.chapter_count == 0:
            return
        previous = self.current_chapter
        self.go_to((self.current_chapter - 1) % self.chapter_count, 0)
        logger.debug("Chapter navigation: %d -> %d (previous)", previous, self.current_chapter)

    def next_section(self) -> None:
        chapter = self.chapter
        if chapter is None:
            return
        for section in chapter.sections:
            if section.start_line > self.cursor_line:
                self.go_to(self.current_chapter, section.start_line)
                return
        self.next_chapter()

    def previous_section(self) -> None:
        chapter = self.chapter
        if chapter is None:
            return
        current: Optional[int] = None
        for index, section in enumerate(chapter.sections):
            following = chapter.sections[index + 1].start_line if index + 1 < len(chapter.sections) else None
            if section.start_line <= self.cursor_line and (following is None or self.cursor_line < following):
                current = index
                break
        if not current:
            self.previous_chapter()
            return
        self.go_to(self.current_chapter, chapter.sections[current - 1].start_line)

    # ------------------------------------------------------------------ outline
    def sync_outline(self) -> Optional[List[str]]:
        return self.outline.sync(self.current_chapter, self.cursor_line)

    def outline_next(self) -> None:
        self.outline.select_next()

    def outline_previous(self) -> None:
        self.outline.select_previous()

    def outline_toggle(self) -> bool:
        if not self.outline.selected:
            return False
        return self.outline.toggle(self.outline.selected[0])

    def outline_close(self) -> None:
        if self.outline.selected:
            self.outline.close(self.outline.selected[0])

    def select_outline_target(self) -> bool:
        """Move the cursor to the selected outline entry. Returns False when nothing was selected."""

        target = self.outline.target()
        if target is None:
            return False
        chapter_idx, line = target
        self.go_to(chapter_idx, line)
        return True

    # ------------------------------------------------------------------ panels and width
    def toggle_toc(self) -> None:
        self.toc_visible = not self.toc_visible
        logger.debug("TOC panel toggled: %s", "visible" if self.toc_visible else "hidden")
        self.rerender()

    def toggle_bookmarks(self) -> None:
        self.bookmarks_visible = not self.bookmarks_visible
        self.rerender()

    def toggle_titlebar(self) -> None:
        self.titlebar_visible = not self.titlebar_visible
        self._clamp_cursor_to_viewport()

    def toggle_statusbar(self) -> None:
        self.statusbar_visible = not self.statusbar_visible
        self._clamp_cursor_to_viewport()

    def toggle_zen_mode(self) -> None:
        if self._pre_zen is not None:
            state = self._pre_zen
            self.toc_visible = state.toc_visible
            self.bookmarks_visible = state.bookmarks_visible
            self.titlebar_visible = state.titlebar_visible
            self.statusbar_visible = state.statusbar_visible
            self._pre_zen = None
        else:
            self._pre_zen = _ChromeState(
                toc_visible=self.toc_visible,
                bookmarks_visible=self.bookmarks_visible,
                titlebar_visible=self.titlebar_visible,
                statusbar_visible=self.statusbar_visible,
            )
            self.toc_visible = False
            self.bookmarks_visible = False
            self.titlebar_visible = False
            self.statusbar_visible = False
        self.rerender()

    @property
    def zen_mode(self) -> bool:
        return self._pre_zen is not None

    def cycle_max_width(self) -> Optional[int]:
        self.config = self.config.model_copy(update={"max_width": next_width_preset(self.config.max_width)})
        logger.info("Max width preset: %s", self.config.max_width or "unlimited")
        self.rerender()
        return self.config.max_width

    # ------------------------------------------------------------------ search
    def search(self, pattern: str) -> SearchResult:
        """Run a new search and jump to the first match.

        Pattern and timeout errors propagate and leave the previous results in place.
        """

        result = self.search_engine.search(self.document, pattern)
        self.search_query = pattern
        self.search_result = result
        self.search_index = 0
        apply_highlights(self.document, result.matches)
        # stepping forward from -1 lands on the first match
        self._jump(next_match(result.matches, -1, self.viewport_height))
        return result

    def next_search_result(self) -> Optional[JumpPosition]:
        if self.search_result is None:
            return None
        position = next_match(self.search_result.matches, self.search_index, self.viewport_height)
        self._jump(position)
        return position

    def previous_search_result(self) -> Optional[JumpPosition]:
        if self.search_result is None:
            return None
        position = previous_match(self.search_result.matches, self.search_index, self.viewport_height)
        self._jump(position)
        return position

    def clear_search(self) -> None:
        self.search_query = ""
        self.search_result = None
        self.search_index = 0
        clear_highlights(self.document)

    def _jump(self, position: Optional[JumpPosition]) -> None:
        if position is None:
            return
        self.search_index = position.index
        self.go_to(position.chapter_idx, position.line, position.scroll_offset)

    # ------------------------------------------------------------------ bookmarks
    def add_bookmark(self, label: Optional[str] = None) -> Bookmark:
        if label is None:
            line = self.current_line()
            chapter = self.chapter
            label = bookmark_ops.suggest_label(line.text if line else "", chapter.title if chapter else "") or ""
        bookmark = bookmark_ops.add_bookmark(self.bookmarks, self.current_chapter, self.cursor_line, label)
        self.bookmark_index = self.bookmarks.index(bookmark)
        return bookmark

    def bookmark_next(self) -> None:
        self.bookmark_index = bookmark_ops.next_index(self.bookmarks, self.bookmark_index)

    def bookmark_previous(self) -> None:
        self.bookmark_index = bookmark_ops.previous_index(self.bookmarks, self.bookmark_index)

    def jump_to_selected_bookmark(self) -> bool:
        position = bookmark_ops.jump_position(self.bookmarks, self.bookmark_index, self.viewport_height)
        if position is None:
            return False
        chapter_idx, line, scroll_offset = position
        self.go_to(chapter_idx, line, scroll_offset)
        return True

    def delete_selected_bookmark(self) -> None:
        self.bookmark_index = bookmark_ops.delete_bookmark(self.bookmarks, self.bookmark_index)

    # ------------------------------------------------------------------ progress
    def snapshot_progress(self) -> ReadingProgress:
        return ReadingProgress(
            chapter_idx=self.current_chapter,
            line=self.cursor_line,
            scroll_offset=self.scroll_offset,
            expanded_nodes=self.outline.expand_state(),
        )

    def restore_progress(self, progress: ReadingProgress) -> None:
        logger.info("Restoring reading progress: chapter %d, line %d", progress.chapter_idx, progress.line)
        self.current_chapter = max(0, min(progress.chapter_idx, self.chapter_count - 1))
        self.cursor_line = max(0, progress.line)
        self.scroll_offset = max(0, progress.scroll_offset)
        self.outline.restore_expand_state(
            node_id for node_id in progress.expanded_nodes if self._is_known_node(node_id)
        )
        chapter = self.chapter
        if chapter is not None and chapter.is_rendered:
            self._clamp_cursor_to_viewport()
        self.sync_outline()

    def _is_known_node(self, node_id: str) -> bool:
        parsed = parse_id(node_id)
        return parsed is not None and parsed[0] < self.chapter_count

    def load_state(self) -> None:
        """Restore bookmarks and progress for this document from the store and mark it recently opened."""

        if self.store is None or self.document.identity is None:
            return
        identity = self.document.identity
        self.bookmarks = self.store.load_bookmarks(identity)
        self.bookmark_index = 0
        progress = self.store.load_progress(identity)
        if progress is not None:
            self.restore_progress(progress)
        self.store.touch_recent(identity)

    def save_state(self) -> None:
        if self.store is None or self.document.identity is None:
            return
        identity = self.document.identity
        self.store.save_progress(identity, self.snapshot_progress())
        self.store.save_bookmarks(identity, self.bookmarks)
        logger.debug("Saved state for %s", identity)


__all__ = ["ReaderSession"]
