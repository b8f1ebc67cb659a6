import asyncio
import random
import re

import pytest

from reef.errors import BookmarkError, InvalidPatternError
from reef.models.configs import ReaderConfig
from reef.models.document import Chapter, Document, DocumentMetadata
from reef.session import ReaderSession
from reef.storage import ReadingProgress, StateStore

SCENARIO = (
    '<h1>Intro</h1><h2 id="s1">First</h2><p>hello world hello</p>'
    '<h2 id="s2">Second</h2><p>hello</p>'
)
LONG_PARAGRAPH = "<p>" + " ".join(f"word{index} filler text" for index in range(60)) + "</p>"


def build_document(*markups: str) -> Document:
    return Document(
        metadata=DocumentMetadata(title="Book"),
        chapters=[Chapter(title=f"Chapter {index + 1}", raw_markup=markup) for index, markup in enumerate(markups)],
        identity="/books/sample",
    )


def build_session(*markups: str, **kwargs) -> ReaderSession:
    session = ReaderSession(build_document(*(markups or (SCENARIO, SCENARIO))), **kwargs)
    session.rerender()
    return session


def test_available_width_accounts_for_panels_and_cap():
    session = build_session(terminal_width=100)

    assert session.text_width() == 96
    session.toggle_toc()
    assert session.available_width() == 100 - 31
    assert session.text_width() == 65
    session.toggle_bookmarks()
    assert session.available_width() == 100 - 31 - 36
    assert session.rendered_width == session.text_width()


def test_max_width_override_wins_over_config():
    session = build_session(terminal_width=200, config=ReaderConfig(max_width=100), max_width_override=60)

    assert session.text_width() == 56


def test_cycle_max_width_walks_presets_and_relayouts():
    session = build_session(terminal_width=150)

    assert session.cycle_max_width() == 80
    assert session.rendered_width == 76
    assert session.cycle_max_width() == 100
    assert session.cycle_max_width() == 120
    assert session.cycle_max_width() is None
    assert session.rendered_width == 146


def test_chapter_navigation_is_cyclic():
    session = build_session(SCENARIO, SCENARIO, SCENARIO)

    session.previous_chapter()
    assert session.current_chapter == 2
    session.next_chapter()
    assert session.current_chapter == 0
    assert (session.cursor_line, session.scroll_offset) == (0, 0)


def test_section_navigation_falls_through_to_chapters():
    session = build_session()

    session.next_section()
    assert (session.current_chapter, session.cursor_line) == (0, 2)
    session.next_section()
    assert (session.current_chapter, session.cursor_line) == (0, 6)
    session.previous_section()
    assert session.cursor_line == 2
    session.next_section()
    session.next_section()
    assert (session.current_chapter, session.cursor_line) == (1, 0)
    session.previous_section()
    assert (session.current_chapter, session.cursor_line) == (0, 0)


def test_outline_follows_the_cursor():
    session = build_session()

    session.next_section()
    assert session.outline.selected == ["chapter_0", "chapter_0_section_0"]
    session.outline_next()
    assert session.select_outline_target()
    assert session.cursor_line == 6


def test_scrolling_keeps_cursor_in_viewport():
    session = build_session(LONG_PARAGRAPH, terminal_width=40, terminal_height=12)
    height = session.viewport_height
    total = session.line_count()

    assert height == 10
    session.page_down()
    assert session.scroll_offset == height
    assert session.cursor_line == height
    session.move_cursor_to_bottom()
    assert session.cursor_line == 2 * height - 1
    session.move_cursor_to_middle()
    assert session.cursor_line == height + height // 2
    session.scroll_down(10_000)
    assert session.scroll_offset == total - height
    session.move_cursor_to_chapter_end()
    assert session.cursor_line == total - 1
    session.half_page_up()
    assert session.scroll_offset == total - height - height // 2
    session.move_cursor_to_chapter_start()
    assert (session.cursor_line, session.scroll_offset) == (0, 0)


def test_search_jumps_to_first_match_and_cycles():
    session = build_session()

    result = session.search("hello")
    assert len(result) == 6
    assert (session.search_index, session.current_chapter, session.cursor_line) == (0, 0, 4)

    session.previous_search_result()
    assert (session.search_index, session.current_chapter, session.cursor_line) == (5, 1, 8)
    session.next_search_result()
    assert session.search_index == 0


def test_invalid_pattern_keeps_previous_results():
    session = build_session()
    session.search("hello")

    with pytest.raises(InvalidPatternError):
        session.search("(")

    assert session.search_query == "hello"
    assert len(session.search_result) == 6


def _assert_highlights_match_layout(session: ReaderSession, pattern: str) -> None:
    regex = re.compile(pattern)
    for match in session.search_result.matches:
        lines = session.document.chapters[match.chapter_idx].content_lines
        assert match.line < len(lines)
        assert regex.fullmatch(lines[match.line].text[match.column : match.end])
    highlighted = sum(len(line.search_spans) for chapter in session.document.chapters for line in chapter.content_lines)
    assert highlighted == len(session.search_result.matches)


def test_search_is_rerun_after_every_relayout():
    session = build_session(LONG_PARAGRAPH, SCENARIO, terminal_width=200)
    session.search(r"word\d+")
    lines_before = len(session.document.chapters[0].content_lines)

    session.resize(30, 24)

    assert len(session.document.chapters[0].content_lines) > lines_before
    _assert_highlights_match_layout(session, r"word\d+")

    rng = random.Random(7)
    for _ in range(25):
        session.resize(rng.randint(5, 200), rng.randint(3, 60))
        if rng.random() < 0.3:
            session.toggle_toc()
        _assert_highlights_match_layout(session, r"word\d+")


def test_resize_without_width_change_skips_layout():
    session = build_session(terminal_width=80)

    assert session.resize(80, 40) is False
    assert session.resize(90, 40) is True


def test_clear_search_removes_highlights():
    session = build_session()
    session.search("hello")

    session.clear_search()
    session.resize(50, 24)

    assert session.search_result is None
    assert all(not line.search_spans for chapter in session.document.chapters for line in chapter.content_lines)


def test_zen_mode_hides_and_restores_chrome():
    session = build_session(terminal_width=100, terminal_height=30)
    session.toggle_toc()

    session.toggle_zen_mode()
    assert session.zen_mode
    assert not session.toc_visible
    assert session.viewport_height == 30
    assert session.text_width() == 96

    session.toggle_zen_mode()
    assert session.toc_visible
    assert session.viewport_height == 28


def test_bookmarks_use_suggested_label_and_jump():
    session = build_session()
    session.next_section()
    session.next_section()

    bookmark = session.add_bookmark()
    assert bookmark.label == "Second"
    session.next_chapter()
    session.add_bookmark("Chapter two start")

    session.bookmark_previous()
    assert session.jump_to_selected_bookmark()
    assert (session.current_chapter, session.cursor_line) == (0, 6)

    with pytest.raises(BookmarkError):
        session.add_bookmark("   ")

    session.delete_selected_bookmark()
    assert [item.label for item in session.bookmarks] == ["Chapter two start"]
    assert session.bookmark_index == 0


def test_restore_progress_clamps_chapter_and_restores_expand_state():
    session = build_session()

    session.restore_progress(
        ReadingProgress(chapter_idx=42, line=6, scroll_offset=0, expanded_nodes=["chapter_0", "chapter_9", "junk"])
    )

    assert session.current_chapter == 1
    assert session.cursor_line == 6
    assert "chapter_0" in session.outline.expanded
    assert "chapter_9" not in session.outline.expanded
    assert session.outline.selected == ["chapter_1", "chapter_1_section_1"]


def test_state_round_trip_through_store(tmp_path):
    store = StateStore(tmp_path / "state.db")
    session = build_session(store=store)
    session.next_chapter()
    session.next_section()
    session.add_bookmark("mark")
    session.save_state()

    reopened = ReaderSession(build_document(SCENARIO, SCENARIO), store=store)
    reopened.load_state()
    reopened.rerender()

    assert (reopened.current_chapter, reopened.cursor_line) == (1, 2)
    assert [item.label for item in reopened.bookmarks] == ["mark"]
    assert "chapter_1" in reopened.outline.expanded
    assert store.recent_documents() == ["/books/sample"]


@pytest.mark.asyncio
async def test_follow_resizes_applies_the_settled_size_once():
    session = build_session(config=ReaderConfig(resize_debounce_ms=10), terminal_width=100)
    resizes: asyncio.Queue = asyncio.Queue()
    for size in [(70, 24), (60, 24), (50, 30)]:
        resizes.put_nowait(size)

    follower = asyncio.create_task(session.follow_resizes(resizes))
    await asyncio.sleep(0.2)
    assert (session.terminal_width, session.terminal_height) == (50, 30)
    assert session.rendered_width == 46

    await resizes.put(None)
    assert await asyncio.wait_for(follower, timeout=5) == 1


@pytest.mark.asyncio
async def test_follow_resizes_waits_for_the_configured_quiet_period():
    session = build_session(config=ReaderConfig(resize_debounce_ms=60_000), terminal_width=100)
    resizes: asyncio.Queue = asyncio.Queue()

    follower = asyncio.create_task(session.follow_resizes(resizes))
    await resizes.put((60, 24))
    await asyncio.sleep(0.5)
    assert session.terminal_width == 100

    await resizes.put(None)
    assert await asyncio.wait_for(follower, timeout=5) == 1
    assert session.terminal_width == 60
