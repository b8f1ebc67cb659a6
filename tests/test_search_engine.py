import itertools

import pytest

from reef.errors import InvalidPatternError, SearchTimeoutError
from reef.models.configs import SearchConfig
from reef.models.document import Chapter, Document, DocumentMetadata
from reef.models.search import SearchMatch
from reef.render.pipeline import ChapterRenderer
from reef.search.engine import SearchEngine, apply_highlights, clear_highlights, next_match, previous_match

SCENARIO = (
    '<h1>Intro</h1><h2 id="s1">First</h2><p>hello world hello</p>'
    '<h2 id="s2">Second</h2><p>hello</p>'
)


def build_document(*markups: str, width: int = 40) -> Document:
    document = Document(
        metadata=DocumentMetadata(title="Book"),
        chapters=[Chapter(title=f"Chapter {index + 1}", raw_markup=markup) for index, markup in enumerate(markups)],
    )
    ChapterRenderer().render_document(document, width)
    return document


def test_scenario_matches_in_document_order():
    document = build_document(SCENARIO)

    result = SearchEngine().search(document, "hello")

    assert [(match.line, match.column, match.length) for match in result.matches] == [(4, 0, 5), (4, 12, 5), (8, 0, 5)]
    assert result.complete
    assert document.chapters[0].sections[0].start_line == 2
    assert document.chapters[0].sections[1].start_line == 6


def test_navigation_is_cyclic():
    matches = SearchEngine().search(build_document(SCENARIO), "hello").matches
    count = len(matches)

    index = 0
    for _ in range(count):
        index = next_match(matches, index, 10).index
    assert index == 0

    assert previous_match(matches, 0, 10).index == count - 1
    assert next_match([], 0, 10) is None
    assert previous_match([], 0, 10) is None


def test_jump_centers_the_target_line():
    matches = [SearchMatch(chapter_idx=2, line=30, column=0, length=1), SearchMatch(chapter_idx=0, line=1, column=0, length=1)]

    position = next_match(matches, 1, 20)
    assert (position.index, position.chapter_idx, position.line, position.scroll_offset) == (0, 2, 30, 20)

    position = next_match(matches, 0, 20)
    assert position.scroll_offset == 0


def test_invalid_pattern_is_a_distinct_error():
    with pytest.raises(InvalidPatternError) as excinfo:
        SearchEngine().search(build_document(SCENARIO), "hel(lo")

    assert excinfo.value.pattern == "hel(lo"


def test_result_limit_keeps_partial_results():
    document = build_document("<p>a a a a a</p>")

    result = SearchEngine(SearchConfig(max_results=2)).search(document, "a")

    assert len(result) == 2
    assert result.limit_reached
    assert not result.timed_out


def test_zero_length_matches_are_recorded():
    document = build_document("<p>abc</p>")

    result = SearchEngine().search(document, "x*")

    assert [(match.line, match.column, match.length) for match in result.matches] == [
        (0, 0, 0),
        (0, 1, 0),
        (0, 2, 0),
        (0, 3, 0),
        (1, 0, 0),
    ]
    assert apply_highlights(document, result.matches) == 5
    assert document.chapters[0].content_lines[0].search_spans == [(0, 0), (1, 1), (2, 2), (3, 3)]


def test_timeout_with_partial_results_is_reported():
    document = build_document("<p>hit</p>", "<p>hit</p>")
    clock = itertools.chain([0.0, 0.0], itertools.repeat(50.0))

    result = SearchEngine(SearchConfig(timeout_seconds=30), clock=lambda: next(clock)).search(document, "hit")

    assert result.timed_out
    assert [match.chapter_idx for match in result.matches] == [0]


def test_timeout_without_results_raises():
    document = build_document("<p>miss</p>", "<p>hit</p>")
    clock = itertools.chain([0.0, 0.0], itertools.repeat(50.0))

    with pytest.raises(SearchTimeoutError):
        SearchEngine(SearchConfig(timeout_seconds=30), clock=lambda: next(clock)).search(document, "hit")


def test_apply_and_clear_highlights():
    document = build_document(SCENARIO)
    matches = SearchEngine().search(document, "hello").matches
    lines = document.chapters[0].content_lines

    assert apply_highlights(document, matches) == 3
    assert lines[4].search_spans == [(0, 5), (12, 17)]
    assert lines[8].search_spans == [(0, 5)]

    clear_highlights(document)
    assert all(line.search_spans == [] for line in lines)


def test_stale_matches_are_never_placed():
    document = build_document(SCENARIO)
    stale = [
        SearchMatch(chapter_idx=0, line=99, column=0, length=5),
        SearchMatch(chapter_idx=5, line=0, column=0, length=5),
        SearchMatch(chapter_idx=0, line=8, column=3, length=50),
    ]

    assert apply_highlights(document, stale) == 1
    assert document.chapters[0].content_lines[8].search_spans == [(3, 5)]
