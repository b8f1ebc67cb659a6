from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from reef.models.document import StyleSpan


_WORD_PATTERN = re.compile(r"\S+")


@dataclass(slots=True)
class WrappedLine:
    """A wrapped slice ``text[start:end]`` of the source string with line-local spans."""

    text: str
    start: int
    end: int
    spans: List[StyleSpan] = field(default_factory=list)


def wrap_ranges(text: str, width: int) -> List[Tuple[int, int]]:
    """Greedy word wrap returning ``[start, end)`` offsets into ``text``.

    Newlines are hard breaks. Whitespace at a wrap point is dropped; whitespace
    between words on the same line is kept verbatim, and so is the indent in
    front of a paragraph's first word. Words longer than ``width`` are split.
    """

    width = max(1, width)
    ranges: List[Tuple[int, int]] = []
    paragraph_start = 0

    for paragraph in text.split("\n"):
        paragraph_end = paragraph_start + len(paragraph)
        line_start: int | None = None
        line_end = paragraph_start

        for match in _WORD_PATTERN.finditer(text, paragraph_start, paragraph_end):
            word_start, word_end = match.span()
            if line_start is None:
                # first line of the paragraph keeps its leading indent
                line_start, line_end = paragraph_start, word_end
            elif word_end - line_start <= width:
                line_end = word_end
                continue
            else:
                ranges.append((line_start, line_end))
                line_start, line_end = word_start, word_end
            while line_end - line_start > width:
                ranges.append((line_start, line_start + width))
                line_start += width

        if line_start is None:
            ranges.append((paragraph_start, paragraph_start))
        else:
            ranges.append((line_start, line_end))
        paragraph_start = paragraph_end + 1

    return ranges


def remap_spans(spans: Sequence[StyleSpan], line_start: int, line_end: int) -> List[StyleSpan]:
    """Intersect global spans with one line and express the overlap in line-local offsets."""

    local: List[StyleSpan] = []
    for start, end, style in spans:
        if end <= line_start or start >= line_end:
            continue
        new_start = max(start, line_start) - line_start
        new_end = min(end, line_end) - line_start
        if new_end > new_start:
            local.append((new_start, new_end, style))
    return local


def wrap_styled(text: str, spans: Sequence[StyleSpan], width: int) -> List[WrappedLine]:
    return [
        WrappedLine(text=text[start:end], start=start, end=end, spans=remap_spans(spans, start, end))
        for start, end in wrap_ranges(text, width)
    ]


__all__ = ["WrappedLine", "remap_spans", "wrap_ranges", "wrap_styled"]
