"""Markup to styled, wrapped display lines."""

from .highlight import Highlighter, PlainHighlighter, PygmentsHighlighter, detect_language
from .inline import StyledText, extract_styled_text
from .layout import Heading, LayoutEngine, LayoutResult, effective_width
from .pipeline import CancellationToken, ChapterRenderer, RenderedChapter
from .sections import SectionResolver, normalize_title
from .wrap import WrappedLine, remap_spans, wrap_ranges, wrap_styled

__all__ = [
    "CancellationToken",
    "ChapterRenderer",
    "Heading",
    "Highlighter",
    "LayoutEngine",
    "LayoutResult",
    "PlainHighlighter",
    "PygmentsHighlighter",
    "RenderedChapter",
    "SectionResolver",
    "StyledText",
    "WrappedLine",
    "detect_language",
    "effective_width",
    "extract_styled_text",
    "normalize_title",
    "remap_spans",
    "wrap_ranges",
    "wrap_styled",
]
