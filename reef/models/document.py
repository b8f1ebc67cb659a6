from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class BlockStyle(str, Enum):
    NORMAL = "normal"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    CODE_BLOCK = "code_block"
    QUOTE = "quote"
    LINK = "link"


class InlineStyle(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"
    UNDERLINE = "underline"
    STRIKETHROUGH = "strikethrough"
    HIGHLIGHT = "highlight"


StyleSpan = Tuple[int, int, InlineStyle]
ColorSpan = Tuple[int, int, str]


@dataclass(slots=True)
class RenderedLine:
    """One wrapped display line. All span offsets are local to ``text``."""

    text: str
    style: BlockStyle = BlockStyle.NORMAL
    language: Optional[str] = None
    inline_spans: List[StyleSpan] = field(default_factory=list)
    search_spans: List[Tuple[int, int]] = field(default_factory=list)
    syntax_spans: List[ColorSpan] = field(default_factory=list)

    @property
    def is_code(self) -> bool:
        return self.style is BlockStyle.CODE_BLOCK


@dataclass(slots=True)
class DeclaredSection:
    """Section entry supplied by the document outline before any layout happens."""

    title: str
    anchor_id: Optional[str] = None


@dataclass(slots=True)
class Section:
    title: str
    start_line: int = 0
    anchor_id: Optional[str] = None


@dataclass(slots=True)
class Chapter:
    """A top-level unit of the document.

    ``raw_markup`` is retained so the chapter can be laid out again at a new
    width. ``sections`` and ``content_lines`` are replaced wholesale on every
    layout pass; ``declared_sections`` never changes after loading.
    """

    title: str
    raw_markup: str
    declared_sections: List[DeclaredSection] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    content_lines: List[RenderedLine] = field(default_factory=list)
    source_path: Optional[str] = None

    @property
    def is_rendered(self) -> bool:
        return bool(self.content_lines)


@dataclass(slots=True)
class DocumentMetadata:
    title: str
    author: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[str] = None
    language: Optional[str] = None


@dataclass(slots=True)
class Document:
    metadata: DocumentMetadata
    chapters: List[Chapter] = field(default_factory=list)
    identity: Optional[str] = None

    def chapter(self, index: int) -> Optional[Chapter]:
        if 0 <= index < len(self.chapters):
            return self.chapters[index]
        return None


__all__ = [
    "BlockStyle",
    "Chapter",
    "ColorSpan",
    "DeclaredSection",
    "Document",
    "DocumentMetadata",
    "InlineStyle",
    "RenderedLine",
    "Section",
    "StyleSpan",
]
