"""Flatten an element subtree into display text plus inline style spans.

Whitespace is collapsed the way a browser collapses it (runs of spaces, tabs
and newlines become one space), ``<br>`` forces a line break and block-level
descendants start on a fresh line. Spans are recorded against the collapsed
text, so offsets never need remapping afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from reef.models.document import InlineStyle, StyleSpan


INLINE_STYLE_TAGS: Dict[str, InlineStyle] = {
    "strong": InlineStyle.BOLD,
    "b": InlineStyle.BOLD,
    "em": InlineStyle.ITALIC,
    "i": InlineStyle.ITALIC,
    "code": InlineStyle.CODE,
    "u": InlineStyle.UNDERLINE,
    "s": InlineStyle.STRIKETHROUGH,
    "del": InlineStyle.STRIKETHROUGH,
    "strike": InlineStyle.STRIKETHROUGH,
    "mark": InlineStyle.HIGHLIGHT,
}

BLOCK_TAGS = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "dd",
        "div",
        "dl",
        "dt",
        "figcaption",
        "figure",
        "footer",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "li",
        "main",
        "nav",
        "ol",
        "p",
        "pre",
        "section",
        "table",
        "tr",
        "ul",
    }
)

SKIPPED_TAGS = frozenset({"head", "script", "style", "template"})

_COLLAPSIBLE = frozenset(" \t\n\r\f")
_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


@dataclass(slots=True)
class StyledText:
    text: str
    spans: List[StyleSpan] = field(default_factory=list)

    def shifted(self, offset: int) -> List[StyleSpan]:
        return [(start + offset, end + offset, style) for start, end, style in self.spans]


def is_text_node(node: object) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, _IGNORED_STRINGS)


class _Collector:
    __slots__ = ("chars", "owners", "pieces")

    def __init__(self) -> None:
        self.chars: List[str] = []
        self.owners: List[int] = []
        self.pieces: List[Tuple[InlineStyle, ...]] = []

    def add_text(self, text: str, styles: Tuple[InlineStyle, ...]) -> None:
        owner = len(self.pieces)
        self.pieces.append(styles)
        for char in text:
            if char in _COLLAPSIBLE:
                if not self.chars or self.chars[-1] in (" ", "\n"):
                    continue
                char = " "
            self.chars.append(char)
            self.owners.append(owner)

    def hard_break(self) -> None:
        self._trim_trailing_space()
        self.chars.append("\n")
        self.owners.append(-1)

    def block_boundary(self) -> None:
        self._trim_trailing_space()
        if self.chars and self.chars[-1] != "\n":
            self.chars.append("\n")
            self.owners.append(-1)

    def _trim_trailing_space(self) -> None:
        while self.chars and self.chars[-1] == " ":
            self.chars.pop()
            self.owners.pop()

    def finish(self) -> StyledText:
        while self.chars and self.chars[-1] in (" ", "\n"):
            self.chars.pop()
            self.owners.pop()
        lead = 0
        while lead < len(self.chars) and self.chars[lead] in (" ", "\n"):
            lead += 1

        chars = self.chars[lead:]
        owners = self.owners[lead:]

        bounds: Dict[int, List[int]] = {}
        for position, owner in enumerate(owners):
            if owner < 0:
                continue
            if owner in bounds:
                bounds[owner][1] = position + 1
            else:
                bounds[owner] = [position, position + 1]

        spans: List[StyleSpan] = []
        for owner, styles in enumerate(self.pieces):
            if not styles or owner not in bounds:
                continue
            start, end = bounds[owner]
            for style in styles:
                spans.append((start, end, style))
        return StyledText(text="".join(chars), spans=spans)


def _walk(element: Tag, styles: Tuple[InlineStyle, ...], collector: _Collector) -> None:
    for child in element.children:
        if isinstance(child, Tag):
            name = (child.name or "").lower()
            if name in SKIPPED_TAGS:
                continue
            if name == "br":
                collector.hard_break()
                continue
            style = INLINE_STYLE_TAGS.get(name)
            child_styles = styles + (style,) if style is not None else styles
            block = name in BLOCK_TAGS
            if block:
                collector.block_boundary()
            _walk(child, child_styles, collector)
            if block:
                collector.block_boundary()
        elif is_text_node(child):
            collector.add_text(str(child), styles)


def extract_styled_text(element: Tag) -> StyledText:
    """Return the collapsed text of ``element`` and one span per active inline style per text node."""

    collector = _Collector()
    _walk(element, (), collector)
    return collector.finish()


def extract_styled_nodes(nodes: Sequence[object]) -> StyledText:
    """Like :func:`extract_styled_text` for a loose run of sibling nodes."""

    collector = _Collector()
    for node in nodes:
        if isinstance(node, Tag):
            name = (node.name or "").lower()
            if name == "br":
                collector.hard_break()
                continue
            style = INLINE_STYLE_TAGS.get(name)
            _walk(node, (style,) if style is not None else (), collector)
        elif is_text_node(node):
            collector.add_text(str(node), ())
    return collector.finish()


__all__ = [
    "BLOCK_TAGS",
    "INLINE_STYLE_TAGS",
    "SKIPPED_TAGS",
    "StyledText",
    "extract_styled_nodes",
    "extract_styled_text",
    "is_text_node",
]
