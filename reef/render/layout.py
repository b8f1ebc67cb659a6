from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup
from bs4.element import Tag

from reef.models.configs import UI_MARGIN_WIDTH
from reef.models.document import BlockStyle, ColorSpan, RenderedLine, StyleSpan
from reef.render.highlight import Fragment, Highlighter, PlainHighlighter, detect_language
from reef.render.inline import (
    INLINE_STYLE_TAGS,
    SKIPPED_TAGS,
    extract_styled_nodes,
    extract_styled_text,
    is_text_node,
)
from reef.render.wrap import wrap_styled

logger = logging.getLogger(__name__)

IMAGE_ALT_LIMIT = 50
RULE_MAX_WIDTH = 80
CODE_TAB_SIZE = 4

BULLET_PREFIX = "• "
DEFINITION_INDENT = "  "
CELL_SEPARATOR = " | "

TABLE_MARKER = "[Table]"
FIGURE_MARKER = "[Figure]"
ASIDE_TOP = "┌─ Aside ─"
ASIDE_BOTTOM = "└─────────"
NAV_HEADER = "─── Navigation ───"
NAV_ITEM_PREFIX = "→ "

HEADING_STYLES: Dict[str, tuple[int, BlockStyle]] = {
    "h1": (1, BlockStyle.HEADING1),
    "h2": (2, BlockStyle.HEADING2),
    "h3": (3, BlockStyle.HEADING3),
    "h4": (4, BlockStyle.HEADING3),
    "h5": (5, BlockStyle.HEADING3),
    "h6": (6, BlockStyle.HEADING3),
}

INLINE_RUN_TAGS = frozenset(INLINE_STYLE_TAGS) | {
    "abbr",
    "bdi",
    "bdo",
    "big",
    "br",
    "cite",
    "dfn",
    "font",
    "ins",
    "kbd",
    "q",
    "samp",
    "small",
    "span",
    "sub",
    "sup",
    "time",
    "tt",
    "var",
    "wbr",
}


@dataclass(frozen=True, slots=True)
class Heading:
    text: str
    level: int
    line_number: int
    anchor_id: Optional[str] = None


@dataclass(slots=True)
class LayoutResult:
    lines: List[RenderedLine] = field(default_factory=list)
    headings: List[Heading] = field(default_factory=list)


def effective_width(terminal_width: int, max_width: Optional[int] = None, margin: int = UI_MARGIN_WIDTH) -> int:
    """Column budget for wrapping: ``min(max_width, terminal_width) - margin``, never below 1."""

    width = min(max_width, terminal_width) if max_width else terminal_width
    return max(1, width - margin)


def _anchor_for(element: Tag) -> Optional[str]:
    own = element.get("id")
    if own:
        return str(own)
    nested = element.find(attrs={"id": True})
    if isinstance(nested, Tag):
        return str(nested["id"])
    named = element.find("a", attrs={"name": True})
    if isinstance(named, Tag):
        return str(named["name"])
    return None


def _class_tokens(element: Tag) -> List[str]:
    classes = element.get("class") or []
    if isinstance(classes, str):
        return classes.split()
    return [str(token) for token in classes]


class _LayoutPass:
    """Per-call state for one walk over a markup tree."""

    def __init__(self, highlighter: Highlighter, width: int) -> None:
        self.highlighter = highlighter
        self.width = width
        self.lines: List[RenderedLine] = []
        self.headings: List[Heading] = []
        self._handlers: Dict[str, Callable[[Tag], None]] = {
            "pre": self._code_block,
            "img": self._image,
            "p": self._paragraph,
            "blockquote": self._blockquote,
            "ul": self._unordered_list,
            "ol": self._ordered_list,
            "dl": self._definition_list,
            "table": self._table,
            "hr": self._horizontal_rule,
            "aside": self._aside,
            "figure": self._figure,
            "nav": self._navigation,
            "a": self._link,
        }

    # ------------------------------------------------------------------ dispatch
    def process_children(self, element: Tag) -> None:
        links_inline = any(is_text_node(child) and str(child).strip() for child in element.children)
        run: List[object] = []
        for child in element.children:
            if is_text_node(child):
                run.append(child)
                continue
            if not isinstance(child, Tag):
                continue
            name = (child.name or "").lower()
            if name in INLINE_RUN_TAGS or (name == "a" and links_inline):
                run.append(child)
                continue
            self._flush_run(run)
            run = []
            self.process_element(child)
        self._flush_run(run)

    def process_element(self, element: Tag) -> None:
        name = (element.name or "").lower()
        if name in SKIPPED_TAGS:
            return
        if name in HEADING_STYLES:
            level, style = HEADING_STYLES[name]
            self._heading(element, level, style)
            return
        handler = self._handlers.get(name)
        if handler is not None:
            handler(element)
            return
        self.process_children(element)

    # ------------------------------------------------------------------ emit helpers
    def _push(self, text: str, style: BlockStyle = BlockStyle.NORMAL, **extra: object) -> None:
        self.lines.append(RenderedLine(text=text, style=style, **extra))  # type: ignore[arg-type]

    def _blank(self) -> None:
        self._push("")

    def _add_text_lines(
        self,
        text: str,
        spans: Sequence[StyleSpan],
        width: int,
        style: BlockStyle,
    ) -> None:
        if not text.strip():
            return
        for wrapped in wrap_styled(text, spans, max(1, width)):
            self._push(wrapped.text, style, inline_spans=wrapped.spans)

    def _flush_run(self, run: List[object]) -> None:
        if not run:
            return
        styled = extract_styled_nodes(run)
        self._add_text_lines(styled.text, styled.spans, self.width, BlockStyle.NORMAL)

    # ------------------------------------------------------------------ block handlers
    def _heading(self, element: Tag, level: int, style: BlockStyle) -> None:
        styled = extract_styled_text(element)
        self.headings.append(
            Heading(text=styled.text, level=level, line_number=len(self.lines), anchor_id=_anchor_for(element))
        )
        self._add_text_lines(styled.text, styled.spans, self.width, style)
        self._blank()

    def _paragraph(self, element: Tag) -> None:
        styled = extract_styled_text(element)
        self._add_text_lines(styled.text, styled.spans, self.width, BlockStyle.NORMAL)
        self._blank()

    def _blockquote(self, element: Tag) -> None:
        styled = extract_styled_text(element)
        self._add_text_lines(styled.text, styled.spans, self.width, BlockStyle.QUOTE)
        self._blank()

    def _link(self, element: Tag) -> None:
        styled = extract_styled_text(element)
        self._add_text_lines(styled.text, styled.spans, self.width, BlockStyle.LINK)

    def _image(self, element: Tag) -> None:
        alt = str(element.get("alt") or "").strip()
        if not alt:
            placeholder = "[Image]"
        else:
            if len(alt) > IMAGE_ALT_LIMIT:
                alt = f"{alt[:IMAGE_ALT_LIMIT]}..."
            placeholder = f"[Image: {alt}]"
        self._push(placeholder)
        self._blank()

    def _code_block(self, element: Tag) -> None:
        code = element.find("code")
        if isinstance(code, Tag):
            text = code.get_text()
            language = detect_language(_class_tokens(code))
        else:
            text = element.get_text()
            language = None

        if text.startswith("\r\n"):
            text = text[2:]
        elif text.startswith("\n"):
            text = text[1:]
        text = text.expandtabs(CODE_TAB_SIZE).rstrip("\n")

        if text:
            fragments = self._highlight(text, language) if language else [(text, None)]
            for line_text, colors in _split_fragments(fragments):
                self._push(line_text, BlockStyle.CODE_BLOCK, language=language, syntax_spans=colors)
        self._blank()

    def _highlight(self, code: str, language: str) -> List[Fragment]:
        try:
            fragments = self.highlighter.highlight(code, language)
        except Exception as exc:
            logger.warning("Highlighter failed for language '%s': %s", language, exc)
            return [(code, None)]
        if "".join(fragment for fragment, _ in fragments) != code:
            logger.warning("Highlighter output for language '%s' does not match the code text", language)
            return [(code, None)]
        return fragments

    def _unordered_list(self, element: Tag) -> None:
        for item in _items(element, "li"):
            styled = extract_styled_text(item)
            self._add_text_lines(
                BULLET_PREFIX + styled.text,
                styled.shifted(len(BULLET_PREFIX)),
                self.width - len(BULLET_PREFIX),
                BlockStyle.NORMAL,
            )
        self._blank()

    def _ordered_list(self, element: Tag) -> None:
        try:
            number = int(str(element.get("start") or 1))
        except ValueError:
            number = 1
        for item in _items(element, "li"):
            styled = extract_styled_text(item)
            prefix = f"{number}. "
            self._add_text_lines(
                prefix + styled.text,
                styled.shifted(len(prefix)),
                self.width - len(prefix),
                BlockStyle.NORMAL,
            )
            number += 1
        self._blank()

    def _definition_list(self, element: Tag) -> None:
        for item in _items(element, ["dt", "dd"]):
            styled = extract_styled_text(item)
            if item.name == "dt":
                self._add_text_lines(styled.text, styled.spans, self.width, BlockStyle.HEADING3)
            else:
                self._add_text_lines(
                    DEFINITION_INDENT + styled.text,
                    styled.shifted(len(DEFINITION_INDENT)),
                    self.width - len(DEFINITION_INDENT),
                    BlockStyle.NORMAL,
                )
        self._blank()

    def _table(self, element: Tag) -> None:
        self._push(TABLE_MARKER)
        for row in element.find_all("tr"):
            row_text = ""
            row_spans: List[StyleSpan] = []
            for index, cell in enumerate(row.find_all(["td", "th"], recursive=False)):
                if index > 0:
                    row_text += CELL_SEPARATOR
                styled = extract_styled_text(cell)
                row_spans.extend(styled.shifted(len(row_text)))
                row_text += styled.text
            self._add_text_lines(row_text, row_spans, self.width, BlockStyle.NORMAL)
        self._blank()

    def _horizontal_rule(self, element: Tag) -> None:
        self._push("─" * min(self.width, RULE_MAX_WIDTH))
        self._blank()

    def _aside(self, element: Tag) -> None:
        self._push(ASIDE_TOP, BlockStyle.QUOTE)
        self.process_children(element)
        self._push(ASIDE_BOTTOM, BlockStyle.QUOTE)
        self._blank()

    def _figure(self, element: Tag) -> None:
        self._push(FIGURE_MARKER)
        self.process_children(element)

    def _navigation(self, element: Tag) -> None:
        self._push(NAV_HEADER, BlockStyle.HEADING3)
        for anchor in element.find_all("a"):
            text = " ".join(anchor.get_text().split())
            if text:
                self._push(NAV_ITEM_PREFIX + text, BlockStyle.LINK)
        self._blank()


def _items(element: Tag, names: str | List[str]) -> List[Tag]:
    direct = element.find_all(names, recursive=False)
    return list(direct) if direct else list(element.find_all(names))


def _split_fragments(fragments: Sequence[Fragment]) -> List[tuple[str, List[ColorSpan]]]:
    """Regroup highlighter fragments into physical lines with line-local color spans."""

    lines: List[tuple[str, List[ColorSpan]]] = []
    parts: List[str] = []
    colors: List[ColorSpan] = []
    length = 0
    for fragment, color in fragments:
        for index, piece in enumerate(fragment.split("\n")):
            if index > 0:
                lines.append(("".join(parts), colors))
                parts, colors, length = [], [], 0
            if not piece:
                continue
            if color:
                colors.append((length, length + len(piece), color))
            parts.append(piece)
            length += len(piece)
    lines.append(("".join(parts), colors))
    return lines


class LayoutEngine:
    """Turns chapter markup into wrapped, styled lines plus the headings found on the way.

    ``layout`` is a pure function of its arguments; the highlighter is an
    injected capability so tests (and terminals without color) can use the
    plain one.
    """

    def __init__(self, highlighter: Highlighter | None = None) -> None:
        self.highlighter = highlighter or PlainHighlighter()

    def layout(self, raw_markup: str, width: int) -> LayoutResult:
        width = max(1, width)
        soup = BeautifulSoup(raw_markup or "", "html.parser")
        root = soup.body if isinstance(soup.body, Tag) else soup

        layout_pass = _LayoutPass(self.highlighter, width)
        layout_pass.process_children(root)

        logger.debug(
            "Laid out %d lines and %d headings from %d chars at width %d",
            len(layout_pass.lines),
            len(layout_pass.headings),
            len(raw_markup or ""),
            width,
        )
        return LayoutResult(lines=layout_pass.lines, headings=layout_pass.headings)


__all__ = ["Heading", "LayoutEngine", "LayoutResult", "effective_width"]
