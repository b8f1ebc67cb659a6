from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from reef.models.document import Document, Section
from reef.models.outline import OutlineNode, OutlineRow

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^chapter_(\d+)(?:_section_(\d+))?$")


def chapter_id(chapter_idx: int) -> str:
    return f"chapter_{chapter_idx}"


def section_id(chapter_idx: int, section_idx: int) -> str:
    return f"chapter_{chapter_idx}_section_{section_idx}"


def parse_id(node_id: str) -> Optional[Tuple[int, Optional[int]]]:
    """Split ``chapter_<i>`` / ``chapter_<i>_section_<j>``; anything else gives ``None``."""

    match = _ID_PATTERN.match(node_id or "")
    if match is None:
        return None
    chapter, section = match.groups()
    return int(chapter), int(section) if section is not None else None


def section_index_at(sections: Sequence[Section], line: int) -> Optional[int]:
    """Index of the section whose range ``[start_line, next.start_line)`` holds ``line``."""

    for index, section in enumerate(sections):
        next_start = sections[index + 1].start_line if index + 1 < len(sections) else None
        if section.start_line <= line and (next_start is None or line < next_start):
            return index
    return None


class OutlineSync:
    """Keeps the chapter/section tree, the expand state and the selected path.

    ``expanded`` is the only record of which chapters are open; display rows
    are derived from it by :meth:`rows`, so there is no second open flag to
    drift out of sync.
    """

    def __init__(self, document: Optional[Document] = None) -> None:
        self.nodes: List[OutlineNode] = []
        self.expanded: Set[str] = set()
        self.selected: List[str] = []
        self._document: Optional[Document] = None
        if document is not None:
            self.build(document)

    # ------------------------------------------------------------------ tree
    def build(self, document: Document) -> List[OutlineNode]:
        nodes: List[OutlineNode] = []
        for chapter_idx, chapter in enumerate(document.chapters):
            node = OutlineNode(node_id=chapter_id(chapter_idx), title=chapter.title, chapter_idx=chapter_idx, order=chapter_idx)
            for section_idx, section in enumerate(chapter.sections):
                node.add_child(
                    OutlineNode(
                        node_id=section_id(chapter_idx, section_idx),
                        title=section.title,
                        chapter_idx=chapter_idx,
                        section_idx=section_idx,
                    )
                )
            nodes.append(node)
        self.nodes = nodes
        self._document = document
        logger.debug("Outline built with %d chapter nodes", len(nodes))
        return nodes

    def find(self, node_id: str) -> Optional[OutlineNode]:
        parsed = parse_id(node_id)
        if parsed is None:
            return None
        chapter_idx, section_idx = parsed
        if chapter_idx >= len(self.nodes):
            return None
        node = self.nodes[chapter_idx]
        if section_idx is None:
            return node
        if section_idx >= len(node.children):
            return None
        return node.children[section_idx]

    # ------------------------------------------------------------------ cursor <-> path
    def locate(self, chapter_idx: int, cursor_line: int) -> Optional[List[str]]:
        if self._document is None:
            return None
        chapter = self._document.chapter(chapter_idx)
        if chapter is None:
            return None
        if not chapter.sections:
            return [chapter_id(chapter_idx)]
        index = section_index_at(chapter.sections, cursor_line)
        if index is None:
            return [chapter_id(chapter_idx)]
        return [chapter_id(chapter_idx), section_id(chapter_idx, index)]

    def select(self, path: Sequence[str]) -> None:
        if not path:
            return
        if len(path) > 1:
            self.expanded.add(path[0])
        self.selected = list(path)

    def sync(self, chapter_idx: int, cursor_line: int) -> Optional[List[str]]:
        path = self.locate(chapter_idx, cursor_line)
        if path is not None:
            self.select(path)
        return path

    def target(self) -> Optional[Tuple[int, int]]:
        """``(chapter_idx, line)`` the current selection points at, or ``None``."""

        if not self.selected or self._document is None:
            return None
        parsed = parse_id(self.selected[-1])
        if parsed is None:
            logger.debug("Cannot parse outline id '%s'", self.selected[-1])
            return None
        chapter_idx, section_idx = parsed
        chapter = self._document.chapter(chapter_idx)
        if chapter is None:
            return None
        if section_idx is None:
            return chapter_idx, 0
        if section_idx >= len(chapter.sections):
            return None
        return chapter_idx, chapter.sections[section_idx].start_line

    # ------------------------------------------------------------------ expand state
    def is_expandable(self, node_id: str) -> bool:
        node = self.find(node_id)
        return node is not None and node.section_idx is None and not node.is_leaf

    def toggle(self, node_id: str) -> bool:
        """Flip an expandable chapter; leaves and unknown ids are left alone. Returns the open state."""

        if not self.is_expandable(node_id):
            return False
        if node_id in self.expanded:
            self.expanded.discard(node_id)
            return False
        self.expanded.add(node_id)
        return True

    def close(self, node_id: str) -> None:
        self.expanded.discard(node_id)
        if len(self.selected) > 1 and self.selected[0] == node_id:
            self.selected = [node_id]

    def expand_state(self) -> List[str]:
        return sorted(self.expanded)

    def restore_expand_state(self, node_ids: Iterable[str]) -> None:
        self.expanded = {node_id for node_id in node_ids if parse_id(node_id) is not None}

    # ------------------------------------------------------------------ display
    def rows(self) -> List[OutlineRow]:
        current = self.selected[-1] if self.selected else None
        rows: List[OutlineRow] = []
        for node in self.nodes:
            is_open = not node.is_leaf and node.node_id in self.expanded
            rows.append(
                OutlineRow(
                    node_id=node.node_id,
                    title=node.title,
                    depth=0,
                    has_children=not node.is_leaf,
                    is_open=is_open,
                    is_selected=node.node_id == current,
                )
            )
            if not is_open:
                continue
            for child in node.children:
                rows.append(
                    OutlineRow(
                        node_id=child.node_id,
                        title=child.title,
                        depth=1,
                        has_children=False,
                        is_open=False,
                        is_selected=child.node_id == current,
                    )
                )
        return rows

    def select_next(self) -> None:
        self._move_selection(1)

    def select_previous(self) -> None:
        self._move_selection(-1)

    def _move_selection(self, step: int) -> None:
        visible = [row.node_id for row in self.rows()]
        if not visible:
            return
        current = self.selected[-1] if self.selected else None
        if current not in visible and self.selected:
            current = self.selected[0]
        if current not in visible:
            position = 0 if step > 0 else len(visible) - 1
        else:
            position = max(0, min(len(visible) - 1, visible.index(current) + step))
        self.selected = self._path_for(visible[position])

    def _path_for(self, node_id: str) -> List[str]:
        node = self.find(node_id)
        if node is not None and node.parent_id is not None:
            return [node.parent_id, node_id]
        return [node_id]


__all__ = ["OutlineSync", "chapter_id", "parse_id", "section_id", "section_index_at"]
