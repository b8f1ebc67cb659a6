from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(slots=True)
class OutlineNode:
    """A chapter or section entry in the navigation tree."""

    node_id: str
    title: str
    chapter_idx: int
    section_idx: Optional[int] = None
    parent_id: Optional[str] = None
    order: int = 0
    children: List["OutlineNode"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def add_child(self, child: "OutlineNode") -> None:
        """Attach a child node while keeping the outline hierarchy consistent."""

        child.order = len(self.children)
        child.parent_id = self.node_id
        self.children.append(child)


@dataclass(frozen=True, slots=True)
class OutlineRow:
    """Display row derived from the outline and the expand state."""

    node_id: str
    title: str
    depth: int
    has_children: bool
    is_open: bool
    is_selected: bool


__all__ = ["OutlineNode", "OutlineRow"]
