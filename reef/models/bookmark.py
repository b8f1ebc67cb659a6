from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Bookmark:
    chapter_idx: int
    line: int
    label: str


__all__ = ["Bookmark"]
