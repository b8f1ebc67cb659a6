from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True, slots=True)
class SearchMatch:
    """A regex hit on one rendered line. Only valid for the layout it was computed on."""

    chapter_idx: int
    line: int
    column: int
    length: int

    @property
    def end(self) -> int:
        return self.column + self.length


@dataclass(slots=True)
class SearchResult:
    pattern: str
    matches: List[SearchMatch] = field(default_factory=list)
    limit_reached: bool = False
    timed_out: bool = False
    elapsed: float = 0.0

    def __len__(self) -> int:
        return len(self.matches)

    @property
    def complete(self) -> bool:
        return not (self.limit_reached or self.timed_out)


@dataclass(frozen=True, slots=True)
class JumpPosition:
    index: int
    chapter_idx: int
    line: int
    scroll_offset: int


__all__ = ["JumpPosition", "SearchMatch", "SearchResult"]
