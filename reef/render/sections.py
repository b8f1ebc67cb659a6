from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from reef.models.document import DeclaredSection, Section
from reef.render.layout import Heading

logger = logging.getLogger(__name__)

SECTION_HEADING_LEVELS = (2, 3)

# Only these literal entities are decoded; anything else stays as written.
_ENTITY_REPLACEMENTS = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


def normalize_title(text: str) -> str:
    normalized = text.strip()
    for entity, replacement in _ENTITY_REPLACEMENTS:
        normalized = normalized.replace(entity, replacement)
    return normalized


class SectionResolver:
    """Gives every section of a chapter a concrete start line.

    Without declared sections, level 2 and 3 headings become the sections.
    Declared sections are matched by anchor id first and normalized title
    second; an unmatched section stays at line 0 rather than failing.
    """

    def resolve(self, declared: Sequence[DeclaredSection], headings: Sequence[Heading]) -> List[Section]:
        if not declared:
            sections = self._synthesize(headings)
            logger.debug("Synthesized %d sections from %d headings", len(sections), len(headings))
        else:
            sections = [self._resolve_one(entry, headings) for entry in declared]
        # stable: unmatched sections (line 0) keep their declared order
        return sorted(sections, key=lambda section: section.start_line)

    def _synthesize(self, headings: Sequence[Heading]) -> List[Section]:
        return [
            Section(title=heading.text, start_line=heading.line_number, anchor_id=heading.anchor_id)
            for heading in headings
            if heading.level in SECTION_HEADING_LEVELS
        ]

    def _resolve_one(self, entry: DeclaredSection, headings: Sequence[Heading]) -> Section:
        line = self._match_anchor(entry, headings)
        if line is None:
            line = self._match_title(entry, headings)
        if line is None:
            logger.debug("No heading matched section '%s'; it stays at line 0", entry.title)
            line = 0
        return Section(title=entry.title, start_line=line, anchor_id=entry.anchor_id)

    def _match_anchor(self, entry: DeclaredSection, headings: Sequence[Heading]) -> Optional[int]:
        if not entry.anchor_id:
            return None
        for heading in headings:
            if heading.anchor_id is not None and heading.anchor_id == entry.anchor_id:
                logger.debug("Section '%s' matched by anchor at line %d", entry.title, heading.line_number)
                return heading.line_number
        return None

    def _match_title(self, entry: DeclaredSection, headings: Sequence[Heading]) -> Optional[int]:
        wanted = normalize_title(entry.title)
        for heading in headings:
            if normalize_title(heading.text) == wanted:
                logger.debug("Section '%s' matched by title at line %d", entry.title, heading.line_number)
                return heading.line_number
        return None


__all__ = ["SECTION_HEADING_LEVELS", "SectionResolver", "normalize_title"]
