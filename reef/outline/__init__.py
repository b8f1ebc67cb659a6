"""Outline (table of contents) tree and cursor synchronization."""

from .sync import OutlineSync, chapter_id, parse_id, section_id, section_index_at

__all__ = ["OutlineSync", "chapter_id", "parse_id", "section_id", "section_index_at"]
