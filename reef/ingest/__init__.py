"""Loading documents from disk."""

from .nav import NavPoint, OutlineEntry, outline_by_file, parse_nav
from .reader import DocumentReader, DocumentReaderConfig, HtmlDirectoryReader, read_document

__all__ = [
    "DocumentReader",
    "DocumentReaderConfig",
    "HtmlDirectoryReader",
    "NavPoint",
    "OutlineEntry",
    "outline_by_file",
    "parse_nav",
    "read_document",
]
