"""Terminal document reader core: layout, outline sync and search."""

from .models.document import Chapter, Document, RenderedLine, Section
from .session import ReaderSession

__all__ = ["Chapter", "Document", "ReaderSession", "RenderedLine", "Section"]
