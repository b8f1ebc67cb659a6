from __future__ import annotations

import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from reef.errors import DocumentLoadError
from reef.ingest.nav import OutlineEntry, outline_by_file, parse_nav
from reef.models.document import Chapter, Document, DocumentMetadata

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DocumentReaderConfig:
    """Which files make up a book directory and how to decode them."""

    chapter_extensions: Tuple[str, ...] = (".xhtml", ".html", ".htm")
    nav_filenames: Tuple[str, ...] = ("nav.xhtml", "toc.xhtml", "toc.ncx")
    spine_filename: str = "spine.txt"
    encoding: str = "utf-8"


class DocumentReader(ABC):
    """Abstract base class for turning a document on disk into a :class:`Document`."""

    def __init__(self, config: DocumentReaderConfig | None = None) -> None:
        self.config = config or DocumentReaderConfig()

    @abstractmethod
    def read(self, path: Path) -> Document:
        """Load a single document. Chapters come back with raw markup only, not laid out."""


class HtmlDirectoryReader(DocumentReader):
    """Reads an unpacked book: a directory of XHTML/HTML chapter files.

    Chapter order comes from ``spine.txt`` (one relative path per line, ``#``
    comments allowed) when present, otherwise from the sorted file names. A
    navigation document (``nav.xhtml``, ``toc.xhtml`` or ``toc.ncx``) supplies
    chapter titles and declared sections and is never rendered itself. A single
    HTML file is read as a one-chapter document.
    """

    def read(self, path: Path) -> Document:
        if not path.exists():
            raise DocumentLoadError(f"Document not found: {path}")

        root = path.resolve()
        if root.is_file():
            if root.suffix.lower() not in self.config.chapter_extensions:
                raise DocumentLoadError(f"Unsupported document type: {path}")
            chapter_paths = [root]
            outline: Dict[str, OutlineEntry] = {}
            base = root.parent
        else:
            base = root
            outline = self._load_outline(root)
            chapter_paths = self._chapter_paths(root)

        if not chapter_paths:
            raise DocumentLoadError(f"No chapter files found in {path}")

        chapters: List[Chapter] = []
        for number, chapter_path in enumerate(chapter_paths, start=1):
            relative = chapter_path.relative_to(base).as_posix()
            markup = self._read_text(chapter_path)
            entry = outline.get(relative)
            title = entry.title if entry is not None and entry.title else f"Chapter {number}"
            chapters.append(
                Chapter(
                    title=title,
                    raw_markup=markup,
                    declared_sections=list(entry.sections) if entry is not None else [],
                    source_path=relative,
                )
            )

        metadata = DocumentMetadata(title=self._document_title(chapters[0].raw_markup, root))
        logger.info("Loaded '%s' with %d chapters from %s", metadata.title, len(chapters), root)
        return Document(metadata=metadata, chapters=chapters, identity=str(root))

    # ------------------------------------------------------------------ helpers
    def _read_text(self, file_path: Path) -> str:
        try:
            return file_path.read_text(encoding=self.config.encoding, errors="replace")
        except OSError as exc:
            logger.warning("Unable to read %s: %s", file_path, exc)
            raise DocumentLoadError(f"Unable to read {file_path}: {exc}") from exc

    def _is_chapter_file(self, file_path: Path) -> bool:
        return (
            file_path.is_file()
            and file_path.suffix.lower() in self.config.chapter_extensions
            and file_path.name.lower() not in self.config.nav_filenames
        )

    def _chapter_paths(self, root: Path) -> List[Path]:
        spine = root / self.config.spine_filename
        if spine.is_file():
            paths: List[Path] = []
            for raw in self._read_text(spine).splitlines():
                entry = raw.strip()
                if not entry or entry.startswith("#"):
                    continue
                candidate = root / posixpath.normpath(entry)
                if self._is_chapter_file(candidate):
                    paths.append(candidate)
                else:
                    logger.warning("Spine entry %s is not a chapter file, skipping", entry)
            return paths
        return sorted(
            (candidate for candidate in root.rglob("*") if self._is_chapter_file(candidate)),
            key=lambda candidate: candidate.relative_to(root).as_posix(),
        )

    def _load_outline(self, root: Path) -> Dict[str, OutlineEntry]:
        for name in self.config.nav_filenames:
            matches = sorted(root.rglob(name))
            if not matches:
                continue
            nav_path = matches[0]
            base_dir = nav_path.parent.relative_to(root).as_posix()
            points = parse_nav(self._read_text(nav_path))
            logger.debug("Outline %s: %d top-level entries", nav_path.name, len(points))
            return outline_by_file(points, "" if base_dir == "." else base_dir)
        return {}

    @staticmethod
    def _document_title(first_markup: str, root: Path) -> str:
        soup = BeautifulSoup(first_markup, "html.parser")
        if soup.title is not None:
            title = " ".join(soup.title.get_text().split())
            if title:
                return title
        return root.stem if root.is_file() else root.name


def read_document(path: Path, reader: Optional[DocumentReader] = None) -> Document:
    return (reader or HtmlDirectoryReader()).read(path)


__all__ = ["DocumentReader", "DocumentReaderConfig", "HtmlDirectoryReader", "read_document"]
