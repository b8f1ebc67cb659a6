from __future__ import annotations

import json
import sqlite3
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from reef.models.bookmark import Bookmark

MAX_RECENT_DOCUMENTS = 20


@dataclass(slots=True)
class ReadingProgress:
    chapter_idx: int
    line: int
    scroll_offset: int
    last_read: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expanded_nodes: List[str] = field(default_factory=list)


class StateStore:
    """Persists reading progress, outline expand state, bookmarks and recent documents in SQLite."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._ensure_parent()
        self._initialize()

    def _ensure_parent(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(self.db_path)) as conn:
            conn.row_factory = sqlite3.Row
            with conn:
                yield conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS reading_progress (
                    document TEXT PRIMARY KEY,
                    chapter_idx INTEGER NOT NULL,
                    line INTEGER NOT NULL,
                    scroll_offset INTEGER NOT NULL,
                    last_read TEXT NOT NULL,
                    expanded_nodes TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS bookmarks (
                    document TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    chapter_idx INTEGER NOT NULL,
                    line INTEGER NOT NULL,
                    label TEXT NOT NULL,
                    PRIMARY KEY (document, position)
                );

                CREATE TABLE IF NOT EXISTS recent_documents (
                    document TEXT PRIMARY KEY,
                    opened_at TEXT NOT NULL,
                    opened_seq INTEGER NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------ reading progress
    def save_progress(self, document: str, progress: ReadingProgress) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO reading_progress(document, chapter_idx, line, scroll_offset, last_read, expanded_nodes)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(document) DO UPDATE SET
                    chapter_idx=excluded.chapter_idx,
                    line=excluded.line,
                    scroll_offset=excluded.scroll_offset,
                    last_read=excluded.last_read,
                    expanded_nodes=excluded.expanded_nodes
                """,
                (
                    document,
                    progress.chapter_idx,
                    progress.line,
                    progress.scroll_offset,
                    progress.last_read.isoformat(),
                    json.dumps(sorted(progress.expanded_nodes)),
                ),
            )

    def load_progress(self, document: str) -> Optional[ReadingProgress]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM reading_progress WHERE document = ?", (document,)).fetchone()
        if row is None:
            return None
        return ReadingProgress(
            chapter_idx=row["chapter_idx"],
            line=row["line"],
            scroll_offset=row["scroll_offset"],
            last_read=datetime.fromisoformat(row["last_read"]),
            expanded_nodes=list(json.loads(row["expanded_nodes"] or "[]")),
        )

    def all_progress(self) -> Dict[str, ReadingProgress]:
        with self._connect() as conn:
            documents = [row["document"] for row in conn.execute("SELECT document FROM reading_progress")]
        return {document: progress for document in documents if (progress := self.load_progress(document))}

    # ------------------------------------------------------------------ bookmarks
    def save_bookmarks(self, document: str, bookmarks: List[Bookmark]) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM bookmarks WHERE document = ?", (document,))
            conn.executemany(
                """
                INSERT INTO bookmarks(document, position, chapter_idx, line, label)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (document, position, bookmark.chapter_idx, bookmark.line, bookmark.label)
                    for position, bookmark in enumerate(bookmarks)
                ],
            )

    def load_bookmarks(self, document: str) -> List[Bookmark]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT chapter_idx, line, label FROM bookmarks WHERE document = ? ORDER BY position",
                (document,),
            ).fetchall()
        return [Bookmark(chapter_idx=row["chapter_idx"], line=row["line"], label=row["label"]) for row in rows]

    # ------------------------------------------------------------------ recent documents
    def touch_recent(self, document: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO recent_documents(document, opened_at, opened_seq)
                VALUES (?, ?, (SELECT COALESCE(MAX(opened_seq), 0) + 1 FROM recent_documents))
                ON CONFLICT(document) DO UPDATE SET
                    opened_at=excluded.opened_at,
                    opened_seq=excluded.opened_seq
                """,
                (document, now),
            )
            conn.execute(
                """
                DELETE FROM recent_documents WHERE document NOT IN (
                    SELECT document FROM recent_documents ORDER BY opened_seq DESC LIMIT ?
                )
                """,
                (MAX_RECENT_DOCUMENTS,),
            )

    def recent_documents(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT document FROM recent_documents ORDER BY opened_seq DESC").fetchall()
        return [row["document"] for row in rows]

    def delete_all(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                DELETE FROM reading_progress;
                DELETE FROM bookmarks;
                DELETE FROM recent_documents;
                """
            )


__all__ = ["MAX_RECENT_DOCUMENTS", "ReadingProgress", "StateStore"]
