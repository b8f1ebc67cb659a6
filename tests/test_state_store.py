import sqlite3
from datetime import datetime, timezone

from reef.models.bookmark import Bookmark
from reef.storage import MAX_RECENT_DOCUMENTS, ReadingProgress, StateStore


def test_progress_upsert_round_trip(tmp_path):
    store = StateStore(tmp_path / "nested" / "state.db")
    read_at = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    assert store.load_progress("/books/a") is None

    store.save_progress(
        "/books/a",
        ReadingProgress(chapter_idx=2, line=40, scroll_offset=30, last_read=read_at, expanded_nodes=["chapter_2", "chapter_0"]),
    )
    store.save_progress("/books/a", ReadingProgress(chapter_idx=3, line=5, scroll_offset=0, last_read=read_at))

    progress = store.load_progress("/books/a")
    assert (progress.chapter_idx, progress.line, progress.scroll_offset) == (3, 5, 0)
    assert progress.last_read == read_at
    assert progress.expanded_nodes == []
    assert set(store.all_progress()) == {"/books/a"}


def test_expanded_nodes_are_stored(tmp_path):
    store = StateStore(tmp_path / "state.db")
    store.save_progress("doc", ReadingProgress(chapter_idx=0, line=0, scroll_offset=0, expanded_nodes=["chapter_2", "chapter_0"]))

    assert store.load_progress("doc").expanded_nodes == ["chapter_0", "chapter_2"]


def test_bookmarks_are_replaced_per_document(tmp_path):
    store = StateStore(tmp_path / "state.db")
    first = [Bookmark(chapter_idx=0, line=1, label="a"), Bookmark(chapter_idx=2, line=0, label="b")]

    store.save_bookmarks("doc", first)
    store.save_bookmarks("other", [Bookmark(chapter_idx=9, line=9, label="z")])
    assert store.load_bookmarks("doc") == first

    store.save_bookmarks("doc", first[1:])
    assert store.load_bookmarks("doc") == first[1:]
    assert store.load_bookmarks("other") == [Bookmark(chapter_idx=9, line=9, label="z")]
    assert store.load_bookmarks("unknown") == []


def test_recent_documents_most_recent_first_and_capped(tmp_path):
    store = StateStore(tmp_path / "state.db")

    for index in range(MAX_RECENT_DOCUMENTS + 5):
        store.touch_recent(f"/books/{index}")
    store.touch_recent("/books/10")

    recent = store.recent_documents()
    assert len(recent) == MAX_RECENT_DOCUMENTS
    assert recent[0] == "/books/10"
    assert recent[1] == f"/books/{MAX_RECENT_DOCUMENTS + 4}"
    assert "/books/0" not in recent


def test_delete_all(tmp_path):
    store = StateStore(tmp_path / "state.db")
    store.save_progress("doc", ReadingProgress(chapter_idx=0, line=0, scroll_offset=0))
    store.save_bookmarks("doc", [Bookmark(chapter_idx=0, line=0, label="x")])
    store.touch_recent("doc")

    store.delete_all()

    assert store.load_progress("doc") is None
    assert store.load_bookmarks("doc") == []
    assert store.recent_documents() == []


def test_every_connection_is_closed(tmp_path, monkeypatch):
    opened = []
    closed = []

    class TrackingConnection(sqlite3.Connection):
        def close(self):
            closed.append(self)
            super().close()

    real_connect = sqlite3.connect

    def connect(path):
        conn = real_connect(path, factory=TrackingConnection)
        opened.append(conn)
        return conn

    monkeypatch.setattr(sqlite3, "connect", connect)

    store = StateStore(tmp_path / "state.db")
    store.save_progress("doc", ReadingProgress(chapter_idx=1, line=2, scroll_offset=0))
    store.touch_recent("doc")
    assert store.load_progress("doc").chapter_idx == 1

    assert opened
    assert closed == opened
