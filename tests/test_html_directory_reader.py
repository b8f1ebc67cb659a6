from pathlib import Path

import pytest

from reef.errors import DocumentLoadError
from reef.ingest.reader import DocumentReaderConfig, HtmlDirectoryReader, read_document

CHAPTER = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>{title}</title></head>
<body>{body}</body>
</html>
"""

NAV = """<html><body><nav epub:type="toc"><ol>
<li><a href="ch01.xhtml">Opening</a>
  <ol><li><a href="ch01.xhtml#detail">Detail</a></li></ol>
</li>
<li><a href="ch02.xhtml">Closing</a></li>
</ol></nav></body></html>
"""


def write_book(root: Path, with_nav: bool = True) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "ch01.xhtml").write_text(
        CHAPTER.format(title="Sample Book", body='<h1>Opening</h1><h2 id="detail">Detail</h2><p>text</p>'),
        encoding="utf-8",
    )
    (root / "ch02.xhtml").write_text(CHAPTER.format(title="Sample Book", body="<p>end</p>"), encoding="utf-8")
    if with_nav:
        (root / "nav.xhtml").write_text(NAV, encoding="utf-8")
    return root


def test_reads_chapters_titles_and_sections_from_nav(tmp_path):
    book = write_book(tmp_path / "book")

    document = HtmlDirectoryReader().read(book)

    assert [chapter.title for chapter in document.chapters] == ["Opening", "Closing"]
    assert [chapter.source_path for chapter in document.chapters] == ["ch01.xhtml", "ch02.xhtml"]
    assert [(section.title, section.anchor_id) for section in document.chapters[0].declared_sections] == [
        ("Detail", "detail")
    ]
    assert document.metadata.title == "Sample Book"
    assert document.identity == str(book.resolve())
    assert all(not chapter.is_rendered for chapter in document.chapters)


def test_without_nav_titles_fall_back_to_chapter_numbers(tmp_path):
    book = write_book(tmp_path / "plain", with_nav=False)

    document = read_document(book)

    assert [chapter.title for chapter in document.chapters] == ["Chapter 1", "Chapter 2"]
    assert document.chapters[0].declared_sections == []


def test_spine_file_sets_chapter_order(tmp_path):
    book = write_book(tmp_path / "spined")
    (book / "spine.txt").write_text("# reading order\nch02.xhtml\n\nch01.xhtml\nmissing.xhtml\n", encoding="utf-8")

    document = HtmlDirectoryReader().read(book)

    assert [chapter.source_path for chapter in document.chapters] == ["ch02.xhtml", "ch01.xhtml"]
    assert [chapter.title for chapter in document.chapters] == ["Closing", "Opening"]


def test_nested_directories_and_metadata_fallback(tmp_path):
    book = tmp_path / "nested-book"
    (book / "text").mkdir(parents=True)
    (book / "text" / "b.html").write_text("<p>b</p>", encoding="utf-8")
    (book / "text" / "a.html").write_text("<p>a</p>", encoding="utf-8")
    (book / "notes.txt").write_text("ignored", encoding="utf-8")

    document = HtmlDirectoryReader().read(book)

    assert [chapter.source_path for chapter in document.chapters] == ["text/a.html", "text/b.html"]
    assert document.metadata.title == "nested-book"


def test_single_file_is_a_one_chapter_document(tmp_path):
    path = tmp_path / "note.html"
    path.write_text("<p>only</p>", encoding="utf-8")

    document = HtmlDirectoryReader().read(path)

    assert len(document.chapters) == 1
    assert document.metadata.title == "note"


def test_custom_extensions(tmp_path):
    book = tmp_path / "custom"
    book.mkdir()
    (book / "one.htm").write_text("<p>1</p>", encoding="utf-8")
    (book / "two.xhtml").write_text("<p>2</p>", encoding="utf-8")

    document = HtmlDirectoryReader(DocumentReaderConfig(chapter_extensions=(".htm",))).read(book)

    assert [chapter.source_path for chapter in document.chapters] == ["one.htm"]


def test_missing_or_empty_documents_raise(tmp_path):
    with pytest.raises(DocumentLoadError):
        HtmlDirectoryReader().read(tmp_path / "nope")

    (tmp_path / "empty").mkdir()
    with pytest.raises(DocumentLoadError):
        HtmlDirectoryReader().read(tmp_path / "empty")

    other = tmp_path / "book.pdf"
    other.write_bytes(b"%PDF")
    with pytest.raises(DocumentLoadError):
        HtmlDirectoryReader().read(other)
