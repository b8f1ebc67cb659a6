from reef.models.document import Chapter, DeclaredSection, Document, DocumentMetadata
from reef.render.pipeline import CancellationToken, ChapterRenderer, RenderedChapter


def build_document() -> Document:
    return Document(
        metadata=DocumentMetadata(title="Book"),
        chapters=[
            Chapter(title="One", raw_markup='<h1>One</h1><h2 id="a">A</h2><p>alpha</p>'),
            Chapter(
                title="Two",
                raw_markup='<h2 id="b">B</h2><p>beta</p>',
                declared_sections=[DeclaredSection(title="B", anchor_id="b")],
            ),
            Chapter(title="Three", raw_markup="<p>gamma</p>"),
        ],
    )


def test_render_is_pure_until_applied():
    document = build_document()
    chapter = document.chapters[0]
    renderer = ChapterRenderer()

    rendered = renderer.render(chapter, 40, 0)

    assert chapter.content_lines == []
    assert [section.title for section in rendered.sections] == ["A"]

    ChapterRenderer.apply(chapter, rendered)
    assert chapter.content_lines is rendered.lines
    assert chapter.sections[0].start_line == 2


def test_render_document_replaces_every_chapter():
    document = build_document()

    count = ChapterRenderer().render_document(document, 40)

    assert count == 3
    assert all(chapter.is_rendered for chapter in document.chapters)
    assert document.chapters[1].declared_sections == [DeclaredSection(title="B", anchor_id="b")]
    assert document.chapters[1].sections[0].start_line == 0


def test_cancellation_is_checked_between_chapters():
    document = build_document()
    token = CancellationToken()
    seen = []

    def on_chapter(rendered: RenderedChapter) -> None:
        seen.append(rendered.chapter_idx)
        token.cancel()

    count = ChapterRenderer().render_document(document, 40, cancel_token=token, on_chapter=on_chapter)

    assert count == 1
    assert seen == [0]
    assert document.chapters[0].is_rendered
    assert not document.chapters[1].is_rendered
    assert token.cancelled


def test_rerender_replaces_lines_wholesale():
    document = build_document()
    renderer = ChapterRenderer()
    renderer.render_document(document, 40)
    before = document.chapters[0].content_lines

    renderer.render_chapter(document.chapters[0], 3)

    assert document.chapters[0].content_lines is not before
    assert len(document.chapters[0].content_lines) > len(before)
