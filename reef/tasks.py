"""Background layout of whole documents and resize coalescing on asyncio."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from reef.models.document import Document
from reef.render.pipeline import CancellationToken, ChapterRenderer, RenderedChapter

logger = logging.getLogger(__name__)

TerminalSize = Tuple[int, int]


@dataclass(slots=True)
class ChapterRendered:
    """One chapter has been laid out and swapped into the document."""

    rendered: RenderedChapter
    width: int

    @property
    def chapter_idx(self) -> int:
        return self.rendered.chapter_idx


@dataclass(slots=True)
class AllChaptersRendered:
    width: int
    chapter_count: int
    cancelled: bool = False


LayoutMessage = Union[ChapterRendered, AllChaptersRendered]


def _chapter_order(chapter_count: int, first_chapter: int) -> List[int]:
    if not 0 <= first_chapter < chapter_count:
        first_chapter = 0
    return [first_chapter] + [index for index in range(chapter_count) if index != first_chapter]


async def render_document_async(
    document: Document,
    renderer: ChapterRenderer,
    width: int,
    queue: "asyncio.Queue[LayoutMessage]",
    cancel_token: Optional[CancellationToken] = None,
    *,
    first_chapter: int = 0,
) -> int:
    """Lay out ``document`` chapter by chapter off the event loop.

    ``first_chapter`` goes first so it can be shown while the rest are still
    being computed. The token is checked before every chapter; a chapter whose
    layout already started is still applied as a whole on the loop thread and
    announced on ``queue``.
    Returns the number of chapters that were replaced.
    """

    token = cancel_token or CancellationToken()
    rendered_count = 0
    for chapter_idx in _chapter_order(len(document.chapters), first_chapter):
        if token.cancelled:
            break
        chapter = document.chapters[chapter_idx]
        rendered = await asyncio.to_thread(renderer.render, chapter, width, chapter_idx)
        ChapterRenderer.apply(chapter, rendered)
        rendered_count += 1
        await queue.put(ChapterRendered(rendered=rendered, width=width))

    cancelled = rendered_count < len(document.chapters)
    if cancelled:
        logger.info("Background layout cancelled after %d of %d chapters", rendered_count, len(document.chapters))
    else:
        logger.debug("Background layout finished: %d chapters at width %d", rendered_count, width)
    await queue.put(AllChaptersRendered(width=width, chapter_count=rendered_count, cancelled=cancelled))
    return rendered_count


async def debounce_resizes(
    resizes: "asyncio.Queue[Optional[TerminalSize]]",
    out: "asyncio.Queue[TerminalSize]",
    delay_ms: int = 200,
) -> None:
    """Forward only the last size of each burst once ``delay_ms`` pass without a new one.

    A ``None`` on ``resizes`` stops the loop after flushing a pending size.
    """

    delay = max(delay_ms, 0) / 1000
    pending: Optional[TerminalSize] = None
    while True:
        try:
            if pending is None:
                size = await resizes.get()
            else:
                size = await asyncio.wait_for(resizes.get(), timeout=delay)
        except asyncio.TimeoutError:
            logger.debug("Resize settled at %sx%s", *pending)
            await out.put(pending)
            pending = None
            continue

        if size is None:
            if pending is not None:
                await out.put(pending)
            return
        pending = size


class BackgroundLayout:
    """Owns at most one layout pass per document; starting a new pass cancels the old one."""

    def __init__(self, renderer: Optional[ChapterRenderer] = None) -> None:
        self.renderer = renderer or ChapterRenderer()
        self.queue: asyncio.Queue[LayoutMessage] = asyncio.Queue()
        self._task: asyncio.Task[int] | None = None
        self._token: CancellationToken | None = None

    # ------------------------------------------------------------------ public API
    def start(self, document: Document, width: int, first_chapter: int = 0) -> CancellationToken:
        self.cancel()
        token = CancellationToken()
        self._token = token
        self._task = asyncio.create_task(
            render_document_async(document, self.renderer, width, self.queue, token, first_chapter=first_chapter)
        )
        return token

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def wait(self) -> int:
        if self._task is None:
            return 0
        return await self._task

    async def stop(self) -> None:
        self.cancel()
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


__all__ = [
    "AllChaptersRendered",
    "BackgroundLayout",
    "ChapterRendered",
    "LayoutMessage",
    "TerminalSize",
    "debounce_resizes",
    "render_document_async",
]
