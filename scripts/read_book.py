from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from reef.config_loader import load_reader_config
from reef.errors import ReefError
from reef.ingest import HtmlDirectoryReader
from reef.models.configs import MAX_MAX_WIDTH, MIN_MAX_WIDTH
from reef.models.document import RenderedLine
from reef.render import ChapterRenderer, LayoutEngine, PygmentsHighlighter
from reef.session import ReaderSession
from reef.settings import configure_logging, get_settings
from reef.storage import StateStore
from reef.tasks import AllChaptersRendered, BackgroundLayout


def parse_args() -> argparse.Namespace:
    if Path(".env").exists():
        load_dotenv(".env", override=False)
    settings = get_settings()
    terminal = shutil.get_terminal_size()
    parser = argparse.ArgumentParser(description="Render an unpacked book directory as wrapped terminal text.")
    parser.add_argument("book", type=Path, help="Book directory (or a single XHTML/HTML file)")
    parser.add_argument("--width", type=int, default=terminal.columns, help="Terminal width in columns")
    parser.add_argument("--height", type=int, default=terminal.lines, help="Terminal height in rows")
    parser.add_argument(
        "--max-width",
        type=int,
        default=settings.max_width,
        help=f"Cap the text column ({MIN_MAX_WIDTH}-{MAX_MAX_WIDTH}); overrides the config file and REEF_MAX_WIDTH",
    )
    parser.add_argument("--chapter", type=int, default=None, help="Only print this chapter (0-based)")
    parser.add_argument("--toc", action="store_true", help="Print the outline instead of the text")
    parser.add_argument("--search", help="Regex to search for; prints every match with its line")
    parser.add_argument("--config", type=Path, default=settings.config_path, help="Reader config (yaml/toml/json)")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (default: REEF_LOG_LEVEL)")
    parser.add_argument("--background", action="store_true", help="Lay chapters out on a worker thread")
    parser.add_argument(
        "--remember",
        action="store_true",
        help=f"Resume from and save reading progress in the state database ({settings.state_db_path})",
    )
    args = parser.parse_args()
    if args.max_width is not None and not MIN_MAX_WIDTH <= args.max_width <= MAX_MAX_WIDTH:
        parser.error(f"--max-width must be between {MIN_MAX_WIDTH} and {MAX_MAX_WIDTH}")
    return args


def format_line(line: RenderedLine) -> str:
    if not line.search_spans:
        return line.text
    parts: List[str] = []
    cursor = 0
    for start, end in sorted(line.search_spans):
        parts.append(line.text[cursor:start])
        parts.append(f"[{line.text[start:end]}]")
        cursor = end
    parts.append(line.text[cursor:])
    return "".join(parts)


async def render_in_background(session: ReaderSession) -> None:
    layout = BackgroundLayout(session.renderer)
    layout.start(session.document, session.text_width(), first_chapter=session.current_chapter)
    while True:
        message = await layout.queue.get()
        session.handle_layout_message(message)
        if isinstance(message, AllChaptersRendered):
            break
    await layout.stop()


def print_outline(session: ReaderSession) -> None:
    for node in session.outline.nodes:
        print(node.title)
        for child in node.children:
            chapter = session.document.chapters[child.chapter_idx]
            start_line = chapter.sections[child.section_idx or 0].start_line
            print(f"  {child.title} (line {start_line})")


def print_search(session: ReaderSession, pattern: str) -> None:
    result = session.search(pattern)
    for match in result.matches:
        chapter = session.document.chapters[match.chapter_idx]
        line = chapter.content_lines[match.line]
        print(f"{match.chapter_idx}:{match.line}:{match.column}: {format_line(line)}")
    summary = f"{len(result)} matches in {result.elapsed:.3f}s"
    if result.limit_reached:
        summary += " (result limit reached)"
    if result.timed_out:
        summary += " (timed out, partial results)"
    print(summary, file=sys.stderr)


def print_chapters(session: ReaderSession, only: int | None) -> None:
    for index, chapter in enumerate(session.document.chapters):
        if only is not None and index != only:
            continue
        print(f"== {chapter.title} ==")
        for line in chapter.content_lines:
            print(format_line(line))
        print()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    configure_logging(args.log_level, settings.log_file)

    config = load_reader_config(args.config)
    document = HtmlDirectoryReader().read(args.book)
    renderer = ChapterRenderer(LayoutEngine(PygmentsHighlighter(config.code_style)))
    store = StateStore(settings.state_db_path) if args.remember else None
    session = ReaderSession(
        document,
        config,
        renderer=renderer,
        store=store,
        terminal_width=args.width,
        terminal_height=args.height,
        max_width_override=args.max_width,
    )
    session.load_state()
    if args.chapter is not None:
        session.go_to(args.chapter, 0)

    if args.background:
        asyncio.run(render_in_background(session))
    else:
        session.rerender()

    if args.toc:
        print_outline(session)
    elif args.search:
        print_search(session, args.search)
    else:
        print_chapters(session, args.chapter)

    session.save_state()


if __name__ == "__main__":
    try:
        main()
    except ReefError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
