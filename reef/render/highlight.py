from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

from pygments.lexers import get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)

Fragment = Tuple[str, Optional[str]]

KNOWN_LANGUAGES = frozenset(
    {
        "rust",
        "python",
        "javascript",
        "typescript",
        "java",
        "c",
        "cpp",
        "go",
        "ruby",
        "php",
        "swift",
        "kotlin",
        "scala",
        "haskell",
        "elixir",
        "erlang",
        "clojure",
        "bash",
        "sh",
        "shell",
        "sql",
        "html",
        "css",
        "json",
        "xml",
        "yaml",
        "markdown",
        "md",
        "toml",
    }
)


def detect_language(classes: Iterable[str]) -> Optional[str]:
    """Pull a language hint out of a code element's class list."""

    tokens = [token for token in classes if token]
    for index, token in enumerate(tokens):
        if token.startswith("language-") and len(token) > len("language-"):
            return token[len("language-"):]
        if token.startswith("highlight-") and len(token) > len("highlight-"):
            return token[len("highlight-"):]
        if token == "sourceCode":
            if index + 1 < len(tokens):
                return tokens[index + 1]
            continue
        if token in KNOWN_LANGUAGES:
            return token
    return None


class Highlighter(ABC):
    """Turns a code block into ``(text_fragment, color)`` pairs.

    Concatenating the fragments must reproduce the input exactly; colors are
    opaque strings handed through to the painter, ``None`` meaning default.
    """

    @abstractmethod
    def highlight(self, code: str, language: Optional[str]) -> List[Fragment]:
        """Split ``code`` into colored fragments."""


class PlainHighlighter(Highlighter):
    def highlight(self, code: str, language: Optional[str]) -> List[Fragment]:
        return [(code, None)]


class PygmentsHighlighter(Highlighter):
    """Pygments-backed highlighter; unknown languages come back uncolored."""

    def __init__(self, style_name: str = "monokai") -> None:
        try:
            self._style = get_style_by_name(style_name)
        except ClassNotFound:
            logger.warning("Unknown pygments style '%s', falling back to 'default'", style_name)
            self._style = get_style_by_name("default")
        self.style_name = style_name

    def highlight(self, code: str, language: Optional[str]) -> List[Fragment]:
        if not language:
            return [(code, None)]
        try:
            lexer = get_lexer_by_name(language, stripnl=False, ensurenl=False)
        except ClassNotFound:
            logger.debug("No lexer for language hint '%s'", language)
            return [(code, None)]

        fragments: List[Fragment] = []
        for token_type, value in lexer.get_tokens(code):
            if not value:
                continue
            color = self._style.style_for_token(token_type).get("color")
            fragments.append((value, f"#{color}" if color else None))
        return fragments


__all__ = [
    "Fragment",
    "Highlighter",
    "KNOWN_LANGUAGES",
    "PlainHighlighter",
    "PygmentsHighlighter",
    "detect_language",
]
