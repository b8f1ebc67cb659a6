from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

MIN_MAX_WIDTH = 40
MAX_MAX_WIDTH = 200
UI_MARGIN_WIDTH = 4
WIDTH_PRESETS = (80, 100, 120)

MIN_TOC_PANEL_WIDTH = 15
MAX_TOC_PANEL_WIDTH = 60
MIN_BOOKMARKS_PANEL_WIDTH = 20
MAX_BOOKMARKS_PANEL_WIDTH = 80

DEFAULT_TERMINAL_WIDTH = 80
DEFAULT_TERMINAL_HEIGHT = 24


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class SearchConfig(BaseModel):
    max_results: int = Field(default=1000, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)


class ReaderConfig(BaseModel):
    """Persisted user preferences for layout and navigation."""

    max_width: Optional[int] = Field(default=None, description="Upper bound on the text column width")
    toc_panel_width: int = 30
    bookmarks_panel_width: int = 35
    margin: int = Field(default=UI_MARGIN_WIDTH, ge=0)
    resize_debounce_ms: int = Field(default=200, ge=0)
    code_style: str = "monokai"
    search: SearchConfig = Field(default_factory=SearchConfig)

    @field_validator("max_width")
    @classmethod
    def _check_max_width(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        if not MIN_MAX_WIDTH <= value <= MAX_MAX_WIDTH:
            raise ValueError(f"max_width must be between {MIN_MAX_WIDTH} and {MAX_MAX_WIDTH}")
        return value

    @field_validator("toc_panel_width", mode="before")
    @classmethod
    def _clamp_toc_panel(cls, value: object) -> int:
        return _clamp(int(value), MIN_TOC_PANEL_WIDTH, MAX_TOC_PANEL_WIDTH)

    @field_validator("bookmarks_panel_width", mode="before")
    @classmethod
    def _clamp_bookmarks_panel(cls, value: object) -> int:
        return _clamp(int(value), MIN_BOOKMARKS_PANEL_WIDTH, MAX_BOOKMARKS_PANEL_WIDTH)


def next_width_preset(current: Optional[int]) -> Optional[int]:
    """Cycle None -> 80 -> 100 -> 120 -> None. Unknown widths reset to None."""

    if current is None:
        return WIDTH_PRESETS[0]
    if current not in WIDTH_PRESETS:
        return None
    position = WIDTH_PRESETS.index(current)
    if position + 1 < len(WIDTH_PRESETS):
        return WIDTH_PRESETS[position + 1]
    return None


__all__ = [
    "DEFAULT_TERMINAL_HEIGHT",
    "DEFAULT_TERMINAL_WIDTH",
    "MAX_MAX_WIDTH",
    "MIN_MAX_WIDTH",
    "ReaderConfig",
    "SearchConfig",
    "UI_MARGIN_WIDTH",
    "WIDTH_PRESETS",
    "next_width_preset",
]
