from .engine import SearchEngine, apply_highlights, clear_highlights, next_match, previous_match

__all__ = ["SearchEngine", "apply_highlights", "clear_highlights", "next_match", "previous_match"]
