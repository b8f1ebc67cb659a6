from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv(override=False)


DEFAULT_STATE_DB = Path("~/.config/reef/state.db")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


class Settings(BaseModel):
    """Runtime configuration taken from the environment (and a local .env file)."""

    state_db_path: Path = Field(
        default_factory=lambda: Path(os.getenv("REEF_STATE_DB", str(DEFAULT_STATE_DB))).expanduser()
    )
    config_path: Path | None = Field(
        default_factory=lambda: Path(os.environ["REEF_CONFIG"]).expanduser() if os.getenv("REEF_CONFIG") else None
    )
    log_level: str = Field(default_factory=lambda: os.getenv("REEF_LOG_LEVEL", "WARNING"))
    log_file: Path | None = Field(
        default_factory=lambda: Path(os.environ["REEF_LOG_FILE"]) if os.getenv("REEF_LOG_FILE") else None
    )
    max_width: int | None = Field(default_factory=lambda: _optional_int("REEF_MAX_WIDTH"))

    model_config = {
        "frozen": True,
        "validate_default": True,
    }

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()


def configure_logging(level: str = "WARNING", log_file: Path | None = None) -> None:
    """Install one handler on the root logger. Entry points call this, library code never does."""

    handler: logging.Handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())


__all__ = ["Settings", "configure_logging", "get_settings"]
