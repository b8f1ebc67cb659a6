import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from reef.settings import Settings, configure_logging, get_settings


def test_settings_read_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("REEF_STATE_DB", str(tmp_path / "state.db"))
    monkeypatch.setenv("REEF_CONFIG", str(tmp_path / "reader.yaml"))
    monkeypatch.setenv("REEF_LOG_LEVEL", "debug")
    monkeypatch.setenv("REEF_MAX_WIDTH", "100")
    monkeypatch.delenv("REEF_LOG_FILE", raising=False)

    settings = Settings()

    assert settings.state_db_path == tmp_path / "state.db"
    assert settings.config_path == tmp_path / "reader.yaml"
    assert settings.log_level == "DEBUG"
    assert settings.max_width == 100
    assert settings.log_file is None


def test_settings_defaults(monkeypatch):
    for name in ("REEF_STATE_DB", "REEF_CONFIG", "REEF_LOG_LEVEL", "REEF_LOG_FILE", "REEF_MAX_WIDTH"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.state_db_path == Path("~/.config/reef/state.db").expanduser()
    assert settings.config_path is None
    assert settings.log_level == "WARNING"
    assert settings.max_width is None


def test_unknown_log_level_is_rejected(monkeypatch):
    monkeypatch.setenv("REEF_LOG_LEVEL", "chatty")

    with pytest.raises(ValidationError):
        Settings()


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.delenv("REEF_LOG_LEVEL", raising=False)
    get_settings.cache_clear()

    assert get_settings() is get_settings()
    get_settings.cache_clear()


def test_configure_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "reef.log"
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level

    try:
        configure_logging("info", log_file)
        logging.getLogger("reef.test").info("hello from the reader")
        for handler in root.handlers:
            handler.flush()
        assert "hello from the reader" in log_file.read_text(encoding="utf-8")
        assert root.level == logging.INFO
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in previous_handlers:
            root.addHandler(handler)
        root.setLevel(previous_level)
