"""Tests for configuration and logging setup."""

from loguru import logger

from mind_canvas.config import DEFAULT_LAYOUT, LayoutConfig, Settings
from mind_canvas.logging_config import configure_logging


def test_default_layout():
    assert DEFAULT_LAYOUT.column_step == 350
    assert DEFAULT_LAYOUT.half_extent_x == 175
    assert DEFAULT_LAYOUT.half_extent_y == 100
    assert (DEFAULT_LAYOUT.center_x, DEFAULT_LAYOUT.center_y) == (650, 400)


def test_layout_override():
    layout = LayoutConfig(max_siblings=5)
    assert layout.max_siblings == 5
    assert layout.node_width == DEFAULT_LAYOUT.node_width


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("MIND_CANVAS_PROVIDER", "openai")
    monkeypatch.setenv("MIND_CANVAS_USE_DUMMY", "true")
    monkeypatch.setenv("MIND_CANVAS_DB_PATH", "/tmp/canvas-db")
    monkeypatch.delenv("MIND_CANVAS_MODEL", raising=False)

    settings = Settings.from_env()

    assert settings.provider == "openai"
    assert settings.use_dummy is True
    assert settings.db_path == "/tmp/canvas-db"
    assert settings.model is None


def test_settings_overrides_win(monkeypatch):
    monkeypatch.setenv("MIND_CANVAS_PROVIDER", "openai")
    settings = Settings.from_env(provider="huggingface", model=None)
    assert settings.provider == "huggingface"


def test_configure_logging_file_sink(tmp_path):
    log_file = tmp_path / "canvas.log"
    configure_logging("WARNING", file_path=str(log_file))

    logger.info("recorded in the file only")
    logger.complete()

    assert "recorded in the file only" in log_file.read_text()
    configure_logging()
