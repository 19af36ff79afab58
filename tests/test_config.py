"""Tests for config module."""

from pathlib import Path

import pytest

from arc_data.config import Config, get_config, reset_config

ENV_VARS = (
    "ARC_DATA_DIR",
    "ARC_STORE_DB",
    "ARC_INDEX_DB",
    "ARC_INDEX_DEBOUNCE_MS",
    "ARC_CHUNK_SIZE",
    "ARC_REINDEX_PAGE_SIZE",
    "ARC_EXPORT_PAGE_SIZE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


def test_config_defaults():
    """Test config loads with defaults when no env vars set."""
    config = Config.from_env()
    assert config.data_dir == Path.home() / ".arc-data"
    assert config.store_db == Path.home() / ".arc-data" / "store.db"
    assert config.index_db == Path.home() / ".arc-data" / "index.db"
    assert config.index_debounce_ms == 25
    assert config.chunk_size == 200
    assert config.reindex_page_size == 800
    assert config.export_page_size == 1000


def test_config_from_env(monkeypatch):
    """Test config loads from environment variables."""
    monkeypatch.setenv("ARC_DATA_DIR", "/custom/arc")
    monkeypatch.setenv("ARC_INDEX_DB", "/elsewhere/urls.sqlite")
    monkeypatch.setenv("ARC_CHUNK_SIZE", "50")

    config = Config.from_env()
    assert config.data_dir == Path("/custom/arc")
    assert config.store_db == Path("/custom/arc/store.db")
    assert config.index_db == Path("/elsewhere/urls.sqlite")
    assert config.chunk_size == 50


def test_config_tilde_expansion(monkeypatch):
    """Test config expands tilde in paths."""
    monkeypatch.setenv("ARC_DATA_DIR", "~/custom/arc")
    config = Config.from_env()
    assert "~" not in str(config.data_dir)
    assert config.data_dir.is_absolute()
    assert config.store_db.is_absolute()


def test_config_debounce_seconds(monkeypatch):
    monkeypatch.setenv("ARC_INDEX_DEBOUNCE_MS", "250")
    assert Config.from_env().index_debounce == 0.25


def test_config_debounce_can_be_zero(monkeypatch):
    monkeypatch.setenv("ARC_INDEX_DEBOUNCE_MS", "0")
    assert Config.from_env().index_debounce == 0


def test_config_invalid_non_numeric(monkeypatch):
    """Test config raises error for non-numeric values."""
    monkeypatch.setenv("ARC_CHUNK_SIZE", "lots")
    with pytest.raises(ValueError, match="Invalid ARC_CHUNK_SIZE value 'lots'"):
        Config.from_env()


def test_config_invalid_zero_page_size(monkeypatch):
    monkeypatch.setenv("ARC_REINDEX_PAGE_SIZE", "0")
    with pytest.raises(ValueError, match="Value must be >= 1"):
        Config.from_env()


def test_config_invalid_negative_debounce(monkeypatch):
    monkeypatch.setenv("ARC_INDEX_DEBOUNCE_MS", "-5")
    with pytest.raises(ValueError, match="Invalid ARC_INDEX_DEBOUNCE_MS"):
        Config.from_env()


def test_config_from_env_creates_new_instances():
    """Test Config.from_env() creates new instances each time."""
    assert Config.from_env() is not Config.from_env()


def test_get_config_is_cached(monkeypatch):
    config = get_config()
    monkeypatch.setenv("ARC_CHUNK_SIZE", "10")
    assert get_config() is config

    reset_config()
    assert get_config().chunk_size == 10
