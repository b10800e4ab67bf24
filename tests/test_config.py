"""Tests for configuration loading."""

import os

import pytest
import yaml

from replyline.config import DEFAULT_REPLY_FIELDS, Config, load_config


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    for var in ("REPLYLINE_CONFIG", "REPLYLINE_DB", "REPLYLINE_GATEWAY", "REPLYLINE_API_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)


def test_default_config():
    """Default config has sensible defaults."""
    config = Config()
    assert config.storage.sqlite_path == "replyline.db"
    assert config.gateway.provider == "none"
    assert config.gateway.timeout_seconds == 10.0
    assert config.replies.field_candidates == DEFAULT_REPLY_FIELDS
    assert config.export.default_format == "csv"


def test_load_missing_config_uses_defaults():
    """Loading with no config file returns defaults."""
    config = load_config()
    assert isinstance(config, Config)
    assert config.gateway.endpoint == "/get_email_and_replies"


def test_load_config_from_yaml(tmp_path):
    """Loading from a YAML file merges with defaults."""
    data = {
        "gateway": {"provider": "http", "timeout_seconds": 3},
        "replies": {"field_candidates": ["email", "to"]},
    }
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(yaml.dump(data))

    config = load_config(str(config_file))

    assert config.gateway.provider == "http"
    assert config.gateway.timeout_seconds == 3.0
    assert config.replies.field_candidates == ["email", "to"]
    # Defaults still work
    assert config.storage.sqlite_path == "replyline.db"


def test_explicit_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_config_file_in_current_directory(tmp_path):
    (tmp_path / "config.yaml").write_text("storage:\n  sqlite_path: local.db\n")
    assert load_config().storage.sqlite_path == "local.db"


def test_config_env_var_location(tmp_path, monkeypatch):
    other = tmp_path / "elsewhere.yaml"
    other.write_text("gateway:\n  max_workers: 8\n")
    monkeypatch.setenv("REPLYLINE_CONFIG", str(other))
    assert load_config().gateway.max_workers == 8


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("REPLYLINE_DB", "/tmp/other.db")
    monkeypatch.setenv("REPLYLINE_GATEWAY", "http")
    monkeypatch.setenv("REPLYLINE_API_URL", "http://mail.internal:9000")

    config = load_config()
    assert config.storage.sqlite_path == "/tmp/other.db"
    assert config.gateway.provider == "http"
    assert config.gateway.api_base_url == "http://mail.internal:9000"


def test_dotenv_is_loaded(tmp_path):
    (tmp_path / ".env").write_text('# comment\nREPLYLINE_DB="from-dotenv.db"\n')
    try:
        config = load_config()
    finally:
        os.environ.pop("REPLYLINE_DB", None)
    assert config.storage.sqlite_path == "from-dotenv.db"
