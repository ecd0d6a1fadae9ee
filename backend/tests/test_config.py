"""Tests for YAML configuration loading."""
import pytest
from pydantic import ValidationError

from lostfound.config import AppSettings, get_config, load_config, reset_config


@pytest.fixture(autouse=True)
def clear_cached_config():
    reset_config()
    yield
    reset_config()


def test_defaults_when_files_missing(tmp_path):
    config = load_config(tmp_path / "none.settings.yaml", tmp_path / "none.secrets.yaml")

    assert config.server.port == 8000
    assert config.database.path == "lostfound.duckdb"
    assert config.storage.backend == "local"
    assert config.storage.key_prefix == "Chats"
    assert config.chat.inbox_page_size == 7
    assert config.chat.feed_page_size == 20
    assert config.secrets.aws.access_key_id is None


def test_settings_and_secrets_are_merged(tmp_path):
    settings = tmp_path / "lostfound.settings.yaml"
    settings.write_text(
        "server:\n"
        "  port: 9001\n"
        "database:\n"
        "  path: ':memory:'\n"
        "storage:\n"
        "  backend: s3\n"
        "  bucket: lostfound-media\n"
        "chat:\n"
        "  feed_page_size: 50\n"
        "logging:\n"
        "  level: debug\n"
    )
    secrets = tmp_path / "lostfound.secrets.yaml"
    secrets.write_text(
        "aws:\n"
        "  access_key_id: AKIAEXAMPLE\n"
        "  secret_access_key: shh\n"
        "  region: eu-west-2\n"
    )

    config = load_config(settings, secrets)

    assert config.server.port == 9001
    assert config.database.path == ":memory:"
    assert config.storage.backend == "s3"
    assert config.storage.bucket == "lostfound-media"
    assert config.chat.feed_page_size == 50
    assert config.chat.inbox_page_size == 7
    assert config.logging.level == "debug"
    assert config.secrets.aws.access_key_id == "AKIAEXAMPLE"
    assert config.secrets.aws.region == "eu-west-2"


def test_empty_file_uses_defaults(tmp_path):
    settings = tmp_path / "lostfound.settings.yaml"
    settings.write_text("")
    config = load_config(settings, tmp_path / "missing.yaml")
    assert config.server.host == "0.0.0.0"


def test_rejects_non_positive_page_size():
    with pytest.raises(ValidationError):
        AppSettings(chat={"inbox_page_size": 0})


def test_rejects_unknown_storage_backend():
    with pytest.raises(ValidationError):
        AppSettings(storage={"backend": "ftp"})


def test_get_config_is_cached(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    first = get_config()
    assert get_config() is first

    reset_config()
    assert get_config() is not first
