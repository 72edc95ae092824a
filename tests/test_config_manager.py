import os

import pytest

from mediahub.exceptions import ConfigurationError
from mediahub.storage.config_manager import CONFIG_FILE_NAME, ConfigManager, get_config_dir


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / CONFIG_FILE_NAME


def test_missing_file_is_created_with_defaults(config_file):
    config = ConfigManager(config_file).load_config()

    assert config_file.is_file()
    assert config.request_timeout == 30.0
    assert config.connection_test_timeout == 15.0
    assert config.config_path == str(config_file.parent)
    assert "cache_default_ttl" in config_file.read_text(encoding="utf-8")


def test_existing_file_is_migrated_with_missing_keys(config_file):
    config_file.write_text("[DEFAULT]\nrequest_timeout = 10\n", encoding="utf-8")

    config = ConfigManager(config_file).load_config()

    assert config.request_timeout == 10.0
    content = config_file.read_text(encoding="utf-8")
    assert "request_timeout = 10" in content
    assert "search_cache_ttl" in content


def test_cli_options_override_file_values(config_file):
    ConfigManager(config_file).save_new_config({"max_concurrent_requests": 4})

    config = ConfigManager(config_file).load_config({"max_concurrent_requests": 2})

    assert config.max_concurrent_requests == 2


@pytest.mark.parametrize(
    "line",
    [
        "request_timeout = soon",
        "request_timeout = -1",
        "max_concurrent_requests = 100",
    ],
)
def test_invalid_values_raise(config_file, line):
    config_file.write_text(f"[DEFAULT]\n{line}\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_unparseable_file_raises(config_file):
    config_file.write_text("this is not ini\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_config_dir_override(monkeypatch, tmp_path):
    monkeypatch.setenv("MEDIAHUB_CONFIG_DIR", str(tmp_path / "custom"))

    assert get_config_dir() == tmp_path / "custom"


@pytest.mark.skipif(os.name == "nt", reason="XDG is not used on Windows")
def test_default_config_dir_uses_xdg(monkeypatch, tmp_path):
    monkeypatch.delenv("MEDIAHUB_CONFIG_DIR", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert get_config_dir() == tmp_path / "mediahub"
