"""Tests for configuration loading."""

import pytest

from obsidian_rest.config import ObsidianRestSettings, load_server_configuration
from obsidian_rest.constants import (
    DEFAULT_API_SEARCH_TIMEOUT_MS,
    DEFAULT_BASE_URL,
    DEFAULT_CACHE_REFRESH_INTERVAL_MIN,
)

ENV_NAMES = [
    "OBSIDIAN_BASE_URL",
    "OBSIDIAN_API_KEY",
    "OBSIDIAN_VERIFY_SSL",
    "OBSIDIAN_ENABLE_CACHE",
    "OBSIDIAN_CACHE_REFRESH_INTERVAL_MIN",
    "OBSIDIAN_API_SEARCH_TIMEOUT_MS",
    "MCP_LOG_LEVEL",
    "OBSIDIAN_REST_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        """
obsidian:
  base_url: https://127.0.0.1:27124/
  api_key: from-file
  verify_ssl: true
cache:
  enabled: false
  refresh_interval_min: 5
search:
  api_timeout_ms: 1500
logging:
  level: debug
""",
        encoding="utf-8",
    )
    return path


def test_defaults_without_file(tmp_path):
    config = load_server_configuration(tmp_path / "missing.yaml")

    assert config.base_url == DEFAULT_BASE_URL
    assert config.api_key == ""
    assert config.verify_ssl is False
    assert config.enable_cache is True
    assert config.cache_refresh_interval_min == DEFAULT_CACHE_REFRESH_INTERVAL_MIN
    assert config.api_search_timeout_ms == DEFAULT_API_SEARCH_TIMEOUT_MS
    assert config.log_level == "INFO"


def test_values_from_file(config_file):
    config = load_server_configuration(config_file)

    assert config.base_url == "https://127.0.0.1:27124"
    assert config.api_key == "from-file"
    assert config.verify_ssl is True
    assert config.enable_cache is False
    assert config.cache_refresh_interval_seconds == 300
    assert config.api_search_timeout_seconds == 1.5
    assert config.log_level == "DEBUG"


def test_environment_overrides_file(config_file, monkeypatch):
    monkeypatch.setenv("OBSIDIAN_API_KEY", "from-env")
    monkeypatch.setenv("OBSIDIAN_BASE_URL", "http://localhost:1234")
    monkeypatch.setenv("OBSIDIAN_ENABLE_CACHE", "yes")
    monkeypatch.setenv("OBSIDIAN_CACHE_REFRESH_INTERVAL_MIN", "1")
    monkeypatch.setenv("OBSIDIAN_API_SEARCH_TIMEOUT_MS", "250")
    monkeypatch.setenv("MCP_LOG_LEVEL", "warning")

    config = load_server_configuration(config_file)

    assert config.api_key == "from-env"
    assert config.base_url == "http://localhost:1234"
    assert config.enable_cache is True
    assert config.cache_refresh_interval_min == 1
    assert config.api_search_timeout_ms == 250
    assert config.log_level == "WARNING"
    # Keys absent from the environment keep their file values.
    assert config.verify_ssl is True


def test_empty_environment_value_is_ignored(config_file, monkeypatch):
    monkeypatch.setenv("OBSIDIAN_API_KEY", "")

    assert load_server_configuration(config_file).api_key == "from-file"


def test_config_path_from_environment(config_file, monkeypatch):
    monkeypatch.setenv("OBSIDIAN_REST_CONFIG", str(config_file))

    assert load_server_configuration().api_key == "from-file"


def test_payload_redacts_api_key(config_file):
    payload = load_server_configuration(config_file).as_payload()
    assert "from-file" not in str(payload)
    assert payload["api_key_configured"] is True


def test_settings_model_reads_environment(monkeypatch):
    monkeypatch.setenv("obsidian_verify_ssl", "on")

    settings = ObsidianRestSettings()

    assert settings.obsidian_verify_ssl is True
    assert settings.to_configuration().verify_ssl is True


@pytest.mark.parametrize(
    "name,value",
    [
        ("OBSIDIAN_ENABLE_CACHE", "maybe"),
        ("OBSIDIAN_CACHE_REFRESH_INTERVAL_MIN", "0"),
        ("OBSIDIAN_API_SEARCH_TIMEOUT_MS", "soon"),
        ("OBSIDIAN_BASE_URL", "127.0.0.1:27123"),
        ("MCP_LOG_LEVEL", "LOUD"),
    ],
)
def test_malformed_environment_values_raise(tmp_path, monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError) as excinfo:
        load_server_configuration(tmp_path / "missing.yaml")

    assert name.lower() in str(excinfo.value)


def test_malformed_file_value_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("cache:\n  refresh_interval_min: -3\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_server_configuration(path)


@pytest.mark.parametrize("text", ["- just\n- a list\n", "cache: [1, 2]\n"])
def test_non_mapping_file_raises(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ValueError):
        load_server_configuration(path)
