"""Configuration loading from ``config.yaml`` with environment overrides."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from obsidian_rest.constants import (
    CONFIG_PATH,
    CONFIG_PATH_ENV,
    DEFAULT_API_SEARCH_TIMEOUT_MS,
    DEFAULT_BASE_URL,
    DEFAULT_CACHE_REFRESH_INTERVAL_MIN,
    LOG_LEVEL,
)
from obsidian_rest.data_models import ServerConfiguration

logger = logging.getLogger(__name__)

# YAML (section, key) for each settings field.
_YAML_KEYS = {
    "obsidian_base_url": ("obsidian", "base_url"),
    "obsidian_api_key": ("obsidian", "api_key"),
    "obsidian_verify_ssl": ("obsidian", "verify_ssl"),
    "obsidian_enable_cache": ("cache", "enabled"),
    "obsidian_cache_refresh_interval_min": ("cache", "refresh_interval_min"),
    "obsidian_api_search_timeout_ms": ("search", "api_timeout_ms"),
    "mcp_log_level": ("logging", "level"),
}


class ObsidianRestSettings(BaseSettings):
    """Server settings.

    Field names match the environment variables (case-insensitive). Values from
    ``config.yaml`` arrive as init values, and the environment overrides them.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    obsidian_base_url: str = Field(default=DEFAULT_BASE_URL, description="Local REST API base URL")
    obsidian_api_key: str = Field(default="", description="Local REST API bearer token")
    obsidian_verify_ssl: bool = Field(default=False, description="Verify the plugin's TLS certificate")
    obsidian_enable_cache: bool = Field(default=True, description="Keep the in-memory vault cache")
    obsidian_cache_refresh_interval_min: PositiveInt = Field(
        default=DEFAULT_CACHE_REFRESH_INTERVAL_MIN,
        description="Minutes between full cache rebuilds",
    )
    obsidian_api_search_timeout_ms: PositiveInt = Field(
        default=DEFAULT_API_SEARCH_TIMEOUT_MS,
        description="Timeout for each remote search attempt",
    )
    mcp_log_level: str = Field(default=LOG_LEVEL, description="Root logging level")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win: environment over the YAML file.
        return env_settings, init_settings

    @field_validator("obsidian_base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator("obsidian_api_key")
    @classmethod
    def _strip_api_key(cls, value: str) -> str:
        return value.strip()

    @field_validator("mcp_log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"is not a logging level: {value!r}")
        return level

    def to_configuration(self) -> ServerConfiguration:
        return ServerConfiguration(
            base_url=self.obsidian_base_url,
            api_key=self.obsidian_api_key,
            verify_ssl=self.obsidian_verify_ssl,
            enable_cache=self.obsidian_enable_cache,
            cache_refresh_interval_min=self.obsidian_cache_refresh_interval_min,
            api_search_timeout_ms=self.obsidian_api_search_timeout_ms,
            log_level=self.mcp_log_level,
        )


def _load_yaml_values(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        logger.debug("No configuration file at %s; using defaults and environment", config_path)
        return {}

    raw_config = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    values: dict[str, Any] = {}
    for field_name, (section_name, key) in _YAML_KEYS.items():
        section = raw_config.get(section_name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Configuration section '{section_name}' must be a mapping")
        if section.get(key) is not None:
            values[field_name] = section[key]
    return values


def load_server_configuration(config_path: Optional[Path] = None) -> ServerConfiguration:
    """Load server settings from YAML and apply environment overrides.

    Args:
        config_path: Path to the YAML configuration file. Defaults to the
            ``OBSIDIAN_REST_CONFIG`` environment variable, then ``config.yaml`` at
            the repository root. A missing file is not an error.

    Returns:
        A :class:`ServerConfiguration` with every value validated.

    Raises:
        ValueError: If the file or an environment variable holds a malformed value
            (``pydantic.ValidationError`` is a ``ValueError``).
    """
    if config_path is None:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        config_path = Path(env_path) if env_path else CONFIG_PATH

    settings = ObsidianRestSettings(**_load_yaml_values(config_path))
    return settings.to_configuration()


# Module-level singleton - loaded once at import time
SERVER_CONFIGURATION = load_server_configuration()
