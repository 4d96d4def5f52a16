"""
Configuration Dataclasses

Type-safe settings for the agent config service.
Loaded from a local YAML file with environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import SettingsError
from .logging_setup import get_service_logger

logger = get_service_logger("settings")

# Well-known index holding agent configuration documents
DEFAULT_INDEX = ".apm-agent-configuration"


@dataclass
class ElasticsearchSettings:
    """Upstream document store connection"""
    url: str = "http://localhost:9200"
    index: str = DEFAULT_INDEX
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    verify_tls: bool = True


@dataclass
class CacheSettings:
    """Refresh loop tuning"""
    refresh_interval_s: float = 30.0  # Tick interval and cursor keep-alive
    refresh_timeout_s: float = 5.0  # Deadline for one full pagination pass
    page_size: int = 100
    clear_cursor_timeout_s: float = 5.0


@dataclass
class ServiceSettings:
    """Service runtime configuration"""
    http_host: str = "127.0.0.1"
    http_port: int = 8200
    log_level: str = "INFO"


@dataclass
class Settings:
    """Complete service settings"""
    elasticsearch: ElasticsearchSettings = field(default_factory=ElasticsearchSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    service: ServiceSettings = field(default_factory=ServiceSettings)

    def validate(self) -> None:
        """Raise SettingsError for values the refresh loop cannot run with"""
        if self.cache.refresh_interval_s <= 0:
            raise SettingsError("cache.refresh_interval_s must be positive")
        if self.cache.refresh_timeout_s <= 0:
            raise SettingsError("cache.refresh_timeout_s must be positive")
        if self.cache.clear_cursor_timeout_s <= 0:
            raise SettingsError("cache.clear_cursor_timeout_s must be positive")
        if self.cache.page_size <= 0:
            raise SettingsError("cache.page_size must be positive")
        if not self.elasticsearch.url:
            raise SettingsError("elasticsearch.url is required")


def find_settings_path() -> Path | None:
    """Find settings file"""
    possible_paths = [
        os.environ.get("AGENTCONF_CONFIG"),
        "/etc/agentconf/config.yaml",
        "config.yaml",
    ]

    for path in possible_paths:
        if path and Path(path).exists():
            return Path(path)

    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    """Load raw settings from YAML file"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Settings file not found: {path}")
        return {}
    except yaml.YAMLError as e:
        raise SettingsError(f"cannot parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"{path} must contain a mapping")
    return data


def _number(value: Any, key: str, cast: type) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise SettingsError(f"{key} must be a number, got {value!r}") from e


def load_settings(path: str | Path | None = None) -> Settings:
    """
    Load Settings from YAML file and environment.

    Environment variables win over file values. A missing file is not an
    error; every setting has a default.

    Args:
        path: Explicit settings file; searched for when omitted

    Returns:
        Validated Settings
    """
    settings_path = Path(path) if path else find_settings_path()
    data = _read_yaml(settings_path) if settings_path else {}

    es_data = data.get("elasticsearch") or {}
    cache_data = data.get("cache") or {}
    service_data = data.get("service") or {}

    es = ElasticsearchSettings(
        url=os.environ.get("AGENTCONF_ES_URL") or es_data.get("url", "http://localhost:9200"),
        index=es_data.get("index", DEFAULT_INDEX),
        api_key=os.environ.get("AGENTCONF_ES_API_KEY") or es_data.get("api_key"),
        username=os.environ.get("AGENTCONF_ES_USERNAME") or es_data.get("username"),
        password=os.environ.get("AGENTCONF_ES_PASSWORD") or es_data.get("password"),
        verify_tls=bool(es_data.get("verify_tls", True)),
    )

    cache = CacheSettings(
        refresh_interval_s=_number(
            os.environ.get("AGENTCONF_REFRESH_INTERVAL_S")
            or cache_data.get("refresh_interval_s", 30.0),
            "cache.refresh_interval_s",
            float,
        ),
        refresh_timeout_s=_number(
            cache_data.get("refresh_timeout_s", 5.0), "cache.refresh_timeout_s", float
        ),
        page_size=_number(cache_data.get("page_size", 100), "cache.page_size", int),
        clear_cursor_timeout_s=_number(
            cache_data.get("clear_cursor_timeout_s", 5.0),
            "cache.clear_cursor_timeout_s",
            float,
        ),
    )

    service = ServiceSettings(
        http_host=service_data.get("http_host", "127.0.0.1"),
        http_port=_number(
            os.environ.get("AGENTCONF_HTTP_PORT") or service_data.get("http_port", 8200),
            "service.http_port",
            int,
        ),
        log_level=os.environ.get("AGENTCONF_LOG_LEVEL") or service_data.get("log_level", "INFO"),
    )

    settings = Settings(elasticsearch=es, cache=cache, service=service)
    settings.validate()

    if settings_path:
        logger.info(f"Settings loaded from {settings_path}")
    return settings
