"""
Common Utilities

Shared modules used across all services:
- config.py - Settings dataclasses and loader
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- scheduler.py - Fixed-interval loop
"""

from .config import (
    Settings,
    ElasticsearchSettings,
    CacheSettings,
    ServiceSettings,
    DEFAULT_INDEX,
    load_settings,
)
from .exceptions import (
    AgentConfError,
    SettingsError,
    NotReadyError,
    ConfigInvalidError,
    RefreshError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    set_log_level,
    log_refresh_cycle,
)
from .scheduler import ScheduledLoop, LoopPhase

__all__ = [
    # Config
    "Settings",
    "ElasticsearchSettings",
    "CacheSettings",
    "ServiceSettings",
    "DEFAULT_INDEX",
    "load_settings",
    # Exceptions
    "AgentConfError",
    "SettingsError",
    "NotReadyError",
    "ConfigInvalidError",
    "RefreshError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "set_log_level",
    "log_refresh_cycle",
    # Scheduling
    "ScheduledLoop",
    "LoopPhase",
]
