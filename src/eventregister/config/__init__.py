"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .notification import NotificationConfig, get_notification_config
from .storage import (
    DatabaseConfig,
    StorageConfig,
    StoreBackend,
    get_database_config,
    get_storage_config,
    get_store_backend,
)

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "NotificationConfig",
    "StorageConfig",
    "StoreBackend",
    "configure_logging",
    "get_database_config",
    "get_notification_config",
    "get_storage_config",
    "get_store_backend",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]
