"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, env_log_level
from .errors import ConfigurationError
from .logging import configure_logging
from .persistence import PersistencePolicy, get_persistence_policy
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "PersistencePolicy",
    "StorageConfig",
    "configure_logging",
    "env_flag",
    "env_log_level",
    "get_database_config",
    "get_persistence_policy",
    "get_storage_config",
]
