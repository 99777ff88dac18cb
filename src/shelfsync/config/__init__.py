"""Application configuration helpers."""

from __future__ import annotations

from .catalog import CatalogConfig, get_catalog_config
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy
from .inventory import InventoryConfig, ReconcilerSettings, get_inventory_config
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "NO_RETRY",
    "CatalogConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "InventoryConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconcilerSettings",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_catalog_config",
    "get_database_config",
    "get_inventory_config",
    "get_storage_config",
    "require_env_vars",
]
