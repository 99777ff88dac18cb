"""Inventory service configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field

from shelfsync.domain.inventory.reconciler import (
    DEFAULT_BACKOFF_BASE_SECONDS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_RETRIES,
    DEFAULT_SOFT_TIMEOUT_SECONDS,
)

from .env import env_float, env_int, require_env_var
from .http_resilience import NO_RETRY, ResilienceConfig

INVENTORY_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class ReconcilerSettings:
    cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS
    soft_timeout: float = DEFAULT_SOFT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    backoff_base: float = DEFAULT_BACKOFF_BASE_SECONDS
    batch_size: int = DEFAULT_BATCH_SIZE


@dataclass(frozen=True)
class InventoryConfig:
    """Holds the inventory service endpoint and reconciliation tuning."""

    base_url: str
    resilience: ResilienceConfig
    settings: ReconcilerSettings = field(default_factory=ReconcilerSettings)


def default_inventory_resilience(
    base_url: str, *, timeout_seconds: float = INVENTORY_TIMEOUT_SECONDS
) -> ResilienceConfig:
    # the reconciler owns retries and backoff for this service
    return ResilienceConfig(
        name="inventory",
        base_url=base_url.rstrip("/"),
        timeout_seconds=timeout_seconds,
        retry=NO_RETRY,
        default_headers={"Accept": "application/json"},
    )


def get_inventory_config(*, resilience: ResilienceConfig | None = None) -> InventoryConfig:
    base_url = require_env_var("INVENTORY_BASE_URL")
    timeout = env_float("INVENTORY_TIMEOUT_SECONDS", INVENTORY_TIMEOUT_SECONDS)
    settings = ReconcilerSettings(
        cache_ttl=env_float("INVENTORY_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
        soft_timeout=env_float("INVENTORY_SOFT_TIMEOUT_SECONDS", DEFAULT_SOFT_TIMEOUT_SECONDS),
        retries=env_int("INVENTORY_RETRIES", DEFAULT_RETRIES),
        backoff_base=env_float("INVENTORY_BACKOFF_SECONDS", DEFAULT_BACKOFF_BASE_SECONDS),
        batch_size=env_int("INVENTORY_BATCH_SIZE", DEFAULT_BATCH_SIZE),
    )
    return InventoryConfig(
        base_url=base_url.rstrip("/"),
        resilience=resilience
        or default_inventory_resilience(base_url, timeout_seconds=timeout),
        settings=settings,
    )
