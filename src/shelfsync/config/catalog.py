"""Remote catalog (GitHub contents API) configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger

import httpx

from .env import env_float, env_str, require_env_vars
from .errors import ConfigurationError
from .http_resilience import READ_ONLY_METHODS, RateLimit, ResilienceConfig, RetryPolicy

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_TIMEOUT_SECONDS = 15.0

DEFAULT_BRANCH = "main"
DEFAULT_PRODUCTS_PATH = "Json/products.json"
DEFAULT_PACKS_PATH = "Json/packs.json"
DEFAULT_IMAGE_ROOT = "images"

log = getLogger(__name__)


@dataclass(frozen=True)
class CatalogConfig:
    """Holds the repository coordinates of the catalog documents."""

    token: str
    owner: str
    repository: str
    resilience: ResilienceConfig
    branch: str = DEFAULT_BRANCH
    products_path: str = DEFAULT_PRODUCTS_PATH
    packs_path: str = DEFAULT_PACKS_PATH
    image_root: str = DEFAULT_IMAGE_ROOT

    def document_path(self, entity_kind: str) -> str:
        if entity_kind == "product":
            return self.products_path
        if entity_kind == "pack":
            return self.packs_path
        raise ConfigurationError(f"No catalog document configured for {entity_kind!r}")


RATE_LIMIT_WARNING_THRESHOLD = 50


async def warn_on_low_rate_limit(response: httpx.Response) -> None:
    remaining = response.headers.get("X-RateLimit-Remaining", "")
    if remaining.isdigit() and int(remaining) < RATE_LIMIT_WARNING_THRESHOLD:
        log.warning(
            "GitHub API rate limit nearly exhausted: %s requests left (resets at %s)",
            remaining,
            response.headers.get("X-RateLimit-Reset", "unknown"),
        )


def default_github_resilience(*, timeout_seconds: float = GITHUB_TIMEOUT_SECONDS) -> ResilienceConfig:
    # writes are compare-and-swap, so only reads are retried
    return ResilienceConfig(
        name="github",
        base_url=GITHUB_API_BASE_URL,
        timeout_seconds=timeout_seconds,
        retry=RetryPolicy(total=2, backoff_factor=0.2, allowed_methods=READ_ONLY_METHODS),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        response_hooks=(warn_on_low_rate_limit,),
    )


def _split_repository(value: str) -> tuple[str, str]:
    owner, sep, repository = value.partition("/")
    if not sep or not owner or not repository or "/" in repository:
        raise ConfigurationError(f"CATALOG_REPOSITORY must look like 'owner/repo', got {value!r}")
    return owner, repository


def get_catalog_config(*, resilience: ResilienceConfig | None = None) -> CatalogConfig:
    values = require_env_vars(("GITHUB_TOKEN", "CATALOG_REPOSITORY"))
    owner, repository = _split_repository(values["CATALOG_REPOSITORY"])
    timeout = env_float("CATALOG_TIMEOUT_SECONDS", GITHUB_TIMEOUT_SECONDS)
    return CatalogConfig(
        token=values["GITHUB_TOKEN"],
        owner=owner,
        repository=repository,
        resilience=resilience or default_github_resilience(timeout_seconds=timeout),
        branch=env_str("CATALOG_BRANCH", DEFAULT_BRANCH),
        products_path=env_str("CATALOG_PRODUCTS_PATH", DEFAULT_PRODUCTS_PATH),
        packs_path=env_str("CATALOG_PACKS_PATH", DEFAULT_PACKS_PATH),
        image_root=env_str("CATALOG_IMAGE_ROOT", DEFAULT_IMAGE_ROOT).strip("/"),
    )
