from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx
import pytest

from shelfsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_catalog_config,
    get_database_config,
    get_inventory_config,
    get_storage_config,
    require_env_vars,
)
from shelfsync.config.catalog import warn_on_low_rate_limit
from shelfsync.config.env import env_int, require_env_var
from shelfsync.config.http_resilience import NO_RETRY, READ_ONLY_METHODS
from shelfsync.domain.catalog.entry import EntityKind


def test_require_env_vars_returns_stripped_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")

    assert require_env_vars(["EXAMPLE_VAR"]) == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert str(exc.value) == "Missing configuration for: MISSING_A, MISSING_B"


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_env_int_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INVENTORY_RETRIES", "three")

    with pytest.raises(ConfigurationError):
        env_int("INVENTORY_RETRIES", 2)


def test_catalog_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "token")
    monkeypatch.setenv("CATALOG_REPOSITORY", "acme/shop")
    monkeypatch.setenv("CATALOG_BRANCH", "gh-pages")
    monkeypatch.setenv("CATALOG_IMAGE_ROOT", "/assets/")

    config = get_catalog_config()

    assert (config.owner, config.repository, config.branch) == ("acme", "shop", "gh-pages")
    assert config.image_root == "assets"
    assert config.document_path(EntityKind.PRODUCT) == "Json/products.json"
    assert config.document_path(EntityKind.PACK) == "Json/packs.json"
    assert config.resilience.retry.allowed_methods == READ_ONLY_METHODS


def test_catalog_config_requires_token_and_repository() -> None:
    with pytest.raises(MissingConfigurationError) as exc:
        get_catalog_config()

    assert "CATALOG_REPOSITORY" in str(exc.value)
    assert "GITHUB_TOKEN" in str(exc.value)


def test_catalog_config_rejects_malformed_repository(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "token")
    monkeypatch.setenv("CATALOG_REPOSITORY", "just-a-name")

    with pytest.raises(ConfigurationError):
        get_catalog_config()


def test_inventory_config_reads_tuning(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INVENTORY_BASE_URL", "https://inventory.example.com/")
    monkeypatch.setenv("INVENTORY_SOFT_TIMEOUT_SECONDS", "1.5")
    monkeypatch.setenv("INVENTORY_BATCH_SIZE", "4")

    config = get_inventory_config()

    assert config.base_url == "https://inventory.example.com"
    assert config.settings.soft_timeout == 1.5
    assert config.settings.batch_size == 4
    assert config.settings.retries == 2
    assert config.resilience.retry == NO_RETRY


def test_inventory_config_requires_base_url() -> None:
    with pytest.raises(MissingConfigurationError):
        get_inventory_config()


def test_storage_and_database_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SHELFSYNC_DATA_DIR", str(tmp_path / "data"))

    storage = get_storage_config()

    assert storage.data_dir == tmp_path / "data"
    assert storage.blob_dir().is_dir()
    assert get_database_config(storage=storage).uri == (
        f"sqlite+pysqlite:///{(tmp_path / 'data').resolve() / 'staging.db'}"
    )

    monkeypatch.setenv("STAGING_DATABASE_URI", "sqlite+pysqlite:///:memory:")

    assert get_database_config(storage=storage).uri == "sqlite+pysqlite:///:memory:"


def test_default_data_dir_honours_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path))

    storage = get_storage_config()

    assert storage.data_dir == Path(tmp_path).resolve() / "shelfsync"


def test_low_github_rate_limit_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    low = httpx.Response(200, headers={"X-RateLimit-Remaining": "3", "X-RateLimit-Reset": "99"})
    plenty = httpx.Response(200, headers={"X-RateLimit-Remaining": "4000"})

    with caplog.at_level(logging.WARNING, logger="shelfsync.config.catalog"):
        asyncio.run(warn_on_low_rate_limit(plenty))
        asyncio.run(warn_on_low_rate_limit(low))

    assert len(caplog.records) == 1
    assert "3 requests left" in caplog.records[0].getMessage()
