from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shelfsync.adapters.sqlalchemy import create_staging_engine
from shelfsync.domain.staging import StagingStore
from tests.support.fakes import (
    FakeClock,
    FakeInventoryService,
    InMemoryBlobStore,
    InMemoryPendingWrites,
    InMemoryRemoteCatalog,
    InMemoryStagingLog,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "GITHUB_TOKEN",
        "CATALOG_REPOSITORY",
        "INVENTORY_BASE_URL",
        "SHELFSYNC_DATA_DIR",
        "STAGING_DATABASE_URI",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_staging_engine("sqlite+pysqlite:///:memory:")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def staging(clock: FakeClock, blobs: InMemoryBlobStore) -> StagingStore:
    return StagingStore(InMemoryStagingLog(), blobs, clock=clock)


@pytest.fixture
def remote() -> InMemoryRemoteCatalog:
    return InMemoryRemoteCatalog()


@pytest.fixture
def inventory_service() -> FakeInventoryService:
    return FakeInventoryService()


@pytest.fixture
def pending_writes() -> InMemoryPendingWrites:
    return InMemoryPendingWrites()
