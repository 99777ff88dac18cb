"""Application wiring and orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from shelfsync.adapters.blobs import FileBlobStore
from shelfsync.adapters.github import GitHubContentsClient
from shelfsync.adapters.inventory import HttpInventoryService
from shelfsync.adapters.sqlalchemy import (
    SqlAlchemyPendingInventoryWrites,
    SqlAlchemyStagingLog,
    create_staging_engine,
)
from shelfsync.config import (
    MissingConfigurationError,
    get_catalog_config,
    get_database_config,
    get_inventory_config,
    get_storage_config,
)
from shelfsync.config.inventory import ReconcilerSettings
from shelfsync.domain.catalog.entry import EntityKind
from shelfsync.domain.errors import NotFoundError
from shelfsync.domain.inventory.reconciler import InventoryReconciler
from shelfsync.domain.staging import StagingStore
from shelfsync.domain.sync_engine import CatalogSyncEngine
from shelfsync.domain.time import utc_now

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from shelfsync.config import CatalogConfig, InventoryConfig, StorageConfig
    from shelfsync.domain.catalog.entry import CatalogEntry, CatalogSnapshot
    from shelfsync.domain.changes import ChangeKind, ImageUpload, StagedChange
    from shelfsync.domain.events import EventChannel, ProgressEvent
    from shelfsync.domain.inventory.records import InventoryPatch
    from shelfsync.domain.ports.catalog import RemoteCatalogClient
    from shelfsync.domain.ports.inventory import InventoryService
    from shelfsync.domain.sync_engine import SyncResult
    from shelfsync.domain.time import Clock

log = getLogger(__name__)


@runtime_checkable
class _Closeable(Protocol):
    async def aclose(self) -> None: ...


@dataclass(slots=True)
class CatalogServices:
    """Everything the CLI needs, built once per process."""

    staging: StagingStore
    engines: dict[EntityKind, CatalogSyncEngine]
    remote: RemoteCatalogClient
    reconciler: InventoryReconciler | None = None
    inventory_service: InventoryService | None = None
    database: Engine | None = None
    _closed: bool = field(default=False, init=False)

    def engine_for(self, entity_kind: EntityKind | str) -> CatalogSyncEngine:
        return self.engines[EntityKind(entity_kind)]

    def require_reconciler(self) -> InventoryReconciler:
        if self.reconciler is None:
            raise MissingConfigurationError(
                "Missing configuration for: INVENTORY_BASE_URL"
            )
        return self.reconciler

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.reconciler is not None:
            await self.reconciler.aclose()
        for resource in (self.remote, self.inventory_service):
            if isinstance(resource, _Closeable):
                await resource.aclose()
        if self.database is not None:
            self.database.dispose()


def _optional_inventory_config() -> InventoryConfig | None:
    try:
        return get_inventory_config()
    except MissingConfigurationError:
        log.info("INVENTORY_BASE_URL not set; inventory reconciliation disabled")
        return None


def build_services(
    *,
    storage: StorageConfig | None = None,
    database_uri: str | None = None,
    catalog_config: CatalogConfig | None = None,
    inventory_config: InventoryConfig | None = None,
    remote: RemoteCatalogClient | None = None,
    inventory_service: InventoryService | None = None,
    settings: ReconcilerSettings | None = None,
    clock: Clock = utc_now,
) -> CatalogServices:
    """Assemble the staging store, one sync engine per entity kind and the reconciler."""

    storage_config = storage or get_storage_config()
    uri = database_uri or get_database_config(storage=storage_config).uri
    database = create_staging_engine(uri)

    staging = StagingStore(
        SqlAlchemyStagingLog(database),
        FileBlobStore(storage_config.blob_dir()),
        clock=clock,
    )
    pending_writes = SqlAlchemyPendingInventoryWrites(database)

    catalog = catalog_config or get_catalog_config()
    effective_remote = remote or GitHubContentsClient(config=catalog)

    if inventory_service is None:
        config = inventory_config or _optional_inventory_config()
        if config is not None:
            inventory_service = HttpInventoryService(config=config)
            settings = settings or config.settings

    reconciler: InventoryReconciler | None = None
    if inventory_service is not None:
        tuning = settings or ReconcilerSettings()
        reconciler = InventoryReconciler(
            inventory_service,
            cache_ttl=tuning.cache_ttl,
            soft_timeout=tuning.soft_timeout,
            retries=tuning.retries,
            backoff_base=tuning.backoff_base,
            batch_size=tuning.batch_size,
        )

    engines = {
        kind: CatalogSyncEngine(
            kind,
            staging=staging,
            remote=effective_remote,
            document_path=catalog.document_path(kind),
            reconciler=reconciler,
            pending_writes=pending_writes,
            image_root=catalog.image_root,
            clock=clock,
        )
        for kind in EntityKind
    }
    return CatalogServices(
        staging=staging,
        engines=engines,
        remote=effective_remote,
        reconciler=reconciler,
        inventory_service=inventory_service,
        database=database,
    )


async def load_catalog(
    services: CatalogServices, entity_kind: EntityKind, *, enrich: bool = False
) -> CatalogSnapshot:
    engine = services.engine_for(entity_kind)
    snapshot = engine.snapshot or await engine.load()
    if enrich and services.reconciler is not None:
        await services.reconciler.enrich(snapshot.entries)
    return snapshot


async def find_entry(
    services: CatalogServices, entity_kind: EntityKind, entity_id: str
) -> CatalogEntry:
    snapshot = await load_catalog(services, entity_kind)
    entry = snapshot.find_by_id(entity_id)
    if entry is None:
        raise NotFoundError(f"No {entity_kind} with id {entity_id!r} in the remote catalog")
    return entry


async def stage_change(
    services: CatalogServices,
    kind: ChangeKind,
    entry: CatalogEntry,
    *,
    entity_kind: EntityKind,
    image: ImageUpload | None = None,
    inventory: InventoryPatch | None = None,
) -> StagedChange:
    snapshot = await load_catalog(services, entity_kind)
    return await services.staging.stage(
        kind,
        entry,
        image,
        entity_kind=entity_kind,
        catalog=snapshot.entries,
        inventory=inventory,
    )


async def sync_catalog(
    services: CatalogServices,
    entity_kind: EntityKind,
    *,
    progress: EventChannel[ProgressEvent] | None = None,
) -> SyncResult:
    """Synchronise staged changes of one entity kind with the remote catalog."""

    log.info("Starting %s sync", entity_kind)
    result = await services.engine_for(entity_kind).sync(progress)
    log.info(
        f"Finished {entity_kind} sync: applied={result.applied}, created={result.created}, "
        f"modified={result.modified}, deleted={result.deleted}, commit={result.commit_id}, "
        f"inventory_failed={len(result.inventory.failed)}"
    )
    return result
