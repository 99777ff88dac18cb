"""Apply staged changes to the remote catalog document.

One engine handles one entity kind (one remote document). A sync applies every
staged change of that kind to a copy of the last loaded snapshot, commits the
result with a compare-and-swap on the document sha, and only then performs the
best-effort follow-ups: replaced image deletion, inventory writes, staging
cleanup, catalog reload and inventory enrichment.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from shelfsync.domain.catalog.document import decode_document, encode_document
from shelfsync.domain.catalog.entry import CatalogSnapshot, EntityKind
from shelfsync.domain.changes import ChangeKind
from shelfsync.domain.errors import (
    CatalogSyncError,
    ConflictError,
    DuplicateEntryError,
    NotFoundError,
)
from shelfsync.domain.events import EventChannel, ProgressEvent
from shelfsync.domain.ports.staging import PendingInventoryWrite
from shelfsync.domain.time import utc_now

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence
    from datetime import datetime

    from shelfsync.domain.catalog.entry import CatalogEntry
    from shelfsync.domain.changes import StagedChange
    from shelfsync.domain.inventory.reconciler import InventoryReconciler
    from shelfsync.domain.inventory.records import InventoryPatch
    from shelfsync.domain.ports.catalog import RemoteCatalogClient
    from shelfsync.domain.ports.staging import PendingInventoryWrites
    from shelfsync.domain.staging import StagingStore
    from shelfsync.domain.time import Clock

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class InventoryWriteFailure:
    entity_id: str
    name: str
    error: str


@dataclass(slots=True, frozen=True)
class InventoryWriteSummary:
    succeeded: tuple[str, ...] = ()
    failed: tuple[InventoryWriteFailure, ...] = ()


@dataclass(slots=True, frozen=True)
class SyncResult:
    entity_kind: EntityKind
    applied: int = 0
    created: int = 0
    modified: int = 0
    deleted: int = 0
    commit_id: str | None = None
    images_uploaded: tuple[str, ...] = ()
    asset_failures: tuple[str, ...] = ()
    inventory: InventoryWriteSummary = field(default_factory=InventoryWriteSummary)
    catalog: CatalogSnapshot | None = None


@dataclass(slots=True)
class SyncRun:
    """Handle on a running sync: iterate ``progress`` for events, await for the result."""

    progress: EventChannel[ProgressEvent]
    task: asyncio.Task[SyncResult]

    def __await__(self) -> Generator[object, None, SyncResult]:
        return asyncio.shield(self.task).__await__()


@dataclass(slots=True)
class _PendingWrite:
    entity_id: str
    name: str
    patch: InventoryPatch
    attempts: int = 0


@dataclass(slots=True)
class _Plan:
    entries: list[CatalogEntry]
    created: int = 0
    modified: int = 0
    deleted: int = 0
    uploaded: list[str] = field(default_factory=list)
    stale_assets: list[str] = field(default_factory=list)
    inventory_writes: dict[str, _PendingWrite] = field(default_factory=dict)
    inventory_deletes: list[str] = field(default_factory=list)


def _truncate_to_millis(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def _next_modified(now: datetime, previous: datetime | None) -> datetime:
    # document timestamps keep millisecond precision
    candidate = _truncate_to_millis(now)
    if previous is not None and candidate <= previous:
        return _truncate_to_millis(previous) + timedelta(milliseconds=1)
    return candidate


def _locate(entries: Sequence[CatalogEntry], change: StagedChange) -> int:
    """Index of the entry a modify/delete targets: by id, then by original name.

    When several entries share the fallback name the first one wins.
    """

    if change.entity_id is not None:
        for index, entry in enumerate(entries):
            if entry.id == change.entity_id:
                return index
    name = change.original_name or change.entity.name
    for index, entry in enumerate(entries):
        if entry.name == name:
            return index
    raise NotFoundError(
        f"No {change.entity_kind} matches id {change.entity_id!r} or name {name!r}"
    )


class CatalogSyncEngine:
    def __init__(
        self,
        entity_kind: EntityKind,
        *,
        staging: StagingStore,
        remote: RemoteCatalogClient,
        document_path: str,
        reconciler: InventoryReconciler | None = None,
        pending_writes: PendingInventoryWrites | None = None,
        image_root: str = "images",
        clock: Clock = utc_now,
    ) -> None:
        self.entity_kind = EntityKind(entity_kind)
        self.document_path = document_path
        self.image_root = image_root.strip("/")
        self._staging = staging
        self._remote = remote
        self._reconciler = reconciler
        self._pending_writes = pending_writes
        self._clock = clock
        self._snapshot: CatalogSnapshot | None = None
        self._inflight: SyncRun | None = None

    @property
    def snapshot(self) -> CatalogSnapshot | None:
        return self._snapshot

    @property
    def syncing(self) -> bool:
        return self._inflight is not None and not self._inflight.task.done()

    def asset_path(self, filename: str) -> str:
        if filename.startswith(f"{self.image_root}/"):
            return filename
        return f"{self.image_root}/{self.entity_kind.document_key}/{filename}"

    async def load(self) -> CatalogSnapshot:
        remote_file = await self._remote.get_file(self.document_path)
        if remote_file is None:
            log.warning("Remote document %s does not exist yet", self.document_path)
            snapshot = CatalogSnapshot(entity_kind=self.entity_kind, entries=[], sha=None)
        else:
            entries = decode_document(self.entity_kind, remote_file.content)
            snapshot = CatalogSnapshot(
                entity_kind=self.entity_kind, entries=entries, sha=remote_file.sha
            )
        self._snapshot = snapshot
        log.info("Loaded %d %s", len(snapshot.entries), self.entity_kind.document_key)
        return snapshot

    def start_sync(self, progress: EventChannel[ProgressEvent] | None = None) -> SyncRun:
        """Start a sync, or join the one already running.

        A joining caller gets the running sync's progress channel; ``progress``
        is ignored in that case.
        """

        if self._inflight is not None and not self._inflight.task.done():
            log.info("Sync already in progress; joining it")
            return self._inflight

        channel = progress if progress is not None else EventChannel[ProgressEvent]()
        task = asyncio.create_task(self._run(channel))
        self._inflight = SyncRun(progress=channel, task=task)
        return self._inflight

    async def sync(self, progress: EventChannel[ProgressEvent] | None = None) -> SyncResult:
        return await self.start_sync(progress)

    async def _run(self, progress: EventChannel[ProgressEvent]) -> SyncResult:
        try:
            return await self._sync(progress)
        finally:
            progress.close()

    async def _sync(self, progress: EventChannel[ProgressEvent]) -> SyncResult:
        changes = list(self._staging.list(self.entity_kind))
        if not changes:
            summary = await self._write_inventory({}, [])
            self._emit(progress, 100, "Nothing to synchronize")
            return SyncResult(entity_kind=self.entity_kind, inventory=summary)

        self._emit(progress, 5, f"Preparing {len(changes)} staged changes")
        base = self._snapshot if self._snapshot is not None else await self.load()
        plan = _Plan(entries=base.copy().entries)

        for index, change in enumerate(changes, start=1):
            await self._apply(plan, change)
            percent = 5 + (45 * index) // len(changes)
            self._emit(progress, percent, f"Applied {change.kind} {change.entity.name!r}")

        content = encode_document(self.entity_kind, plan.entries)
        message = (
            f"Update {self.entity_kind.document_key} - {len(plan.entries)} entries "
            f"({len(changes)} changes)"
        )
        self._emit(progress, 75, f"Committing {self.document_path}")
        try:
            commit = await self._remote.put_file(
                self.document_path, content, expected_sha=base.sha, message=message
            )
        except ConflictError:
            # force a fresh load before the next attempt
            self._snapshot = None
            raise
        log.info(
            "Committed %d changes to %s (%s)", len(changes), self.document_path, commit.commit_id
        )

        # the commit is final: the applied changes leave staging and the cached
        # sha is stale even when a follow-up below fails
        try:
            self._emit(progress, 85, "Removing replaced images")
            asset_failures = await self._delete_assets(plan.stale_assets)
            summary = await self._write_inventory(plan.inventory_writes, plan.inventory_deletes)
        finally:
            self._snapshot = None
            await self._staging.remove_applied(changes)

        self._emit(progress, 95, "Reloading catalog")
        snapshot = await self.load()
        if self._reconciler is not None:
            await self._reconciler.enrich(snapshot.entries)

        self._emit(progress, 100, "Synchronization complete")
        return SyncResult(
            entity_kind=self.entity_kind,
            applied=len(changes),
            created=plan.created,
            modified=plan.modified,
            deleted=plan.deleted,
            commit_id=commit.commit_id,
            images_uploaded=tuple(plan.uploaded),
            asset_failures=tuple(asset_failures),
            inventory=summary,
            catalog=snapshot,
        )

    async def _apply(self, plan: _Plan, change: StagedChange) -> None:
        entries = plan.entries
        if change.image_ref is not None:
            plan.uploaded.append(await self._upload_image(change.image_ref))

        projection = change.entity.copy()
        projection.inventory = None
        now = self._clock()

        match change.kind:
            case ChangeKind.NEW:
                if any(entry.name == projection.name for entry in entries):
                    raise DuplicateEntryError(projection.name)
                projection.created_at = projection.modified_at = _truncate_to_millis(now)
                entries.append(projection)
                plan.created += 1
            case ChangeKind.MODIFY:
                index = _locate(entries, change)
                previous = entries[index]
                projection.created_at = previous.created_at
                projection.modified_at = _next_modified(now, previous.modified_at)
                if change.image_ref is not None:
                    plan.stale_assets.extend(
                        image for image in previous.images if image not in projection.images
                    )
                entries[index] = projection
                plan.modified += 1
            case ChangeKind.DELETE:
                removed = entries.pop(_locate(entries, change))
                plan.stale_assets.extend(removed.images)
                if removed.id is not None:
                    plan.inventory_deletes.append(removed.id)
                    plan.inventory_writes.pop(removed.id, None)
                plan.deleted += 1
                return

        if change.inventory is not None and projection.id is not None:
            plan.inventory_writes[projection.id] = _PendingWrite(
                entity_id=projection.id, name=projection.name, patch=change.inventory
            )

    async def _upload_image(self, image_ref: str) -> str:
        data = await self._staging.read_image(image_ref)
        if data is None:
            raise NotFoundError(f"Staged image {image_ref!r} is missing from the blob store")
        path = self.asset_path(image_ref)
        existing = await self._remote.get_file(path)
        await self._remote.put_file(
            path,
            data,
            expected_sha=existing.sha if existing is not None else None,
            message=f"Upload image {image_ref}",
        )
        log.info("Uploaded %s", path)
        return path

    async def _delete_assets(self, filenames: Sequence[str]) -> list[str]:
        failures: list[str] = []
        for filename in dict.fromkeys(filenames):
            path = self.asset_path(filename)
            try:
                deleted = await self._remote.delete_file(path, message=f"Remove image {filename}")
            except CatalogSyncError as exc:
                log.warning("Could not delete %s: %s", path, exc)
                failures.append(path)
                continue
            if not deleted:
                log.info("%s was already absent", path)
        return failures

    async def _write_inventory(
        self, writes: dict[str, _PendingWrite], deletes: Sequence[str]
    ) -> InventoryWriteSummary:
        if self._reconciler is None:
            if writes:
                log.warning("No inventory service configured; skipping inventory writes")
            return InventoryWriteSummary()

        queued: dict[str, _PendingWrite] = {}
        if self._pending_writes is not None:
            for pending in self._pending_writes.items(self.entity_kind):
                queued[pending.entity_id] = _PendingWrite(
                    entity_id=pending.entity_id,
                    name=pending.entity_name,
                    patch=pending.patch,
                    attempts=pending.attempts,
                )
        for entity_id in deletes:
            queued.pop(entity_id, None)
            if self._pending_writes is not None:
                self._pending_writes.remove(entity_id)
        queued.update(writes)

        succeeded: list[str] = []
        failed: list[InventoryWriteFailure] = []
        for write in queued.values():
            try:
                await self._reconciler.save_one(write.entity_id, write.patch)
            except Exception as exc:  # noqa: BLE001
                log.warning("Inventory write for %s failed: %r", write.entity_id, exc)
                failed.append(
                    InventoryWriteFailure(entity_id=write.entity_id, name=write.name, error=str(exc))
                )
                if self._pending_writes is not None:
                    self._pending_writes.put(
                        PendingInventoryWrite(
                            entity_id=write.entity_id,
                            entity_kind=self.entity_kind,
                            entity_name=write.name,
                            patch=write.patch,
                            attempts=write.attempts + 1,
                            last_error=str(exc),
                            updated_at=self._clock(),
                        )
                    )
                continue
            succeeded.append(write.entity_id)
            if self._pending_writes is not None:
                self._pending_writes.remove(write.entity_id)

        for entity_id in deletes:
            try:
                await self._reconciler.delete_one(entity_id)
            except Exception as exc:  # noqa: BLE001
                log.warning("Inventory delete for %s failed: %r", entity_id, exc)

        return InventoryWriteSummary(succeeded=tuple(succeeded), failed=tuple(failed))

    @staticmethod
    def _emit(progress: EventChannel[ProgressEvent], percent: int, message: str) -> None:
        log.info("[%3d%%] %s", percent, message)
        progress.publish(ProgressEvent(percent=percent, message=message))
