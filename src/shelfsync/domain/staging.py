"""Local staging of catalog edits until the operator synchronizes."""

from __future__ import annotations

import builtins
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from shelfsync.domain.catalog.entry import EntityKind
from shelfsync.domain.catalog.validation import (
    generate_entity_id,
    sanitize_filename,
    validate_entry,
    validate_image,
)
from shelfsync.domain.changes import ChangeKind, StagedChange
from shelfsync.domain.errors import NotFoundError
from shelfsync.domain.time import utc_now

if TYPE_CHECKING:
    import random
    from collections.abc import Iterable, Sequence

    from shelfsync.domain.catalog.entry import CatalogEntry
    from shelfsync.domain.changes import ImageUpload
    from shelfsync.domain.inventory.records import InventoryPatch
    from shelfsync.domain.ports.staging import BlobStore, StagingLog
    from shelfsync.domain.time import Clock

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StagingStats:
    total: int
    new: int
    modify: int
    delete: int
    with_images: int


class StagingStore:
    """Durable holding area for staged changes and their images.

    Metadata goes to the ``StagingLog``; image bytes go to the ``BlobStore``
    keyed by the generated asset filename.
    """

    def __init__(
        self,
        log: StagingLog,
        blobs: BlobStore,
        *,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._log = log
        self._blobs = blobs
        self._clock = clock
        self._rng = rng

    async def stage(
        self,
        kind: ChangeKind,
        entity: CatalogEntry,
        image: ImageUpload | None = None,
        *,
        entity_kind: EntityKind,
        catalog: Iterable[CatalogEntry] = (),
        inventory: InventoryPatch | None = None,
        original_name: str | None = None,
    ) -> StagedChange:
        """Validate ``entity`` and record a staged change for it.

        ``catalog`` is the currently loaded catalog of ``entity_kind``; it is used
        to generate collision-free ids and to find the entry's current name.
        Raises ``ValidationError`` or ``ImageError`` without recording anything.
        """

        kind = ChangeKind(kind)
        entity_kind = EntityKind(entity_kind)
        validate_entry(entity)
        if image is not None:
            validate_image(image.content_type, image.size)

        now = self._clock()
        snapshot = entity.copy()
        snapshot.inventory = None
        catalog_entries = list(catalog)

        if kind is ChangeKind.NEW and not snapshot.id:
            taken = [entry.id for entry in catalog_entries if entry.id]
            taken.extend(
                change.entity_id
                for change in self.list(entity_kind)
                if change.entity_id is not None
            )
            snapshot.id = generate_entity_id(entity_kind, taken, now=now, rng=self._rng)

        if original_name is None:
            original_name = self._current_name(snapshot, catalog_entries)

        image_ref: str | None = None
        if image is not None:
            image_ref = sanitize_filename(
                image.filename,
                now=now,
                fallback=snapshot.name,
                content_type=image.content_type,
            )
            await self._blobs.put(image_ref, image.data)
            snapshot.images = [image_ref]

        change = StagedChange(
            kind=kind,
            entity_kind=entity_kind,
            entity_id=snapshot.id,
            timestamp=now,
            entity=snapshot,
            original_name=original_name,
            image_ref=image_ref,
            inventory=inventory,
        )
        self._log.append(change)
        log.info("Staged %s %s %r (%s)", kind, entity_kind, snapshot.name, change.id)
        return change

    def list(self, entity_kind: EntityKind | None = None) -> Sequence[StagedChange]:
        changes = self._log.ordered()
        if entity_kind is None:
            return changes
        return [change for change in changes if change.entity_kind == entity_kind]

    def get(self, change_id: str) -> StagedChange | None:
        return self._log.get(change_id)

    async def read_image(self, image_ref: str) -> bytes | None:
        return await self._blobs.get(image_ref)

    async def discard(self, change_id: str) -> StagedChange:
        change = self._log.get(change_id)
        if change is None:
            raise NotFoundError(f"No staged change with id {change_id!r}")
        self._log.remove(change_id)
        if change.image_ref is not None:
            await self._blobs.delete(change.image_ref)
        log.info("Discarded staged change %s", change_id)
        return change

    async def discard_all(self) -> None:
        self._log.clear()
        await self._blobs.clear()
        log.info("Discarded all staged changes")

    async def remove_applied(self, changes: Iterable[StagedChange]) -> int:
        applied = list(changes)
        removed = self._log.remove_many(change.id for change in applied)
        for change in applied:
            if change.image_ref is not None:
                await self._blobs.delete(change.image_ref)
        return removed

    async def prune_stale_deletes(
        self, entity_kind: EntityKind, catalog: Iterable[CatalogEntry]
    ) -> builtins.list[StagedChange]:
        """Drop staged deletes whose entity no longer exists in ``catalog``."""

        existing = {entry.id for entry in catalog if entry.id is not None}
        stale = [
            change
            for change in self.list(entity_kind)
            if change.kind is ChangeKind.DELETE
            and change.entity_id is not None
            and change.entity_id not in existing
        ]
        if stale:
            await self.remove_applied(stale)
            log.info("Pruned %d staged deletes already absent from the remote", len(stale))
        return stale

    def stats(self, entity_kind: EntityKind | None = None) -> StagingStats:
        changes = self.list(entity_kind)
        return StagingStats(
            total=len(changes),
            new=sum(1 for change in changes if change.kind is ChangeKind.NEW),
            modify=sum(1 for change in changes if change.kind is ChangeKind.MODIFY),
            delete=sum(1 for change in changes if change.kind is ChangeKind.DELETE),
            with_images=sum(1 for change in changes if change.image_ref is not None),
        )

    @staticmethod
    def _current_name(snapshot: CatalogEntry, catalog: Sequence[CatalogEntry]) -> str:
        if snapshot.id is not None:
            for entry in catalog:
                if entry.id == snapshot.id:
                    return entry.name
        return snapshot.name


__all__ = ["StagingStats", "StagingStore"]
