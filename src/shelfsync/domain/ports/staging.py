"""Ports for the durable staging log, the image blob store and pending inventory writes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from shelfsync.domain.changes import StagedChange
    from shelfsync.domain.inventory.records import InventoryPatch


@runtime_checkable
class StagingLog(Protocol):
    """Durable, ordered store of staged change metadata (never image bytes)."""

    def append(self, change: StagedChange) -> None: ...

    def ordered(self) -> list[StagedChange]:
        """Return changes ordered by timestamp, ties broken by insertion order."""
        ...

    def get(self, change_id: str) -> StagedChange | None: ...

    def remove(self, change_id: str) -> bool: ...

    def remove_many(self, change_ids: Iterable[str]) -> int: ...

    def clear(self) -> None: ...


@runtime_checkable
class BlobStore(Protocol):
    """Keyed storage for staged image bytes."""

    async def put(self, key: str, data: bytes) -> None: ...

    async def get(self, key: str) -> bytes | None: ...

    async def delete(self, key: str) -> None: ...

    async def clear(self) -> None: ...


@dataclass(slots=True, frozen=True)
class PendingInventoryWrite:
    """An inventory write that failed after its catalog commit succeeded."""

    entity_id: str
    entity_kind: str
    entity_name: str
    patch: InventoryPatch
    attempts: int = 1
    last_error: str | None = None
    updated_at: datetime | None = None


@runtime_checkable
class PendingInventoryWrites(Protocol):
    """Durable record of inventory writes still owed to the service."""

    def put(self, write: PendingInventoryWrite) -> None: ...

    def items(self, entity_kind: str | None = None) -> list[PendingInventoryWrite]: ...

    def remove(self, entity_id: str) -> None: ...


__all__ = ["BlobStore", "PendingInventoryWrite", "PendingInventoryWrites", "StagingLog"]
