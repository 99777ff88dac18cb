"""Staged change records held in the local log until synchronization."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import uuid4

if TYPE_CHECKING:
    from datetime import datetime

    from shelfsync.domain.catalog.entry import CatalogEntry, EntityKind
    from shelfsync.domain.inventory.records import InventoryPatch


class ChangeKind(StrEnum):
    NEW = "new"
    MODIFY = "modify"
    DELETE = "delete"


def new_change_id() -> str:
    return str(uuid4())


@dataclass(slots=True, frozen=True, kw_only=True)
class StagedChange:
    """One pending edit. ``entity`` is a private copy taken at staging time."""

    kind: ChangeKind
    entity_kind: EntityKind
    entity_id: str | None
    timestamp: datetime
    entity: CatalogEntry
    original_name: str | None = None
    image_ref: str | None = None
    inventory: InventoryPatch | None = None
    id: str = field(default_factory=new_change_id)


@dataclass(slots=True, frozen=True)
class ImageUpload:
    """An image supplied alongside a staged edit."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
