"""Catalog entries and loaded catalog snapshots."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from shelfsync.domain.inventory.records import InventoryRecord


class EntityKind(StrEnum):
    PRODUCT = "product"
    PACK = "pack"

    @property
    def document_key(self) -> str:
        """Top-level key of the remote document holding entries of this kind."""
        return f"{self.value}s"


@dataclass(eq=False, kw_only=True)
class CatalogEntry:
    """A sellable item: a product or a pack/bundle."""

    id: str | None = None
    name: str
    category: str
    price: float
    discount_percent: float = 0.0
    is_new: bool = False
    on_sale: bool = False
    best_seller: bool = False
    available: bool = True
    images: list[str] = field(default_factory=list)
    description: str = ""
    created_at: datetime | None = None
    modified_at: datetime | None = None

    # attached by the inventory reconciler, never written to the remote document
    inventory: InventoryRecord | None = field(default=None, repr=False)

    @property
    def final_price(self) -> float:
        if not self.on_sale:
            return self.price
        return round(self.price * (1 - self.discount_percent / 100), 2)

    def copy(self) -> CatalogEntry:
        return copy.deepcopy(self)


@dataclass(slots=True)
class CatalogSnapshot:
    """Entries of one entity kind as last read from the remote, with the file sha."""

    entity_kind: EntityKind
    entries: list[CatalogEntry]
    sha: str | None

    def copy(self) -> CatalogSnapshot:
        return CatalogSnapshot(
            entity_kind=self.entity_kind,
            entries=[entry.copy() for entry in self.entries],
            sha=self.sha,
        )

    def find_by_id(self, entity_id: str) -> CatalogEntry | None:
        for entry in self.entries:
            if entry.id == entity_id:
                return entry
        return None
