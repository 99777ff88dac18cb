"""Secondary (privileged) attributes attached to catalog entries in memory."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class RecordState(StrEnum):
    RESOLVED = "resolved"
    PENDING = "pending"
    UNAVAILABLE = "unavailable"


@dataclass(slots=True, frozen=True)
class InventoryRecord:
    """Normalized inventory attributes for one entity.

    ``state`` distinguishes data returned by the service from the placeholders
    published while a fetch is still running or after it gave up.
    """

    entity_id: str
    stock: int | None = None
    cost: float | None = None
    supplier: str | None = None
    notes: str | None = None
    last_updated: str | None = None
    state: RecordState = RecordState.RESOLVED

    @property
    def has_data(self) -> bool:
        return any(
            value is not None for value in (self.stock, self.cost, self.supplier, self.notes)
        )

    @classmethod
    def empty(cls, entity_id: str) -> InventoryRecord:
        return cls(entity_id=entity_id)

    @classmethod
    def pending(cls, entity_id: str) -> InventoryRecord:
        return cls(entity_id=entity_id, state=RecordState.PENDING)

    @classmethod
    def unavailable(cls, entity_id: str) -> InventoryRecord:
        return cls(entity_id=entity_id, state=RecordState.UNAVAILABLE)


@dataclass(slots=True, frozen=True)
class InventoryPatch:
    """Attributes submitted to the inventory service for one entity."""

    stock: int | None = None
    cost: float | None = None
    supplier: str | None = None
    notes: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "stock": self.stock,
            "cost": self.cost,
            "supplier": self.supplier,
            "notes": self.notes,
        }

    def to_record(self, entity_id: str) -> InventoryRecord:
        return InventoryRecord(
            entity_id=entity_id,
            stock=self.stock,
            cost=self.cost,
            supplier=self.supplier,
            notes=self.notes,
        )

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> InventoryPatch:
        stock = payload.get("stock")
        cost = payload.get("cost")
        supplier = payload.get("supplier")
        notes = payload.get("notes")
        return cls(
            stock=int(stock) if isinstance(stock, int | float) else None,
            cost=float(cost) if isinstance(cost, int | float) else None,
            supplier=supplier if isinstance(supplier, str) else None,
            notes=notes if isinstance(notes, str) else None,
        )
