"""Inventory records, payload normalization and reconciliation."""

from __future__ import annotations

from .records import InventoryPatch, InventoryRecord, RecordState

__all__ = ["InventoryPatch", "InventoryRecord", "RecordState"]
