"""Time-bounded cache of normalized inventory records."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from .records import InventoryRecord


class RecordCache:
    def __init__(self, ttl: float, *, monotonic: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._monotonic = monotonic
        self._entries: dict[str, tuple[float, InventoryRecord]] = {}

    def get(self, entity_id: str) -> InventoryRecord | None:
        cached = self._entries.get(entity_id)
        if cached is None:
            return None
        stored_at, record = cached
        if self._monotonic() - stored_at >= self.ttl:
            del self._entries[entity_id]
            return None
        return record

    def put(self, record: InventoryRecord) -> None:
        self._entries[record.entity_id] = (self._monotonic(), record)

    def invalidate(self, entity_id: str) -> None:
        self._entries.pop(entity_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
