"""Attach inventory attributes to catalog entries.

Enrichment tries one bulk request first. When that fails it falls back to
per-entity fetches in fixed-size batches, each raced against a soft timeout:
slow fetches publish a ``pending`` placeholder right away and a second update
once the background request settles. Failures never escape ``enrich``; they
become placeholder records instead.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from shelfsync.domain.errors import NetworkError

from .cache import RecordCache
from .normalization import normalize_bulk, normalize_record
from .records import InventoryPatch, InventoryRecord

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from shelfsync.domain.catalog.entry import CatalogEntry
    from shelfsync.domain.events import EventChannel
    from shelfsync.domain.ports.inventory import InventoryService

log = getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 600.0
DEFAULT_SOFT_TIMEOUT_SECONDS = 3.0
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF_BASE_SECONDS = 0.2
DEFAULT_BATCH_SIZE = 10


class UpdatePhase(StrEnum):
    CACHED = "cached"
    BULK = "bulk"
    BATCH = "batch"
    LATE = "late"


@dataclass(slots=True, frozen=True)
class InventoryUpdate:
    phase: UpdatePhase
    records: dict[str, InventoryRecord]

    @property
    def entity_ids(self) -> list[str]:
        return list(self.records)


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class InventoryReconciler:
    def __init__(
        self,
        service: InventoryService,
        *,
        cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        soft_timeout: float = DEFAULT_SOFT_TIMEOUT_SECONDS,
        retries: int = DEFAULT_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.cache = RecordCache(cache_ttl, monotonic=monotonic)
        self.soft_timeout = soft_timeout
        self.retries = max(retries, 0)
        self.backoff_base = backoff_base
        self.batch_size = max(batch_size, 1)
        self._sleep = sleep
        self._background: set[asyncio.Task[InventoryRecord]] = set()

    @property
    def background_count(self) -> int:
        return len(self._background)

    async def enrich(
        self,
        entries: Sequence[CatalogEntry],
        *,
        events: EventChannel[InventoryUpdate] | None = None,
        fetch_all: bool = False,
    ) -> dict[str, InventoryRecord]:
        """Set ``entry.inventory`` on every entry with an id and return the records."""

        by_id: dict[str, list[CatalogEntry]] = {}
        for entry in entries:
            if entry.id is not None:
                by_id.setdefault(entry.id, []).append(entry)

        results: dict[str, InventoryRecord] = {}
        missing: list[str] = []
        for entity_id in by_id:
            cached = self.cache.get(entity_id)
            if cached is None:
                missing.append(entity_id)
            else:
                results[entity_id] = cached
        if results:
            self._apply(by_id, results)
            _publish(events, UpdatePhase.CACHED, results)

        if missing or fetch_all:
            bulk = await self._fetch_bulk(missing, fetch_all=fetch_all)
            if bulk is not None:
                self._apply(by_id, bulk)
                results.update(bulk)
                _publish(events, UpdatePhase.BULK, bulk)
            else:
                for batch in _chunks(missing, self.batch_size):
                    batch_records = await self._fetch_batch(batch, by_id, events)
                    self._apply(by_id, batch_records)
                    results.update(batch_records)
                    _publish(events, UpdatePhase.BATCH, batch_records)

        return results

    async def save_one(self, entity_id: str, patch: InventoryPatch) -> InventoryRecord:
        """Write attributes for one entity and cache the stored result.

        Raises ``NetworkError`` when the service rejects or cannot take the write.
        """

        self.cache.invalidate(entity_id)
        raw = await self.service.save(entity_id, patch.to_payload())
        record = _normalize_or_none(entity_id, raw)
        if record is None or not record.has_data:
            # the write went through; trust what was sent
            record = patch.to_record(entity_id)
        self.cache.put(record)
        log.info("Saved inventory for %s", entity_id)
        return record

    async def delete_one(self, entity_id: str) -> bool:
        self.cache.invalidate(entity_id)
        deleted = await self.service.delete(entity_id)
        log.info("Deleted inventory for %s", entity_id)
        return deleted

    async def drain(self) -> None:
        """Wait until every background fetch started by a soft timeout settles."""

        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()

    async def _fetch_bulk(
        self, entity_ids: Sequence[str], *, fetch_all: bool
    ) -> dict[str, InventoryRecord] | None:
        try:
            raw = await self.service.fetch_bulk(None if fetch_all else list(entity_ids))
        except NetworkError as exc:
            log.warning("Bulk inventory fetch failed, falling back to per-entity fetches: %s", exc)
            return None
        try:
            returned = normalize_bulk(raw)
        except Exception as exc:  # noqa: BLE001
            # unrecognized layout, or a value normalization cannot handle
            log.warning("Unusable bulk inventory payload, using per-entity fetches: %r", exc)
            return None

        records: dict[str, InventoryRecord] = {}
        for entity_id in entity_ids:
            records[entity_id] = returned.get(entity_id) or InventoryRecord.empty(entity_id)
        if fetch_all:
            for entity_id, record in returned.items():
                records.setdefault(entity_id, record)
        for record in records.values():
            self.cache.put(record)
        return records

    async def _fetch_batch(
        self,
        batch: Sequence[str],
        by_id: dict[str, list[CatalogEntry]],
        events: EventChannel[InventoryUpdate] | None,
    ) -> dict[str, InventoryRecord]:
        records = await asyncio.gather(
            *(self._fetch_with_soft_timeout(entity_id, by_id, events) for entity_id in batch)
        )
        return {record.entity_id: record for record in records}

    async def _fetch_with_soft_timeout(
        self,
        entity_id: str,
        by_id: dict[str, list[CatalogEntry]],
        events: EventChannel[InventoryUpdate] | None,
    ) -> InventoryRecord:
        cached = self.cache.get(entity_id)
        if cached is not None:
            return cached

        task = asyncio.create_task(self._fetch_with_retries(entity_id))
        done, _ = await asyncio.wait({task}, timeout=self.soft_timeout)
        if task in done:
            return task.result()

        log.info("Inventory for %s is slow, continuing in the background", entity_id)
        self._background.add(task)
        task.add_done_callback(lambda finished: self._on_late(finished, by_id, events))
        return InventoryRecord.pending(entity_id)

    def _on_late(
        self,
        task: asyncio.Task[InventoryRecord],
        by_id: dict[str, list[CatalogEntry]],
        events: EventChannel[InventoryUpdate] | None,
    ) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Background inventory fetch crashed", exc_info=exc)
            return
        record = task.result()
        self._apply(by_id, {record.entity_id: record})
        _publish(events, UpdatePhase.LATE, {record.entity_id: record})

    async def _fetch_with_retries(self, entity_id: str) -> InventoryRecord:
        for attempt in range(self.retries + 1):
            try:
                raw = await self.service.fetch_one(entity_id)
            except NetworkError as exc:
                if attempt >= self.retries:
                    log.warning("Giving up on inventory for %s: %s", entity_id, exc)
                    break
                delay = self.backoff_base * (2**attempt)
                log.warning(
                    "Inventory fetch for %s failed (%s); retrying in %.2fs", entity_id, exc, delay
                )
                await self._sleep(delay)
                continue
            if raw is None:
                record = InventoryRecord.empty(entity_id)
            else:
                normalized = _normalize_or_none(entity_id, raw)
                if normalized is None:
                    break
                record = normalized
            self.cache.put(record)
            return record

        placeholder = InventoryRecord.unavailable(entity_id)
        self.cache.put(placeholder)
        return placeholder

    @staticmethod
    def _apply(by_id: dict[str, list[CatalogEntry]], records: dict[str, InventoryRecord]) -> None:
        for entity_id, record in records.items():
            for entry in by_id.get(entity_id, ()):
                entry.inventory = record


def _normalize_or_none(entity_id: str, raw: object) -> InventoryRecord | None:
    try:
        return normalize_record(entity_id, raw)
    except Exception as exc:  # noqa: BLE001
        log.warning("Unusable inventory payload for %s: %r", entity_id, exc)
        return None


def _publish(
    events: EventChannel[InventoryUpdate] | None,
    phase: UpdatePhase,
    records: dict[str, InventoryRecord],
) -> None:
    if events is not None:
        events.publish(InventoryUpdate(phase=phase, records=dict(records)))
