from __future__ import annotations

import asyncio

import pytest

from shelfsync.domain.catalog.entry import EntityKind
from shelfsync.domain.changes import ChangeKind, ImageUpload
from shelfsync.domain.errors import ImageError, NotFoundError, ValidationError
from shelfsync.domain.inventory.records import InventoryPatch, InventoryRecord
from shelfsync.domain.staging import StagingStore
from tests.support.fakes import InMemoryBlobStore, make_entry

PNG = ImageUpload(filename="Foto Taza.png", content_type="image/png", data=b"\x89PNG")


def test_stage_new_entry_generates_id_and_stores_private_copy(staging: StagingStore) -> None:
    entry = make_entry("Taza")
    entry.inventory = InventoryRecord(entity_id="x", stock=3)

    change = asyncio.run(
        staging.stage(ChangeKind.NEW, entry, entity_kind=EntityKind.PRODUCT)
    )
    entry.name = "Changed after staging"

    assert change.kind is ChangeKind.NEW
    assert change.entity_id is not None
    assert change.entity_id.startswith("prod_")
    assert change.entity.name == "Taza"
    assert change.entity.inventory is None
    assert change.original_name == "Taza"
    assert [staged.id for staged in staging.list()] == [change.id]


def test_stage_new_pack_id_avoids_catalog_and_staged_ids(staging: StagingStore) -> None:
    catalog = [make_entry("Pack A", entity_id="4")]

    async def scenario() -> tuple[str | None, str | None]:
        first = await staging.stage(
            "new", make_entry("Pack B"), entity_kind="pack", catalog=catalog
        )
        second = await staging.stage(
            "new", make_entry("Pack C"), entity_kind="pack", catalog=catalog
        )
        return first.entity_id, second.entity_id

    assert asyncio.run(scenario()) == ("5", "6")


def test_stage_rejects_invalid_entry_without_recording(staging: StagingStore) -> None:
    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(
            staging.stage(
                ChangeKind.NEW, make_entry("", price=-5), entity_kind=EntityKind.PRODUCT
            )
        )

    assert len(excinfo.value.violations) == 2
    assert staging.list() == []


def test_stage_rejects_unsupported_image(
    staging: StagingStore, blobs: InMemoryBlobStore
) -> None:
    image = ImageUpload(filename="doc.pdf", content_type="application/pdf", data=b"%PDF")

    with pytest.raises(ImageError):
        asyncio.run(
            staging.stage(ChangeKind.NEW, make_entry(), image, entity_kind=EntityKind.PRODUCT)
        )

    assert staging.list() == []
    assert blobs.blobs == {}


def test_stage_with_image_stores_blob_under_sanitized_name(
    staging: StagingStore, blobs: InMemoryBlobStore
) -> None:
    change = asyncio.run(
        staging.stage(ChangeKind.NEW, make_entry(), PNG, entity_kind=EntityKind.PRODUCT)
    )

    assert change.image_ref is not None
    assert change.image_ref.startswith("foto-taza_")
    assert change.image_ref.endswith(".png")
    assert change.entity.images == [change.image_ref]
    assert blobs.blobs[change.image_ref] == PNG.data
    assert asyncio.run(staging.read_image(change.image_ref)) == PNG.data


def test_stage_modify_records_current_remote_name(staging: StagingStore) -> None:
    catalog = [make_entry("Taza vieja", entity_id="prod_1")]
    renamed = make_entry("Taza nueva", entity_id="prod_1")

    change = asyncio.run(
        staging.stage(
            ChangeKind.MODIFY,
            renamed,
            entity_kind=EntityKind.PRODUCT,
            catalog=catalog,
            inventory=InventoryPatch(stock=4),
        )
    )

    assert change.original_name == "Taza vieja"
    assert change.inventory == InventoryPatch(stock=4)


def test_list_is_ordered_by_timestamp_and_filters_by_kind(staging: StagingStore) -> None:
    async def scenario() -> None:
        await staging.stage(ChangeKind.NEW, make_entry("A"), entity_kind=EntityKind.PRODUCT)
        await staging.stage(ChangeKind.NEW, make_entry("B"), entity_kind=EntityKind.PACK)
        await staging.stage(ChangeKind.NEW, make_entry("C"), entity_kind=EntityKind.PRODUCT)

    asyncio.run(scenario())

    assert [change.entity.name for change in staging.list()] == ["A", "B", "C"]
    assert [change.entity.name for change in staging.list(EntityKind.PRODUCT)] == ["A", "C"]


def test_discard_removes_change_and_its_blob(
    staging: StagingStore, blobs: InMemoryBlobStore
) -> None:
    change = asyncio.run(
        staging.stage(ChangeKind.NEW, make_entry(), PNG, entity_kind=EntityKind.PRODUCT)
    )

    discarded = asyncio.run(staging.discard(change.id))

    assert discarded.id == change.id
    assert staging.list() == []
    assert blobs.blobs == {}


def test_discard_unknown_change_raises(staging: StagingStore) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(staging.discard("missing"))


def test_discard_all_clears_log_and_blobs(
    staging: StagingStore, blobs: InMemoryBlobStore
) -> None:
    async def scenario() -> None:
        await staging.stage(ChangeKind.NEW, make_entry("A"), PNG, entity_kind=EntityKind.PRODUCT)
        await staging.stage(ChangeKind.NEW, make_entry("B"), entity_kind=EntityKind.PACK)
        await staging.discard_all()

    asyncio.run(scenario())

    assert staging.list() == []
    assert blobs.blobs == {}


def test_stats_counts_by_kind(staging: StagingStore) -> None:
    catalog = [make_entry("Old", entity_id="prod_1")]

    async def scenario() -> None:
        await staging.stage(ChangeKind.NEW, make_entry("A"), PNG, entity_kind=EntityKind.PRODUCT)
        await staging.stage(
            ChangeKind.MODIFY, catalog[0], entity_kind=EntityKind.PRODUCT, catalog=catalog
        )
        await staging.stage(
            ChangeKind.DELETE, catalog[0], entity_kind=EntityKind.PRODUCT, catalog=catalog
        )

    asyncio.run(scenario())
    stats = staging.stats()

    assert (stats.total, stats.new, stats.modify, stats.delete, stats.with_images) == (
        3,
        1,
        1,
        1,
        1,
    )


def test_prune_stale_deletes_drops_only_missing_entities(staging: StagingStore) -> None:
    present = make_entry("Present", entity_id="prod_1")
    gone = make_entry("Gone", entity_id="prod_2")

    async def scenario() -> list[str]:
        await staging.stage(
            ChangeKind.DELETE, present, entity_kind=EntityKind.PRODUCT, catalog=[present, gone]
        )
        await staging.stage(
            ChangeKind.DELETE, gone, entity_kind=EntityKind.PRODUCT, catalog=[present, gone]
        )
        pruned = await staging.prune_stale_deletes(EntityKind.PRODUCT, [present])
        return [change.entity_id or "" for change in pruned]

    assert asyncio.run(scenario()) == ["prod_2"]
    assert [change.entity_id for change in staging.list()] == ["prod_1"]
