from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shelfsync.app import CatalogServices, build_services
from shelfsync.config import StorageConfig
from shelfsync.config.catalog import CatalogConfig, default_github_resilience
from shelfsync.domain.catalog.document import decode_document
from shelfsync.domain.catalog.entry import EntityKind
from shelfsync.ui import cli
from tests.support.fakes import FakeInventoryService, InMemoryRemoteCatalog, make_entry

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

PRODUCTS = "Json/products.json"


def _catalog_config() -> CatalogConfig:
    return CatalogConfig(
        token="token", owner="acme", repository="shop", resilience=default_github_resilience()
    )


def _factory(
    tmp_path: Path,
    remote: InMemoryRemoteCatalog,
    inventory: FakeInventoryService | None = None,
) -> Callable[[], CatalogServices]:
    def factory() -> CatalogServices:
        return build_services(
            storage=StorageConfig(data_dir=tmp_path),
            catalog_config=_catalog_config(),
            remote=remote,
            inventory_service=inventory,
        )

    return factory


def test_stage_list_and_sync_new_entry(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    remote = InMemoryRemoteCatalog()
    inventory = FakeInventoryService()
    factory = _factory(tmp_path, remote, inventory)

    cli.main(
        ["stage", "new", "--name", "Taza", "--category", "Cocina", "--price", "10", "--stock", "3"],
        services_factory=factory,
    )
    cli.main(["staged"], services_factory=factory)
    listing = capsys.readouterr().out

    assert "Taza" in listing
    assert "1 staged (1 new, 0 modified, 0 deleted, 0 with images)" in listing

    cli.main(["sync", "--kind", "product"], services_factory=factory)
    output = capsys.readouterr().out

    entries = decode_document(EntityKind.PRODUCT, remote.files[PRODUCTS])
    assert [entry.name for entry in entries] == ["Taza"]
    assert "product: 1 applied (1 new, 0 modified, 0 deleted)" in output
    assert "[100%]" in output
    assert entries[0].id is not None
    assert inventory.saved[entries[0].id]["stock"] == 3

    cli.main(["staged"], services_factory=factory)
    assert "0 staged" in capsys.readouterr().out


def test_stage_modify_applies_overrides(tmp_path: Path) -> None:
    remote = InMemoryRemoteCatalog()
    remote.seed_catalog(
        PRODUCTS, EntityKind.PRODUCT, [make_entry("Taza", entity_id="prod_1", price=10)]
    )
    factory = _factory(tmp_path, remote)

    cli.main(
        ["stage", "modify", "prod_1", "--price", "12.5", "--on-sale", "--discount", "10"],
        services_factory=factory,
    )
    cli.main(["sync"], services_factory=factory)

    (entry,) = decode_document(EntityKind.PRODUCT, remote.files[PRODUCTS])
    assert entry.name == "Taza"
    assert entry.price == 12.5
    assert entry.on_sale is True
    assert entry.final_price == 11.25


def test_stage_with_image_uploads_asset(tmp_path: Path) -> None:
    remote = InMemoryRemoteCatalog()
    image = tmp_path / "Foto Taza.png"
    image.write_bytes(b"png-bytes")
    factory = _factory(tmp_path / "data", remote)

    cli.main(
        [
            "stage",
            "new",
            "--name",
            "Taza",
            "--category",
            "Cocina",
            "--price",
            "5",
            "--image",
            str(image),
        ],
        services_factory=factory,
    )
    cli.main(["sync", "--kind", "product"], services_factory=factory)

    (entry,) = decode_document(EntityKind.PRODUCT, remote.files[PRODUCTS])
    assert len(entry.images) == 1
    assert remote.files[f"images/products/{entry.images[0]}"] == b"png-bytes"


def test_stage_delete_of_unknown_entry_exits_with_error(tmp_path: Path) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog())

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["stage", "delete", "prod_404"], services_factory=factory)

    assert excinfo.value.code == 1


def test_invalid_entry_exits_with_error(tmp_path: Path) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog())

    with pytest.raises(SystemExit) as excinfo:
        cli.main(
            ["stage", "new", "--name", "Taza", "--category", "Cocina", "--price", "-1"],
            services_factory=factory,
        )

    assert excinfo.value.code == 1


def test_discard_all_empties_staging(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog())
    cli.main(
        ["stage", "new", "--kind", "pack", "--name", "Pack", "--category", "Packs", "--price", "20"],
        services_factory=factory,
    )

    cli.main(["discard", "--all"], services_factory=factory)
    cli.main(["staged"], services_factory=factory)

    assert "0 staged" in capsys.readouterr().out


def test_missing_required_argument_exits_with_usage_error(tmp_path: Path) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog())

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["stage", "new", "--name", "Taza"], services_factory=factory)

    assert excinfo.value.code == 2


def test_inventory_show_prints_records(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    remote = InMemoryRemoteCatalog()
    remote.seed_catalog(PRODUCTS, EntityKind.PRODUCT, [make_entry("Taza", entity_id="prod_1")])
    inventory = FakeInventoryService(records={"prod_1": {"cantidad": 7, "proveedor": "Acme"}})

    cli.main(["inventory", "show"], services_factory=_factory(tmp_path, remote, inventory))

    output = capsys.readouterr().out
    assert "prod_1  Taza  stock=7" in output
    assert "supplier=Acme" in output


def test_inventory_set_requires_a_field(tmp_path: Path) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog(), FakeInventoryService())

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["inventory", "set", "prod_1"], services_factory=factory)

    assert excinfo.value.code == 1


def test_inventory_status_reports_reachable_service(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog(), FakeInventoryService())

    cli.main(["inventory", "status"], services_factory=factory)

    assert capsys.readouterr().out.strip() == "Inventory service is reachable"


def test_inventory_status_fails_when_service_is_down(tmp_path: Path) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog(), FakeInventoryService(available=False))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["inventory", "status"], services_factory=factory)

    assert excinfo.value.code == 1


def test_inventory_commands_need_configuration(tmp_path: Path) -> None:
    factory = _factory(tmp_path, InMemoryRemoteCatalog())

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["inventory", "delete", "prod_1"], services_factory=factory)

    assert excinfo.value.code == 1


def test_catalog_command_filters_entries(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    remote = InMemoryRemoteCatalog()
    remote.seed_catalog(
        PRODUCTS,
        EntityKind.PRODUCT,
        [
            make_entry("Taza roja", entity_id="prod_1", category="Cocina"),
            make_entry(
                "Vela", entity_id="prod_2", category="Hogar", on_sale=True, discount_percent=20
            ),
        ],
    )
    factory = _factory(tmp_path, remote)

    cli.main(["catalog", "--search", "vela"], services_factory=factory)
    cli.main(["catalog", "--categories"], services_factory=factory)

    output = capsys.readouterr().out
    assert "prod_2  Vela  Hogar  8.00 (-20%)" in output
    assert "Taza roja" not in output
    assert output.splitlines()[-2:] == ["Cocina", "Hogar"]
