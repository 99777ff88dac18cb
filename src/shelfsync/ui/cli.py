# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from shelfsync.app import (
    CatalogServices,
    build_services,
    find_entry,
    load_catalog,
    stage_change,
    sync_catalog,
)
from shelfsync.config import configure_logging
from shelfsync.domain.catalog.entry import CatalogEntry, EntityKind
from shelfsync.domain.catalog.queries import filter_by_category, list_categories, search_entries
from shelfsync.domain.changes import ChangeKind, ImageUpload
from shelfsync.domain.errors import NetworkError
from shelfsync.domain.events import EventChannel, ProgressEvent
from shelfsync.domain.inventory.records import InventoryPatch

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from shelfsync.domain.sync_engine import SyncResult

log = logging.getLogger(__name__)


def _add_entry_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--name", required=required, help="Display name")
    parser.add_argument("--category", required=required, help="Category label")
    parser.add_argument("--price", type=float, required=required, help="Base price")
    parser.add_argument("--discount", type=float, help="Discount percent (0-100)")
    parser.add_argument("--description", help="Description (max 500 characters)")
    parser.add_argument(
        "--on-sale", action=argparse.BooleanOptionalAction, default=None, help="Apply discount"
    )
    parser.add_argument(
        "--new", dest="is_new", action=argparse.BooleanOptionalAction, default=None
    )
    parser.add_argument("--best-seller", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--available", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--image", type=Path, help="Image file to upload with the change")
    _add_inventory_fields(parser)


def _add_inventory_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--stock", type=int, help="Units in stock")
    parser.add_argument("--cost", type=float, help="Purchase cost")
    parser.add_argument("--supplier", help="Supplier name")
    parser.add_argument("--notes", help="Free-form notes")


def _add_kind(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--kind",
        choices=[kind.value for kind in EntityKind],
        default=EntityKind.PRODUCT.value,
        help="Entity kind (default: %(default)s)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stage and synchronise catalog edits")
    subparsers = parser.add_subparsers(dest="command", required=True)

    stage = subparsers.add_parser("stage", help="Stage a catalog change")
    stage_sub = stage.add_subparsers(dest="change_kind", required=True)

    stage_new = stage_sub.add_parser("new", help="Stage a new entry")
    _add_kind(stage_new)
    stage_new.add_argument("--id", help="Explicit id (generated when omitted)")
    _add_entry_fields(stage_new, required=True)

    stage_modify = stage_sub.add_parser("modify", help="Stage changes to an existing entry")
    _add_kind(stage_modify)
    stage_modify.add_argument("id", help="Id of the entry to modify")
    _add_entry_fields(stage_modify, required=False)

    stage_delete = stage_sub.add_parser("delete", help="Stage removal of an entry")
    _add_kind(stage_delete)
    stage_delete.add_argument("id", help="Id of the entry to delete")

    catalog = subparsers.add_parser("catalog", help="List entries of the remote catalog")
    _add_kind(catalog)
    catalog.add_argument("--search", help="Case-insensitive text to look for")
    catalog.add_argument("--category", help="Only entries of this category")
    catalog.add_argument(
        "--categories", action="store_true", help="List the categories instead of entries"
    )

    staged = subparsers.add_parser("staged", help="List staged changes")
    staged.add_argument("--kind", choices=[kind.value for kind in EntityKind])

    discard = subparsers.add_parser("discard", help="Discard staged changes")
    discard_target = discard.add_mutually_exclusive_group(required=True)
    discard_target.add_argument("change_id", nargs="?", help="Staged change id")
    discard_target.add_argument("--all", action="store_true", help="Discard everything")

    sync = subparsers.add_parser("sync", help="Apply staged changes to the remote catalog")
    sync.add_argument(
        "--kind",
        choices=[kind.value for kind in EntityKind],
        help="Only synchronise one entity kind (default: all)",
    )
    sync.add_argument(
        "--prune-stale-deletes",
        action="store_true",
        help="Drop staged deletes whose entry is already gone remotely before syncing",
    )

    inventory = subparsers.add_parser("inventory", help="Inventory attribute commands")
    inventory_sub = inventory.add_subparsers(dest="inventory_command", required=True)
    inventory_show = inventory_sub.add_parser("show", help="Show inventory for catalog entries")
    _add_kind(inventory_show)
    inventory_show.add_argument("ids", nargs="*", help="Restrict output to these ids")
    inventory_set = inventory_sub.add_parser("set", help="Write inventory attributes")
    inventory_set.add_argument("id", help="Entity id")
    _add_inventory_fields(inventory_set)
    inventory_delete = inventory_sub.add_parser("delete", help="Delete inventory attributes")
    inventory_delete.add_argument("id", help="Entity id")
    inventory_sub.add_parser("status", help="Check that the inventory service is reachable")

    return parser.parse_args(list(argv))


def _read_image(path: Path | None) -> ImageUpload | None:
    if path is None:
        return None
    content_type, _ = mimetypes.guess_type(path.name)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ValueError(f"Cannot read image {path}: {exc}") from exc
    return ImageUpload(
        filename=path.name,
        content_type=content_type or "application/octet-stream",
        data=data,
    )


def _inventory_patch(args: argparse.Namespace) -> InventoryPatch | None:
    values = (args.stock, args.cost, args.supplier, args.notes)
    if all(value is None for value in values):
        return None
    return InventoryPatch(stock=args.stock, cost=args.cost, supplier=args.supplier, notes=args.notes)


def _apply_overrides(entry: CatalogEntry, args: argparse.Namespace) -> CatalogEntry:
    updated = entry.copy()
    overrides = {
        "name": args.name,
        "category": args.category,
        "price": args.price,
        "discount_percent": args.discount,
        "description": args.description,
        "on_sale": args.on_sale,
        "is_new": args.is_new,
        "best_seller": args.best_seller,
        "available": args.available,
    }
    for attribute, value in overrides.items():
        if value is not None:
            setattr(updated, attribute, value)
    return updated


def _new_entry(args: argparse.Namespace) -> CatalogEntry:
    return CatalogEntry(
        id=args.id,
        name=args.name,
        category=args.category,
        price=args.price,
        discount_percent=args.discount or 0.0,
        description=args.description or "",
        on_sale=bool(args.on_sale),
        is_new=bool(args.is_new),
        best_seller=bool(args.best_seller),
        available=args.available is not False,
    )


async def _stage(services: CatalogServices, args: argparse.Namespace) -> None:
    entity_kind = EntityKind(args.kind)
    kind = ChangeKind(args.change_kind)
    image: ImageUpload | None = None
    inventory: InventoryPatch | None = None
    if kind is ChangeKind.NEW:
        entry = _new_entry(args)
        image = _read_image(args.image)
        inventory = _inventory_patch(args)
    else:
        entry = await find_entry(services, entity_kind, args.id)
        if kind is ChangeKind.MODIFY:
            entry = _apply_overrides(entry, args)
            image = _read_image(args.image)
            inventory = _inventory_patch(args)

    change = await stage_change(
        services, kind, entry, entity_kind=entity_kind, image=image, inventory=inventory
    )
    print(f"{change.id}  {change.kind:<6}  {change.entity_kind:<7}  {change.entity.name}")


async def _print_catalog(services: CatalogServices, args: argparse.Namespace) -> None:
    snapshot = await load_catalog(services, EntityKind(args.kind))
    entries = filter_by_category(snapshot.entries, args.category)
    if args.search:
        entries = search_entries(entries, args.search)
    if args.categories:
        for category in list_categories(entries):
            print(category)
        return
    for entry in entries:
        price = f"{entry.final_price:.2f}"
        if entry.on_sale and entry.discount_percent:
            price = f"{price} (-{entry.discount_percent:g}%)"
        flags = "" if entry.available else "  [unavailable]"
        print(f"{entry.id}  {entry.name}  {entry.category}  {price}{flags}")


def _print_staged(services: CatalogServices, args: argparse.Namespace) -> None:
    entity_kind = EntityKind(args.kind) if args.kind else None
    for change in services.staging.list(entity_kind):
        image = f"  [{change.image_ref}]" if change.image_ref else ""
        print(
            f"{change.id}  {change.timestamp:%Y-%m-%d %H:%M:%S}  {change.kind:<6}  "
            f"{change.entity_kind:<7}  {change.entity.name}{image}"
        )
    stats = services.staging.stats(entity_kind)
    print(
        f"{stats.total} staged ({stats.new} new, {stats.modify} modified, "
        f"{stats.delete} deleted, {stats.with_images} with images)"
    )


async def _print_progress(progress: EventChannel[ProgressEvent]) -> None:
    async for event in progress:
        percent = f"{event.percent:3d}%" if event.percent is not None else "   -"
        print(f"[{percent}] {event.message}")


def _print_sync_result(result: SyncResult) -> None:
    print(
        f"{result.entity_kind}: {result.applied} applied "
        f"({result.created} new, {result.modified} modified, {result.deleted} deleted)"
    )
    if result.commit_id:
        print(f"  commit {result.commit_id}")
    for path in result.asset_failures:
        print(f"  could not delete {path}")
    for failure in result.inventory.failed:
        print(f"  inventory not saved for {failure.name} ({failure.entity_id}): {failure.error}")


async def _sync(services: CatalogServices, args: argparse.Namespace) -> None:
    kinds = [EntityKind(args.kind)] if args.kind else list(EntityKind)
    for entity_kind in kinds:
        if args.prune_stale_deletes:
            snapshot = await services.engine_for(entity_kind).load()
            await services.staging.prune_stale_deletes(entity_kind, snapshot.entries)
        progress = EventChannel[ProgressEvent]()
        printer = asyncio.create_task(_print_progress(progress))
        try:
            result = await sync_catalog(services, entity_kind, progress=progress)
        finally:
            progress.close()
            await printer
        _print_sync_result(result)


async def _inventory(services: CatalogServices, args: argparse.Namespace) -> None:
    reconciler = services.require_reconciler()
    if args.inventory_command == "set":
        patch = _inventory_patch(args)
        if patch is None:
            raise ValueError("Nothing to write: pass at least one of --stock/--cost/--supplier/--notes")
        record = await reconciler.save_one(args.id, patch)
        print(f"{record.entity_id}: stock={record.stock} cost={record.cost} supplier={record.supplier}")
    elif args.inventory_command == "delete":
        await reconciler.delete_one(args.id)
        print(f"{args.id}: inventory deleted")
    elif args.inventory_command == "status":
        if not await reconciler.service.is_available():
            raise NetworkError("Inventory service is unreachable")
        print("Inventory service is reachable")
    else:
        snapshot = await load_catalog(services, EntityKind(args.kind))
        entries = [entry for entry in snapshot.entries if not args.ids or entry.id in args.ids]
        await reconciler.enrich(entries)
        await reconciler.drain()
        for entry in entries:
            record = entry.inventory
            if record is None:
                print(f"{entry.id}  {entry.name}  -")
                continue
            print(
                f"{entry.id}  {entry.name}  stock={record.stock} cost={record.cost} "
                f"supplier={record.supplier} notes={record.notes} [{record.state}]"
            )


async def _run(args: argparse.Namespace, services_factory: Callable[[], CatalogServices]) -> None:
    services = services_factory()
    try:
        if args.command == "stage":
            await _stage(services, args)
        elif args.command == "catalog":
            await _print_catalog(services, args)
        elif args.command == "staged":
            _print_staged(services, args)
        elif args.command == "discard":
            if args.all:
                await services.staging.discard_all()
            else:
                await services.staging.discard(args.change_id)
        elif args.command == "sync":
            await _sync(services, args)
        elif args.command == "inventory":
            await _inventory(services, args)
        else:
            raise ValueError(f"Unsupported command: {args.command}")
    finally:
        await services.aclose()


def main(
    argv: Sequence[str] | None = None,
    *,
    services_factory: Callable[[], CatalogServices] = build_services,
) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        asyncio.run(_run(parsed_args, services_factory))
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
