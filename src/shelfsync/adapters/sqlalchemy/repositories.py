"""Staging log and pending inventory write stores backed by SQLAlchemy sessions."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from shelfsync.adapters.sqlalchemy.mappings import (
    pending_inventory_write_table,
    staged_change_table,
)
from shelfsync.domain.catalog.document import from_wire, to_wire
from shelfsync.domain.catalog.entry import EntityKind
from shelfsync.domain.changes import ChangeKind, StagedChange
from shelfsync.domain.inventory.records import InventoryPatch
from shelfsync.domain.ports.staging import PendingInventoryWrite

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Row
    from sqlalchemy.engine import Engine


def _entity_payload(change: StagedChange) -> dict[str, object]:
    payload = to_wire(change.entity)
    # keep the snapshot exactly as staged, including an unset id
    payload["id"] = change.entity.id
    return payload


def _row_to_change(row: Row[tuple[object, ...]]) -> StagedChange:
    mapping = row._mapping  # pyright: ignore[reportPrivateUsage]
    inventory_payload = mapping["inventory_payload"]
    return StagedChange(
        id=cast("str", mapping["change_id"]),
        kind=ChangeKind(cast("str", mapping["change_kind"])),
        entity_kind=EntityKind(cast("str", mapping["entity_kind"])),
        entity_id=cast("str | None", mapping["entity_id"]),
        timestamp=cast("datetime", mapping["staged_at"]),
        entity=from_wire(cast("dict[str, object]", mapping["entity_payload"])),
        original_name=cast("str | None", mapping["original_name"]),
        image_ref=cast("str | None", mapping["image_ref"]),
        inventory=(
            InventoryPatch.from_payload(cast("dict[str, object]", inventory_payload))
            if inventory_payload is not None
            else None
        ),
    )


class SqlAlchemyStagingLog:
    def __init__(self, engine: Engine) -> None:
        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False
        )

    def append(self, change: StagedChange) -> None:
        with self._session_factory.begin() as session:
            session.execute(
                staged_change_table.insert().values(
                    change_id=change.id,
                    change_kind=change.kind.value,
                    entity_kind=change.entity_kind.value,
                    entity_id=change.entity_id,
                    staged_at=change.timestamp,
                    original_name=change.original_name,
                    image_ref=change.image_ref,
                    entity_payload=_entity_payload(change),
                    inventory_payload=(
                        change.inventory.to_payload() if change.inventory is not None else None
                    ),
                )
            )

    def ordered(self) -> list[StagedChange]:
        stmt = select(staged_change_table).order_by(
            staged_change_table.c.staged_at, staged_change_table.c.seq
        )
        with self._session_factory() as session:
            return [_row_to_change(row) for row in session.execute(stmt)]

    def get(self, change_id: str) -> StagedChange | None:
        stmt = select(staged_change_table).where(staged_change_table.c.change_id == change_id)
        with self._session_factory() as session:
            row = session.execute(stmt).one_or_none()
        return _row_to_change(row) if row is not None else None

    def remove(self, change_id: str) -> bool:
        return self.remove_many([change_id]) > 0

    def remove_many(self, change_ids: Iterable[str]) -> int:
        ids = list(change_ids)
        if not ids:
            return 0
        stmt = delete(staged_change_table).where(staged_change_table.c.change_id.in_(ids))
        with self._session_factory.begin() as session:
            result = session.execute(stmt)
        return result.rowcount

    def clear(self) -> None:
        with self._session_factory.begin() as session:
            session.execute(delete(staged_change_table))


class SqlAlchemyPendingInventoryWrites:
    def __init__(self, engine: Engine) -> None:
        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False
        )

    def put(self, write: PendingInventoryWrite) -> None:
        table = pending_inventory_write_table
        values = {
            "entity_kind": str(write.entity_kind),
            "entity_name": write.entity_name,
            "payload": write.patch.to_payload(),
            "attempts": write.attempts,
            "last_error": write.last_error,
            "updated_at": write.updated_at or datetime.now(tz=UTC),
        }
        with self._session_factory.begin() as session:
            exists = session.execute(
                select(table.c.entity_id).where(table.c.entity_id == write.entity_id)
            ).scalar_one_or_none()
            if exists is None:
                session.execute(table.insert().values(entity_id=write.entity_id, **values))
            else:
                session.execute(
                    table.update().where(table.c.entity_id == write.entity_id).values(**values)
                )

    def items(self, entity_kind: str | None = None) -> list[PendingInventoryWrite]:
        table = pending_inventory_write_table
        stmt = select(table).order_by(table.c.updated_at, table.c.entity_id)
        if entity_kind is not None:
            stmt = stmt.where(table.c.entity_kind == str(entity_kind))
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
        writes: list[PendingInventoryWrite] = []
        for row in rows:
            mapping = row._mapping  # pyright: ignore[reportPrivateUsage]
            writes.append(
                PendingInventoryWrite(
                    entity_id=cast("str", mapping["entity_id"]),
                    entity_kind=cast("str", mapping["entity_kind"]),
                    entity_name=cast("str", mapping["entity_name"]),
                    patch=InventoryPatch.from_payload(cast("dict[str, object]", mapping["payload"])),
                    attempts=cast("int", mapping["attempts"]),
                    last_error=cast("str | None", mapping["last_error"]),
                    updated_at=cast("datetime | None", mapping["updated_at"]),
                )
            )
        return writes

    def remove(self, entity_id: str) -> None:
        table = pending_inventory_write_table
        with self._session_factory.begin() as session:
            session.execute(delete(table).where(table.c.entity_id == entity_id))
