"""SQLAlchemy table metadata for the local staging database."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
    create_engine,
)
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "pk": "pk_%(table_name)s",
    }
)

staged_change_table = Table(
    "staged_change",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("change_id", String, nullable=False, unique=True),
    Column("change_kind", String(16), nullable=False),
    Column("entity_kind", String(16), nullable=False, index=True),
    Column("entity_id", String, nullable=True),
    Column("staged_at", UTCDateTime(), nullable=False),
    Column("original_name", String, nullable=True),
    Column("image_ref", String, nullable=True),
    Column("entity_payload", JSON, nullable=False),
    Column("inventory_payload", JSON, nullable=True),
)

pending_inventory_write_table = Table(
    "pending_inventory_write",
    metadata,
    Column("entity_id", String, primary_key=True),
    Column("entity_kind", String(16), nullable=False),
    Column("entity_name", String, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("attempts", Integer, nullable=False, default=1),
    Column("last_error", String, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)


def create_all_tables(engine: Engine) -> None:
    """Create the staging tables if they do not exist yet."""

    log.info("Creating staging tables")
    metadata.create_all(engine)


def create_staging_engine(database_uri: str) -> Engine:
    """Return an engine for ``database_uri`` with the staging tables in place."""

    if database_uri.endswith(":memory:") or database_uri in {"sqlite://", "sqlite+pysqlite://"}:
        # one shared connection, otherwise every session sees an empty database
        engine = create_engine(
            database_uri,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_uri)
    create_all_tables(engine)
    return engine
