"""SQLAlchemy adapter package for the local staging database."""

from __future__ import annotations

from .mappings import create_all_tables, create_staging_engine, metadata
from .repositories import SqlAlchemyPendingInventoryWrites, SqlAlchemyStagingLog

__all__ = [
    "SqlAlchemyPendingInventoryWrites",
    "SqlAlchemyStagingLog",
    "create_all_tables",
    "create_staging_engine",
    "metadata",
]
