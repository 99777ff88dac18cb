"""Domain port definitions for adapters."""

from __future__ import annotations

from .catalog import CommitResult, RemoteCatalogClient, RemoteFile
from .inventory import InventoryService
from .staging import BlobStore, PendingInventoryWrite, PendingInventoryWrites, StagingLog

__all__ = [
    "BlobStore",
    "CommitResult",
    "InventoryService",
    "PendingInventoryWrite",
    "PendingInventoryWrites",
    "RemoteCatalogClient",
    "RemoteFile",
    "StagingLog",
]
