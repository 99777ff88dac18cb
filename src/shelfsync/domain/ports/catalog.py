"""Port for the version-controlled remote holding catalog documents and assets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(slots=True, frozen=True)
class RemoteFile:
    content: bytes
    sha: str


@dataclass(slots=True, frozen=True)
class CommitResult:
    commit_id: str | None
    sha: str | None


@runtime_checkable
class RemoteCatalogClient(Protocol):
    """Contents API with per-file compare-and-swap writes."""

    async def get_file(self, path: str) -> RemoteFile | None:
        """Return the file, or ``None`` when it does not exist."""
        ...

    async def put_file(
        self,
        path: str,
        content: bytes,
        *,
        expected_sha: str | None,
        message: str,
    ) -> CommitResult:
        """Write ``content``; raise ``ConflictError`` when ``expected_sha`` is stale.

        ``expected_sha=None`` creates the file and fails if it already exists.
        """
        ...

    async def delete_file(self, path: str, *, message: str) -> bool:
        """Delete the file; return ``False`` when it was already absent."""
        ...


__all__ = ["CommitResult", "RemoteCatalogClient", "RemoteFile"]
