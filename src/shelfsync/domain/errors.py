"""Error taxonomy raised by the catalog sync core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class CatalogSyncError(Exception):
    """Base class for every error raised out of the sync core."""


class ValidationError(CatalogSyncError):
    """An entry failed validation; ``violations`` lists every problem found."""

    def __init__(self, violations: Sequence[str]) -> None:
        self.violations: tuple[str, ...] = tuple(violations)
        super().__init__("; ".join(self.violations) or "invalid entry")


class ImageError(CatalogSyncError):
    """An image upload has an unsupported type or exceeds the size limit."""


class NotFoundError(CatalogSyncError):
    """A staged change or catalog entry could not be found."""


class DuplicateEntryError(CatalogSyncError):
    """A new entry's name collides with an existing catalog entry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"An entry named {name!r} already exists")
        self.name = name


class ConflictError(CatalogSyncError):
    """The remote document changed since it was loaded (sha mismatch)."""

    def __init__(self, path: str, message: str | None = None) -> None:
        super().__init__(message or f"Remote file {path!r} changed since it was loaded")
        self.path = path


class DocumentIntegrityError(CatalogSyncError):
    """The serialized catalog document did not round-trip cleanly."""


class NetworkError(CatalogSyncError):
    """A remote call failed at the transport or HTTP level."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteTimeoutError(NetworkError):
    """A remote call exceeded its timeout."""
