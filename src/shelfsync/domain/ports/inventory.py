"""Port for the inventory service holding privileged secondary attributes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class InventoryService(Protocol):
    """Raw inventory transport; payload shapes are normalized by the caller.

    Failures surface as ``NetworkError`` (``RemoteTimeoutError`` for timeouts).
    """

    async def fetch_one(self, entity_id: str) -> object | None:
        """Return the raw record, or ``None`` when the service has none (404)."""
        ...

    async def fetch_bulk(self, entity_ids: Sequence[str] | None = None) -> object:
        """Return the raw bulk payload for ``entity_ids``, or for everything when ``None``."""
        ...

    async def save(self, entity_id: str, payload: dict[str, object]) -> object: ...

    async def delete(self, entity_id: str) -> bool:
        """Delete the record; a missing record counts as success."""
        ...

    async def is_available(self) -> bool: ...


__all__ = ["InventoryService"]
