"""Public interface for the inventory service adapter."""

from __future__ import annotations

from .client import HttpInventoryService

__all__ = ["HttpInventoryService"]
