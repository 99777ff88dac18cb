"""Read-side helpers over loaded catalog entries."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .entry import CatalogEntry


def search_entries(entries: Iterable[CatalogEntry], term: str) -> list[CatalogEntry]:
    """Case-insensitive substring match over name, category and description."""

    needle = term.strip().lower()
    if not needle:
        return list(entries)
    return [
        entry
        for entry in entries
        if needle in f"{entry.name} {entry.category} {entry.description}".lower()
    ]


def filter_by_category(
    entries: Iterable[CatalogEntry], category: str | None
) -> list[CatalogEntry]:
    if not category or not category.strip():
        return list(entries)
    wanted = category.strip().lower()
    return [entry for entry in entries if entry.category.strip().lower() == wanted]


def list_categories(entries: Iterable[CatalogEntry]) -> list[str]:
    return sorted({entry.category for entry in entries if entry.category})
