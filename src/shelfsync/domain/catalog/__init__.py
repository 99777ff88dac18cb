"""Catalog entries, their document format and validation rules."""

from __future__ import annotations

from .document import decode_document, encode_document, from_wire, to_wire
from .entry import CatalogEntry, CatalogSnapshot, EntityKind
from .queries import filter_by_category, list_categories, search_entries
from .validation import (
    generate_entity_id,
    sanitize_filename,
    validate_entry,
    validate_image,
)

__all__ = [
    "CatalogEntry",
    "CatalogSnapshot",
    "EntityKind",
    "decode_document",
    "encode_document",
    "filter_by_category",
    "from_wire",
    "generate_entity_id",
    "list_categories",
    "sanitize_filename",
    "search_entries",
    "to_wire",
    "validate_entry",
    "validate_image",
]
