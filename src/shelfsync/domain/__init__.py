"""Domain layer: catalog entries, staged edits, sync and inventory reconciliation."""
