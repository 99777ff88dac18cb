"""Concrete adapters for the shelfsync domain ports."""
