"""
Storage providers for the schema registry.

This module provides a pluggable record store supporting:
- In-memory (tests, one-shot CLI commands, embedding)
- SQLite (single-file persistence)

Invariants:
    - Every operation is atomic for a single record
    - Versions of one schema id are returned oldest first

How to change safely:
    - New backends must implement the StorageProvider protocol
    - Register new backends in create_storage() and config.StorageBackend
"""

from .base import (
    UPDATABLE_FIELDS,
    StorageProvider,
    check_update_fields,
    create_storage,
)
from .memory import InMemoryStorage
from .sqlite import SqliteStorage

__all__ = [
    # Protocol
    "StorageProvider",
    "UPDATABLE_FIELDS",
    "check_update_fields",
    # Factory
    "create_storage",
    # Implementations
    "InMemoryStorage",
    "SqliteStorage",
]
