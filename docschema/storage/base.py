"""
Storage provider protocol for the schema registry.

This module defines the StorageProvider protocol that every backing store
implements, plus the create_storage() factory.

Invariants:
    - Every operation is atomic for a single record
    - Returned records are copies; mutating them never changes the store
    - get_schema_versions returns records in creation order
    - get_namespace_schemas returns one record per schema id, preferring
      the default version

How to change safely:
    - Protocol changes require updating all implementations
    - Keep update_schema limited to the mutable record fields
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from ..registry.records import SchemaRecord

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

# Fields update_schema may change
UPDATABLE_FIELDS = frozenset({"is_default", "metadata", "schema", "fingerprint"})


def check_update_fields(update: Dict[str, Any]) -> None:
    """Reject partial updates touching identity fields.

    Raises:
        ValueError: If update contains a field outside UPDATABLE_FIELDS
    """
    unknown = set(update) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")


def pick_namespace_records(records: List[SchemaRecord]) -> List[SchemaRecord]:
    """One record per schema id, the default version when one is flagged."""
    chosen: Dict[str, SchemaRecord] = {}
    for record in records:
        current = chosen.get(record.id)
        if current is None or (record.is_default and not current.is_default):
            chosen[record.id] = record
    return [chosen[schema_id] for schema_id in sorted(chosen)]


@runtime_checkable
class StorageProvider(Protocol):
    """Protocol for schema record stores.

    Example:
        >>> storage = InMemoryStorage()
        >>> await storage.save_schema(record)
        >>> await storage.get_schema("docs.user", record.version)
    """

    @abstractmethod
    async def save_schema(self, record: SchemaRecord) -> SchemaRecord:
        """Insert a record, replacing any record with the same (id, version).

        Returns:
            The stored record
        """
        ...

    @abstractmethod
    async def get_schema(self, schema_id: str, version: str) -> Optional[SchemaRecord]:
        """Get one version, or None if absent."""
        ...

    @abstractmethod
    async def get_schema_versions(self, schema_id: str) -> List[SchemaRecord]:
        """All versions of a schema id, oldest first (empty if unknown)."""
        ...

    @abstractmethod
    async def get_namespace_schemas(self, namespace: str) -> List[SchemaRecord]:
        """One record per schema id in the namespace, preferring defaults."""
        ...

    @abstractmethod
    async def get_namespaces(self) -> List[str]:
        """Sorted namespaces that currently hold at least one record."""
        ...

    @abstractmethod
    async def update_schema(
        self, schema_id: str, version: str, update: Dict[str, Any]
    ) -> Optional[SchemaRecord]:
        """Apply a partial update to one version.

        Returns:
            The updated record, or None if the version does not exist

        Raises:
            ValueError: If update names a non-updatable field
        """
        ...

    @abstractmethod
    async def delete_schema(self, schema_id: str, version: str) -> bool:
        """Delete one version. Returns True if it existed."""
        ...

    @abstractmethod
    async def delete_all_schema_versions(self, schema_id: str) -> bool:
        """Delete every version of a schema id. Returns True if any existed."""
        ...


def create_storage(settings: "Settings") -> StorageProvider:
    """Factory function to create a storage provider from settings.

    Args:
        settings: Application settings

    Returns:
        Appropriate StorageProvider implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import InMemoryStorage
    from .sqlite import SqliteStorage

    if settings.storage_backend == StorageBackend.MEMORY:
        return InMemoryStorage()
    elif settings.storage_backend == StorageBackend.SQLITE:
        return SqliteStorage(
            settings.sqlite_path,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )
    else:
        raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")
