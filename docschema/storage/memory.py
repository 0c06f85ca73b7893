"""
In-memory storage provider.

Records live in a dict keyed by schema id, each holding a list of
versions. Intended for tests and embedding; nothing survives the
process.

Invariants:
    - Stored and returned records are deep copies
    - A namespace is listed only while it holds at least one record
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional

from ..registry.records import SchemaRecord
from .base import check_update_fields, pick_namespace_records

logger = logging.getLogger(__name__)


class InMemoryStorage:
    """Dict-backed StorageProvider.

    Example:
        >>> storage = InMemoryStorage()
        >>> await storage.save_schema(record)
        >>> [r.version for r in await storage.get_schema_versions(record.id)]
        ['20240101.120000.000001.042']
    """

    def __init__(self) -> None:
        self._schemas: Dict[str, List[SchemaRecord]] = {}
        self._lock = asyncio.Lock()

    async def save_schema(self, record: SchemaRecord) -> SchemaRecord:
        stored = copy.deepcopy(record)
        async with self._lock:
            versions = self._schemas.setdefault(record.id, [])
            for index, existing in enumerate(versions):
                if existing.version == record.version:
                    versions[index] = stored
                    break
            else:
                versions.append(stored)
        logger.debug(f"Saved schema {record.id} version {record.version}")
        return copy.deepcopy(stored)

    async def get_schema(self, schema_id: str, version: str) -> Optional[SchemaRecord]:
        for record in self._schemas.get(schema_id, []):
            if record.version == version:
                return copy.deepcopy(record)
        return None

    async def get_schema_versions(self, schema_id: str) -> List[SchemaRecord]:
        versions = sorted(
            self._schemas.get(schema_id, []),
            key=lambda record: (record.created_at, record.version),
        )
        return copy.deepcopy(versions)

    async def get_namespace_schemas(self, namespace: str) -> List[SchemaRecord]:
        records = [
            record
            for versions in self._schemas.values()
            for record in versions
            if record.namespace == namespace
        ]
        return copy.deepcopy(pick_namespace_records(records))

    async def get_namespaces(self) -> List[str]:
        return sorted(
            {record.namespace for versions in self._schemas.values() for record in versions}
        )

    async def update_schema(
        self, schema_id: str, version: str, update: Dict[str, Any]
    ) -> Optional[SchemaRecord]:
        check_update_fields(update)
        async with self._lock:
            versions = self._schemas.get(schema_id, [])
            for index, record in enumerate(versions):
                if record.version == version:
                    versions[index] = record.with_updates(**copy.deepcopy(update))
                    logger.debug(f"Updated schema {schema_id} version {version}: {sorted(update)}")
                    return copy.deepcopy(versions[index])
        return None

    async def delete_schema(self, schema_id: str, version: str) -> bool:
        async with self._lock:
            versions = self._schemas.get(schema_id, [])
            remaining = [record for record in versions if record.version != version]
            if len(remaining) == len(versions):
                return False
            if remaining:
                self._schemas[schema_id] = remaining
            else:
                del self._schemas[schema_id]
        logger.debug(f"Deleted schema {schema_id} version {version}")
        return True

    async def delete_all_schema_versions(self, schema_id: str) -> bool:
        async with self._lock:
            existed = self._schemas.pop(schema_id, None) is not None
        logger.debug(f"Deleted all versions of {schema_id}: existed={existed}")
        return existed
