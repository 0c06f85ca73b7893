"""
Versioned schema registry.

The registry composes a StorageProvider and a SchemaEngine. It assigns
identity (namespace + name + version), fingerprints schemas, keeps the
default-version bookkeeping and compares versions for compatibility.

Invariants:
    - For every schema id with at least one stored version, exactly one
      version has is_default=True
    - The first version stored for an id is always the default
    - Versions never repeat for an id; caller-supplied duplicates raise
      DuplicateVersionError
    - Mutations on one schema id are serialized by a per-id asyncio.Lock
    - Storage calls never hang: they time out with StorageTimeoutError

How to change safely:
    - Every mutation must run under _lock_for(schema_id) and leave the
      default invariant intact when it returns
    - Keep generated versions sortable by creation time
    - Route storage calls through _call() so timeouts and errors are
      surfaced consistently

Example:
    >>> registry = SchemaRegistry(InMemoryStorage())
    >>> record = await registry.register_schema("docs", "user", {"type": "object"})
    >>> record.is_default
    True
    >>> report = await registry.check_compatibility("docs", "user", candidate)
"""

from __future__ import annotations

import asyncio
import copy
import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, Optional, TypeVar

from ..canonical import fingerprint
from ..engine.engine import SchemaEngine
from ..engine.meta_schema import DRAFT07_URI
from ..engine.nodes import SchemaNode
from ..engine.validator import ValidationResult
from ..errors import (
    DuplicateVersionError,
    InvalidSchemaError,
    SchemaNotFoundError,
    StorageError,
    StorageTimeoutError,
    VersionNotFoundError,
)
from .compat import CompatibilityReport, compare_schemas
from .records import SchemaRecord, schema_id_for

if TYPE_CHECKING:
    from ..config import Settings
    from ..storage.base import StorageProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URI = "https://schemas.documentation-system.org"
CREATED_AT_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


@dataclass(frozen=True)
class VersionInfo:
    """Identity of one side of a version comparison."""

    version: str
    created_at: str
    fingerprint: str

    @classmethod
    def from_record(cls, record: SchemaRecord) -> VersionInfo:
        return cls(record.version, record.created_at, record.fingerprint)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "created_at": self.created_at,
            "fingerprint": self.fingerprint,
        }


@dataclass
class VersionComparison:
    """Result of compare_schema_versions().

    Attributes:
        schema_id: "<namespace>.<name>"
        version1: The elder side of the comparison
        version2: The candidate side
        report: Changes from version1 to version2
    """

    schema_id: str
    version1: VersionInfo
    version2: VersionInfo
    report: CompatibilityReport

    @property
    def compatible(self) -> bool:
        return self.report.compatible

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_id": self.schema_id,
            "version1": self.version1.to_dict(),
            "version2": self.version2.to_dict(),
            **self.report.to_dict(),
        }


def _latest(records: List[SchemaRecord]) -> SchemaRecord:
    return max(records, key=lambda record: (record.created_at, record.version))


class SchemaRegistry:
    """Async registry of versioned schemas.

    Args:
        storage: Backing StorageProvider
        engine: Engine used for meta-schema checks and validation
        validate_schemas: Check schemas against the meta-schema on register
        base_uri: Base of the injected `$id`
        storage_timeout: Seconds before a storage call fails (None = wait)
    """

    def __init__(
        self,
        storage: "StorageProvider",
        engine: Optional[SchemaEngine] = None,
        *,
        validate_schemas: bool = True,
        base_uri: str = DEFAULT_BASE_URI,
        storage_timeout: Optional[float] = 5.0,
    ) -> None:
        self.storage = storage
        self.engine = engine or SchemaEngine()
        self.validate_schemas = validate_schemas
        self.base_uri = base_uri.rstrip("/")
        self.storage_timeout = storage_timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_created: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls, settings: "Settings", engine: Optional[SchemaEngine] = None
    ) -> SchemaRegistry:
        """Build a registry with storage and options taken from settings."""
        from ..storage.base import create_storage

        return cls(
            create_storage(settings),
            engine,
            validate_schemas=settings.validate_schemas,
            base_uri=settings.schema_base_uri,
            storage_timeout=settings.storage_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, schema_id: str) -> asyncio.Lock:
        lock = self._locks.get(schema_id)
        if lock is None:
            lock = self._locks[schema_id] = asyncio.Lock()
        return lock

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a storage call with the configured timeout.

        Raises:
            StorageTimeoutError: If the call exceeds storage_timeout
            StorageError: If the provider fails
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.storage_timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"Storage operation {operation} timed out after {self.storage_timeout}s",
                extra={"operation": operation},
            )
            raise StorageTimeoutError(operation, self.storage_timeout or 0.0) from None
        except StorageError as e:
            logger.error(f"Storage operation {operation} failed: {e}", extra={"operation": operation})
            raise

    def _next_timestamp(self) -> datetime:
        """Current UTC time, strictly increasing within this registry."""
        now = datetime.now(timezone.utc)
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    @staticmethod
    def _generate_version(created: datetime) -> str:
        """Time-ordered version with a random disambiguator.

        Format: YYYYMMDD.HHMMSS.ffffff.rrr
        """
        return f"{created:%Y%m%d.%H%M%S}.{created.microsecond:06d}.{secrets.randbelow(1000):03d}"

    def _normalize(self, schema: Mapping, schema_id: str, version: str) -> Dict[str, Any]:
        normalized = copy.deepcopy(dict(schema))
        normalized.setdefault("$id", f"{self.base_uri}/{schema_id}/v/{version}")
        normalized.setdefault("$schema", DRAFT07_URI)
        return normalized

    def _check_schema(self, schema: Any) -> None:
        if not isinstance(schema, Mapping):
            raise InvalidSchemaError(
                f"Schema must be an object, got {type(schema).__name__}"
            )
        if self.validate_schemas:
            result = self.engine.check_schema(schema)
            if not result.valid:
                raise InvalidSchemaError(
                    f"Invalid schema: {', '.join(e.message for e in result.errors)}",
                    errors=result.errors,
                )
        # Rejects keyword values the engine cannot use (e.g. non-numeric bounds)
        SchemaNode.parse(schema)

    async def _versions(self, schema_id: str) -> List[SchemaRecord]:
        return await self._call("get_schema_versions", self.storage.get_schema_versions(schema_id))

    async def _set_default_flag(self, schema_id: str, version: str, value: bool) -> Optional[SchemaRecord]:
        return await self._call(
            "update_schema",
            self.storage.update_schema(schema_id, version, {"is_default": value}),
        )

    # ------------------------------------------------------------------
    # Registration and lookup
    # ------------------------------------------------------------------

    async def register_schema(
        self,
        namespace: str,
        name: str,
        schema: Mapping,
        *,
        version: Optional[str] = None,
        is_default: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SchemaRecord:
        """Register a new schema version.

        Args:
            namespace: Schema namespace
            name: Schema name within the namespace
            schema: Schema document (an object)
            version: Explicit version; generated when omitted
            is_default: Make this the default version (forced for the
                first version of an id)
            metadata: Opaque caller metadata stored with the record

        Returns:
            The stored SchemaRecord

        Raises:
            ValueError: If namespace or name is empty
            InvalidSchemaError: If the schema is malformed
            DuplicateVersionError: If version is already stored for the id
        """
        if not namespace or not name:
            raise ValueError("Namespace and name are required")
        self._check_schema(schema)

        schema_id = schema_id_for(namespace, name)
        async with self._lock_for(schema_id):
            existing = await self._versions(schema_id)
            taken = {record.version for record in existing}
            if version is not None and version in taken:
                raise DuplicateVersionError(schema_id, version)

            created = self._next_timestamp()
            if version is None:
                version = self._generate_version(created)
                while version in taken:
                    version = self._generate_version(created)

            first = not existing
            record = SchemaRecord(
                id=schema_id,
                namespace=namespace,
                name=name,
                version=version,
                schema=self._normalize(schema, schema_id, version),
                fingerprint=fingerprint(schema),
                created_at=created.strftime(CREATED_AT_FORMAT),
                is_default=first or is_default,
                metadata=copy.deepcopy(metadata or {}),
            )
            stored = await self._call("save_schema", self.storage.save_schema(record))

            if record.is_default and not first:
                for sibling in existing:
                    if sibling.is_default:
                        await self._set_default_flag(schema_id, sibling.version, False)

        logger.info(
            f"Registered schema {schema_id} version {version}",
            extra={
                "namespace": namespace,
                "schema_name": name,
                "schema_id": schema_id,
                "version": version,
                "is_default": record.is_default,
            },
        )
        return stored

    async def get_schema(
        self,
        namespace: str,
        name: str,
        version: Optional[str] = None,
        *,
        default_version: bool = False,
        latest_version: bool = False,
    ) -> SchemaRecord:
        """Get one version of a schema.

        Selects an explicit version, the most recently created version
        (latest_version=True), or the default version (otherwise).

        Raises:
            ValueError: If more than one selector is given
            SchemaNotFoundError: If no version is stored for the id
            VersionNotFoundError: If the requested version is absent
        """
        if sum([version is not None, default_version, latest_version]) > 1:
            raise ValueError("Specify at most one of version, default_version, latest_version")

        schema_id = schema_id_for(namespace, name)
        if version is not None:
            record = await self._call("get_schema", self.storage.get_schema(schema_id, version))
            if record is not None:
                return record
            if await self._versions(schema_id):
                raise VersionNotFoundError(schema_id, version)
            raise SchemaNotFoundError(schema_id)

        versions = await self._versions(schema_id)
        if not versions:
            raise SchemaNotFoundError(schema_id)
        if latest_version:
            return _latest(versions)
        for record in versions:
            if record.is_default:
                return record
        logger.warning(f"No default version flagged for {schema_id}, using latest")
        return _latest(versions)

    async def has_schema(self, namespace: str, name: str, version: Optional[str] = None) -> bool:
        schema_id = schema_id_for(namespace, name)
        if version is not None:
            record = await self._call("get_schema", self.storage.get_schema(schema_id, version))
            return record is not None
        return bool(await self._versions(schema_id))

    async def get_schema_versions(self, namespace: str, name: str) -> List[SchemaRecord]:
        """All versions, oldest first."""
        return await self._versions(schema_id_for(namespace, name))

    async def get_namespace_schemas(self, namespace: str) -> List[SchemaRecord]:
        """One record per schema in the namespace, preferring defaults."""
        return await self._call(
            "get_namespace_schemas", self.storage.get_namespace_schemas(namespace)
        )

    async def get_namespaces(self) -> List[str]:
        return await self._call("get_namespaces", self.storage.get_namespaces())

    # ------------------------------------------------------------------
    # Default bookkeeping and deletion
    # ------------------------------------------------------------------

    async def set_default_version(self, namespace: str, name: str, version: str) -> SchemaRecord:
        """Make version the default and demote every sibling.

        Raises:
            SchemaNotFoundError: If no version is stored for the id
            VersionNotFoundError: If version is absent
        """
        schema_id = schema_id_for(namespace, name)
        async with self._lock_for(schema_id):
            versions = await self._versions(schema_id)
            if not versions:
                raise SchemaNotFoundError(schema_id)
            target = next((r for r in versions if r.version == version), None)
            if target is None:
                raise VersionNotFoundError(schema_id, version)

            if not target.is_default:
                updated = await self._set_default_flag(schema_id, version, True)
                target = updated or target.with_updates(is_default=True)
            for sibling in versions:
                if sibling.version != version and sibling.is_default:
                    await self._set_default_flag(schema_id, sibling.version, False)

        logger.info(
            f"Set default version of {schema_id} to {version}",
            extra={"namespace": namespace, "schema_name": name, "schema_id": schema_id, "version": version},
        )
        return target

    async def delete_schema_version(self, namespace: str, name: str, version: str) -> bool:
        """Delete one version.

        When the deleted version was the default and siblings remain, the
        most recently created sibling becomes the default.

        Returns:
            True if the version existed
        """
        schema_id = schema_id_for(namespace, name)
        async with self._lock_for(schema_id):
            versions = await self._versions(schema_id)
            if not any(record.version == version for record in versions):
                return False
            deleted = await self._call(
                "delete_schema", self.storage.delete_schema(schema_id, version)
            )
            remaining = [record for record in versions if record.version != version]
            promoted: Optional[str] = None
            if remaining and not any(record.is_default for record in remaining):
                promoted = _latest(remaining).version
                await self._set_default_flag(schema_id, promoted, True)

        logger.info(
            f"Deleted schema {schema_id} version {version}",
            extra={
                "namespace": namespace,
                "schema_name": name,
                "schema_id": schema_id,
                "version": version,
                "promoted": promoted,
            },
        )
        return deleted

    async def delete_schema(self, namespace: str, name: str) -> bool:
        """Delete every version of a schema. Returns True if any existed."""
        schema_id = schema_id_for(namespace, name)
        async with self._lock_for(schema_id):
            deleted = await self._call(
                "delete_all_schema_versions",
                self.storage.delete_all_schema_versions(schema_id),
            )
        logger.info(
            f"Deleted all versions of {schema_id}",
            extra={"namespace": namespace, "schema_name": name, "schema_id": schema_id},
        )
        return deleted

    # ------------------------------------------------------------------
    # Compatibility and validation
    # ------------------------------------------------------------------

    async def compare_schema_versions(
        self, namespace: str, name: str, version1: str, version2: str
    ) -> VersionComparison:
        """Diff two stored versions (version1 is treated as the elder).

        Raises:
            SchemaNotFoundError: If no version is stored for the id
            VersionNotFoundError: If either version is absent
        """
        first = await self.get_schema(namespace, name, version1)
        second = await self.get_schema(namespace, name, version2)
        return VersionComparison(
            schema_id=first.id,
            version1=VersionInfo.from_record(first),
            version2=VersionInfo.from_record(second),
            report=compare_schemas(first.schema, second.schema),
        )

    async def check_compatibility(
        self, namespace: str, name: str, schema: Mapping
    ) -> CompatibilityReport:
        """Check a candidate schema against the latest stored version.

        A schema with no prior version is compatible.
        """
        versions = await self._versions(schema_id_for(namespace, name))
        if not versions:
            return CompatibilityReport(compatible=True, changes=[])
        latest = _latest(versions)
        report = compare_schemas(latest.schema, schema)
        report.latest_version = latest.version
        return report

    async def validate(
        self,
        document: Any,
        namespace: str,
        name: str,
        version: Optional[str] = None,
        *,
        latest_version: bool = False,
        **flags: bool,
    ) -> ValidationResult:
        """Validate a document against a registered schema.

        Uses the default version unless version or latest_version is
        given. Keyword flags are passed to SchemaEngine.validate().
        """
        record = await self.get_schema(namespace, name, version, latest_version=latest_version)
        return self.engine.validate(document, record.schema, **flags)
