"""
docschema: schema validation engine and versioned schema registry.

Architecture:
    - engine: pure, synchronous operations over schema trees (validate,
      coerce, sanitize, generate samples, generate docs) with injectable
      custom type and format registries
    - registry: async versioned registry adding identity, fingerprints,
      default-version bookkeeping and compatibility diffs
    - storage: record stores behind the StorageProvider protocol

Invariants:
    - Validation collects every error in one pass
    - Exactly one default version per registered schema id
    - Fingerprints ignore key order

How to change safely:
    - Keep the engine free of I/O; storage belongs to the registry
    - registry must be imported before storage (storage uses records)

Example:
    >>> from docschema import SchemaEngine
    >>> SchemaEngine().validate("42", {"type": "integer"}, coerce_types=True).data
    42
"""

from ._version import __version__
from .canonical import canonical_json, fingerprint
from .config import LogFormat, Settings, StorageBackend
from .engine import (
    CustomFormat,
    CustomType,
    FormatRegistry,
    SchemaEngine,
    SchemaNode,
    TypeRegistry,
    ValidationError,
    ValidationResult,
)
from .errors import (
    DocSchemaError,
    DuplicateVersionError,
    InvalidSchemaError,
    PluginRegistryFrozenError,
    SchemaNotFoundError,
    StorageError,
    StorageTimeoutError,
    ValidationFailedError,
    VersionNotFoundError,
)
from .registry import (
    ChangeType,
    CompatibilityReport,
    SchemaChange,
    SchemaRecord,
    SchemaRegistry,
    VersionComparison,
    compare_schemas,
)
from .storage import InMemoryStorage, SqliteStorage, StorageProvider, create_storage

__all__ = [
    "__version__",
    # Canonical form
    "canonical_json",
    "fingerprint",
    # Configuration
    "Settings",
    "StorageBackend",
    "LogFormat",
    # Engine
    "SchemaEngine",
    "SchemaNode",
    "CustomType",
    "CustomFormat",
    "TypeRegistry",
    "FormatRegistry",
    "ValidationError",
    "ValidationResult",
    # Registry
    "SchemaRegistry",
    "SchemaRecord",
    "VersionComparison",
    "ChangeType",
    "SchemaChange",
    "CompatibilityReport",
    "compare_schemas",
    # Storage
    "StorageProvider",
    "InMemoryStorage",
    "SqliteStorage",
    "create_storage",
    # Errors
    "DocSchemaError",
    "SchemaNotFoundError",
    "VersionNotFoundError",
    "InvalidSchemaError",
    "DuplicateVersionError",
    "ValidationFailedError",
    "StorageError",
    "StorageTimeoutError",
    "PluginRegistryFrozenError",
]
