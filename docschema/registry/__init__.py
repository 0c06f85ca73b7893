"""
Versioned schema registry.

Records and the compatibility diff are importable on their own; the
storage package depends on records, so they load before the registry.
"""

from .records import SchemaRecord, schema_id_for
from .compat import ChangeType, CompatibilityReport, SchemaChange, compare_schemas
from .registry import SchemaRegistry, VersionComparison, VersionInfo

__all__ = [
    # Records
    "SchemaRecord",
    "schema_id_for",
    # Compatibility
    "ChangeType",
    "SchemaChange",
    "CompatibilityReport",
    "compare_schemas",
    # Registry
    "SchemaRegistry",
    "VersionComparison",
    "VersionInfo",
]
