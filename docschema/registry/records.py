"""
Schema records stored by the registry.

A SchemaRecord is one registered version of one schema. Its identity is
(id, version) where id = "<namespace>.<name>".

Invariants:
    - id is derived from namespace and name only
    - For one id, exactly one stored record has is_default=True
    - fingerprint depends on schema content only (see canonical.fingerprint)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict


def schema_id_for(namespace: str, name: str) -> str:
    """Composite schema id for (namespace, name)."""
    return f"{namespace}.{name}"


@dataclass(frozen=True)
class SchemaRecord:
    """One registered schema version.

    Attributes:
        id: "<namespace>.<name>"
        namespace: Schema namespace
        name: Schema name within the namespace
        version: Version string, unique per id
        schema: Normalized schema (with `$id` and `$schema`)
        fingerprint: "sha256:<hex>" content hash of the authored schema
        created_at: ISO 8601 UTC timestamp with microseconds
        is_default: Whether this is the default version of the id
        metadata: Opaque caller metadata
    """

    id: str
    namespace: str
    name: str
    version: str
    schema: Any
    fingerprint: str
    created_at: str
    is_default: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_updates(self, **changes: Any) -> SchemaRecord:
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "namespace": self.namespace,
            "name": self.name,
            "version": self.version,
            "schema": copy.deepcopy(self.schema),
            "fingerprint": self.fingerprint,
            "created_at": self.created_at,
            "is_default": self.is_default,
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SchemaRecord:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            namespace=data["namespace"],
            name=data["name"],
            version=data["version"],
            schema=data["schema"],
            fingerprint=data["fingerprint"],
            created_at=data["created_at"],
            is_default=bool(data.get("is_default", False)),
            metadata=dict(data.get("metadata") or {}),
        )

    def __str__(self) -> str:
        marker = " (default)" if self.is_default else ""
        return f"{self.id}@{self.version}{marker}"
