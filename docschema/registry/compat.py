"""
Schema compatibility checking between versions.

compare_schemas(old, new) diffs the top-level `properties` map and the
`required` set of two schemas and classifies each change:

    Compatible:
        - Property added
        - Property removed that was not required in the old schema
        - Property changed with the same declared `type`
        - Names removed from `required`
    Breaking:
        - Property removed that was required in the old schema
        - Property `type` changed
        - Names added to `required`

Invariants:
    - A report is compatible iff none of its changes is breaking
    - Property comparison ignores key order (canonical JSON)
    - Adding an optional property never makes a report incompatible

How to change safely:
    - New checks add a SchemaChange with an explicit is_breaking flag
    - Keep `path` values stable ("properties.<name>", "required")

Example:
    >>> report = compare_schemas(v1, v2)
    >>> for change in report.changes:
    ...     print(change)
    [OK] add: properties.email - Added property 'email'
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..canonical import canonical_json

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    """Kinds of structural change."""

    ADD = "add"
    REMOVE = "remove"
    CHANGE = "change"


@dataclass(frozen=True)
class SchemaChange:
    """One change between two schema versions.

    Attributes:
        change_type: add, remove or change
        path: "properties.<name>" or "required"
        description: Human-readable description
        is_breaking: Whether consumers of the old version may break
    """

    change_type: ChangeType
    path: str
    description: str
    is_breaking: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.change_type.value,
            "path": self.path,
            "description": self.description,
            "breaking": self.is_breaking,
        }

    def __str__(self) -> str:
        status = "BREAKING" if self.is_breaking else "OK"
        return f"[{status}] {self.change_type.value}: {self.path} - {self.description}"


@dataclass
class CompatibilityReport:
    """Result of comparing two schema versions.

    Attributes:
        compatible: False if any change is breaking
        changes: Changes in property order, then `required` changes
        latest_version: Version compared against (check_compatibility only)
    """

    compatible: bool
    changes: List[SchemaChange] = field(default_factory=list)
    latest_version: Optional[str] = None

    @property
    def breaking_changes(self) -> List[SchemaChange]:
        return [change for change in self.changes if change.is_breaking]

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "compatible": self.compatible,
            "changes": [change.to_dict() for change in self.changes],
        }
        if self.latest_version is not None:
            result["latest_version"] = self.latest_version
        return result


def _properties(schema: Any) -> Dict[str, Any]:
    if isinstance(schema, Mapping) and isinstance(schema.get("properties"), Mapping):
        return dict(schema["properties"])
    return {}


def _required(schema: Any) -> Optional[List[str]]:
    if isinstance(schema, Mapping) and isinstance(schema.get("required"), list):
        return list(schema["required"])
    return None


def _declared_type(prop: Any) -> Any:
    if isinstance(prop, Mapping):
        return canonical_json(prop.get("type"))
    return canonical_json(None)


def compare_schemas(old: Any, new: Any) -> CompatibilityReport:
    """Compare two schemas and classify every change.

    Args:
        old: The elder schema
        new: The candidate schema

    Returns:
        CompatibilityReport listing all changes
    """
    old_props = _properties(old)
    new_props = _properties(new)
    old_required = _required(old)
    new_required = _required(new)
    changes: List[SchemaChange] = []

    names = list(old_props) + [name for name in new_props if name not in old_props]
    for name in names:
        path = f"properties.{name}"
        if name not in old_props:
            changes.append(SchemaChange(ChangeType.ADD, path, f"Added property '{name}'"))
        elif name not in new_props:
            changes.append(
                SchemaChange(
                    ChangeType.REMOVE,
                    path,
                    f"Removed property '{name}'",
                    is_breaking=name in (old_required or []),
                )
            )
        elif canonical_json(old_props[name]) != canonical_json(new_props[name]):
            changes.append(
                SchemaChange(
                    ChangeType.CHANGE,
                    path,
                    f"Changed property '{name}'",
                    is_breaking=_declared_type(old_props[name]) != _declared_type(new_props[name]),
                )
            )

    if old_required is not None and new_required is not None:
        added = [name for name in new_required if name not in old_required]
        removed = [name for name in old_required if name not in new_required]
        if added:
            changes.append(
                SchemaChange(
                    ChangeType.CHANGE,
                    "required",
                    f"Added required properties: {', '.join(added)}",
                    is_breaking=True,
                )
            )
        if removed:
            changes.append(
                SchemaChange(
                    ChangeType.CHANGE,
                    "required",
                    f"Removed required properties: {', '.join(removed)}",
                )
            )
    elif old_required and new_required is None:
        changes.append(
            SchemaChange(ChangeType.CHANGE, "required", "Removed all required properties")
        )
    elif new_required and old_required is None:
        changes.append(
            SchemaChange(
                ChangeType.CHANGE,
                "required",
                f"Added required properties: {', '.join(new_required)}",
                is_breaking=True,
            )
        )

    compatible = not any(change.is_breaking for change in changes)
    logger.debug(
        f"Compared schemas: {len(changes)} change(s), compatible={compatible}",
        extra={"changes": len(changes), "compatible": compatible},
    )
    return CompatibilityReport(compatible=compatible, changes=changes)
