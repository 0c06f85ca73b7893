"""
Canonical JSON helpers.

Used for schema fingerprints, uniqueItems/enum/const comparisons and
structural diffs. Key order never affects the canonical form.

Invariants:
    - canonical_json(a) == canonical_json(b) iff a and b are JSON-equal
    - Integral floats compare equal to ints (1 == 1.0), booleans never do
    - Callables are dropped from the canonical form
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any


def canonicalize(value: Any) -> Any:
    """Return a JSON-compatible copy of value with sorted keys.

    Args:
        value: Any schema or data value

    Returns:
        Plain dict/list/scalar structure suitable for json.dumps
    """
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, Mapping):
        return {
            str(key): canonicalize(item)
            for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))
            if not callable(item)
        }
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return repr(value)


def plain(value: Any) -> Any:
    """Like canonicalize() but keeps key order and numeric types.

    Used to persist authored schemas, where property order matters for
    documentation.
    """
    if isinstance(value, Mapping):
        return {str(key): plain(item) for key, item in value.items() if not callable(item)}
    if isinstance(value, (list, tuple)):
        return [plain(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def canonical_json(value: Any) -> str:
    """Serialize value to its canonical JSON string."""
    return json.dumps(
        canonicalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def content_key(value: Any) -> str:
    """Content key used to compare values structurally."""
    return canonical_json(value)


def fingerprint(schema: Any) -> str:
    """Compute SHA-256 fingerprint of a schema.

    Returns:
        Fingerprint string in format 'sha256:<hash>'
    """
    digest = hashlib.sha256(canonical_json(schema).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"
