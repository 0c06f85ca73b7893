"""
Type coercion rules.

coerce(value, kind) converts a value to a declared built-in kind or
returns MISSING when no rule applies. Coercion never raises.

Rules:
    string  <- number, boolean, date/datetime (ISO 8601)
    number  <- numeric-literal string, boolean (0/1)
    integer <- integer-literal string, number (floored), boolean (0/1)
    boolean <- "true"/"1"/"yes", "false"/"0"/"no" (any case), number (!= 0)
    array   <- JSON array string, otherwise comma-split string
    object  <- JSON object string
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from .nodes import MISSING

NUMBER_LITERAL_RE = re.compile(r"^-?\d+(\.\d+)?$")
INTEGER_LITERAL_RE = re.compile(r"^-?\d+$")
TRUE_RE = re.compile(r"^(true|1|yes)$", re.IGNORECASE)
FALSE_RE = re.compile(r"^(false|0|no)$", re.IGNORECASE)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_string(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return MISSING


def _to_number(value: Any) -> Any:
    if isinstance(value, str) and NUMBER_LITERAL_RE.match(value):
        return float(value) if "." in value else int(value)
    if isinstance(value, bool):
        return int(value)
    return MISSING


def _to_integer(value: Any) -> Any:
    if isinstance(value, str) and INTEGER_LITERAL_RE.match(value):
        return int(value)
    if isinstance(value, bool):
        return int(value)
    if _is_number(value) and math.isfinite(value):
        return math.floor(value)
    return MISSING


def _to_boolean(value: Any) -> Any:
    if isinstance(value, str):
        if TRUE_RE.match(value):
            return True
        if FALSE_RE.match(value):
            return False
        return MISSING
    if _is_number(value):
        return value != 0
    return MISSING


def _to_array(value: Any) -> Any:
    if not isinstance(value, str):
        return MISSING
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = MISSING
    if isinstance(parsed, list):
        return parsed
    return [part.strip() for part in value.split(",")]


def _to_object(value: Any) -> Any:
    if not isinstance(value, str):
        return MISSING
    try:
        parsed = json.loads(value)
    except ValueError:
        return MISSING
    return parsed if isinstance(parsed, Mapping) else MISSING


_RULES = {
    "string": _to_string,
    "number": _to_number,
    "integer": _to_integer,
    "boolean": _to_boolean,
    "array": _to_array,
    "object": _to_object,
}


def coerce(value: Any, kind: str) -> Any:
    """Coerce value to kind.

    Args:
        value: Value that failed the kind check
        kind: Target built-in kind name

    Returns:
        The coerced value, or MISSING if no rule converts it
    """
    rule = _RULES.get(kind)
    if rule is None:
        return MISSING
    return rule(value)
