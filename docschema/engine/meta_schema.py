"""
Embedded schema-of-schemas.

A Draft-07 equivalent meta-schema used to check schema authoring before a
schema is registered. It also admits the engine's own extensions
(`nullable`, `patternError`, `example`, node-level `required: true`,
Draft-04 boolean exclusive bounds) and, through build_meta_schema(), the
names of registered custom types.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable

DRAFT07_URI = "http://json-schema.org/draft-07/schema#"

BUILTIN_TYPE_NAMES = ["array", "boolean", "integer", "null", "number", "object", "string"]

_SCHEMA_MAP = {"type": "object", "additionalProperties": {"$ref": "#"}, "default": {}}
_SCHEMA_LIST = {"type": "array", "items": {"$ref": "#"}}
_NON_NEGATIVE = {"type": "integer", "minimum": 0}

META_SCHEMA: Dict[str, Any] = {
    "$schema": DRAFT07_URI,
    "$id": DRAFT07_URI,
    "title": "Core schema meta-schema",
    "type": ["object", "boolean"],
    "properties": {
        "$id": {"type": "string", "format": "uri-reference"},
        "$schema": {"type": "string", "format": "uri"},
        "$ref": {"type": "string", "format": "uri-reference"},
        "title": {"type": "string"},
        "description": {"type": "string"},
        "default": True,
        "example": True,
        "examples": {"type": "array", "items": True},
        "nullable": {"type": "boolean"},
        "multipleOf": {"type": "number", "exclusiveMinimum": 0},
        "maximum": {"type": "number"},
        "exclusiveMaximum": {"type": ["number", "boolean"]},
        "minimum": {"type": "number"},
        "exclusiveMinimum": {"type": ["number", "boolean"]},
        "maxLength": _NON_NEGATIVE,
        "minLength": dict(_NON_NEGATIVE, default=0),
        "pattern": {"type": "string", "format": "regex"},
        "patternError": {"type": "string"},
        "additionalItems": {"$ref": "#"},
        "items": {"anyOf": [{"$ref": "#"}, _SCHEMA_LIST], "default": True},
        "maxItems": _NON_NEGATIVE,
        "minItems": dict(_NON_NEGATIVE, default=0),
        "uniqueItems": {"type": "boolean", "default": False},
        "contains": {"$ref": "#"},
        "maxProperties": _NON_NEGATIVE,
        "minProperties": dict(_NON_NEGATIVE, default=0),
        "required": {
            "anyOf": [
                {"type": "array", "items": {"type": "string"}, "uniqueItems": True},
                {"type": "boolean"},
            ],
            "default": [],
        },
        "additionalProperties": {"$ref": "#"},
        "definitions": _SCHEMA_MAP,
        "$defs": _SCHEMA_MAP,
        "properties": _SCHEMA_MAP,
        "patternProperties": _SCHEMA_MAP,
        "dependencies": {
            "type": "object",
            "additionalProperties": {
                "anyOf": [
                    {"$ref": "#"},
                    {"type": "array", "items": {"type": "string"}, "uniqueItems": True},
                ]
            },
        },
        "propertyNames": {"$ref": "#"},
        "const": True,
        "enum": {"type": "array", "items": True, "minItems": 1, "uniqueItems": True},
        "type": {
            "anyOf": [
                {"enum": BUILTIN_TYPE_NAMES},
                {
                    "type": "array",
                    "items": {"enum": BUILTIN_TYPE_NAMES},
                    "minItems": 1,
                    "uniqueItems": True,
                },
            ]
        },
        "format": {"type": "string"},
        "allOf": _SCHEMA_LIST,
        "anyOf": _SCHEMA_LIST,
        "oneOf": _SCHEMA_LIST,
        "not": {"$ref": "#"},
    },
    "default": True,
}


def build_meta_schema(custom_type_names: Iterable[str] = ()) -> Dict[str, Any]:
    """Return the meta-schema with `type` extended by custom type names.

    Args:
        custom_type_names: Names registered in the engine's TypeRegistry

    Returns:
        A fresh meta-schema dict (the module constant is never modified)
    """
    meta = copy.deepcopy(META_SCHEMA)
    names = BUILTIN_TYPE_NAMES + sorted(set(custom_type_names) - set(BUILTIN_TYPE_NAMES))
    type_rule = meta["properties"]["type"]["anyOf"]
    type_rule[0]["enum"] = names
    type_rule[1]["items"]["enum"] = list(names)
    return meta
