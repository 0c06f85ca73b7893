"""
Schema engine: parse, validate, coerce, sanitize, sample and document.

Everything in this package is pure and synchronous. The only shared state
is the pair of plugin registries, which the SchemaEngine freezes at
construction.
"""

from .engine import SchemaEngine, SchemaLike
from .meta_schema import META_SCHEMA, build_meta_schema
from .nodes import MISSING, Kind, SchemaNode
from .plugins import CustomFormat, CustomType, FormatRegistry, TypeRegistry
from .validator import (
    ValidationContext,
    ValidationError,
    ValidationOptions,
    ValidationResult,
    Validator,
)

__all__ = [
    "SchemaEngine",
    "SchemaLike",
    "META_SCHEMA",
    "build_meta_schema",
    "MISSING",
    "Kind",
    "SchemaNode",
    "CustomFormat",
    "CustomType",
    "FormatRegistry",
    "TypeRegistry",
    "ValidationContext",
    "ValidationError",
    "ValidationOptions",
    "ValidationResult",
    "Validator",
]
