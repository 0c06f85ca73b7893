"""
Schema node tree for the docschema engine.

This module turns an authored schema (a dict or a boolean) into an
immutable tree of SchemaNode objects:
- Kind: built-in value kinds (string, number, integer, ...)
- SchemaNode: one constraint-bearing node with nested children
- MISSING: sentinel for "no value" (absent property, unset keyword)

Invariants:
    - Nodes are frozen once parsed; a new schema version is a new tree
    - `raw` always holds the authored mapping the node was parsed from
    - Declared kinds not in Kind are custom type names
    - `$ref` is kept as a string and resolved against the root at
      validation time

How to change safely:
    - Add new keywords as optional fields with MISSING/None defaults
    - Keep from_dict tolerant of unknown keywords (they are ignored)

Example:
    >>> node = SchemaNode.parse({"type": "string", "minLength": 1})
    >>> node.types
    ('string',)
    >>> node.min_length
    1
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union
from urllib.parse import unquote

from ..errors import InvalidSchemaError


class _Missing:
    """Marker for an absent value (distinct from None / JSON null)."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __deepcopy__(self, memo: dict) -> "_Missing":
        return self


MISSING: Any = _Missing()


class Kind(Enum):
    """Built-in value kinds.

    A node may declare several kinds; any name outside this enum is looked
    up in the custom type registry.
    """

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"

    @classmethod
    def from_str(cls, value: str) -> Optional[Kind]:
        """Return the built-in kind for value, or None for custom names."""
        for kind in cls:
            if kind.value == value:
                return kind
        return None


BUILTIN_KINDS = frozenset(kind.value for kind in Kind)


def runtime_kind(value: Any) -> str:
    """Describe the runtime shape of a Python value in schema terms.

    Returns one of: string, number, boolean, object, array, null, or the
    Python type name for anything else.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


ItemsSpec = Union["SchemaNode", tuple["SchemaNode", ...], None]
AdditionalSpec = Union[bool, "SchemaNode", None]


@dataclass(frozen=True, eq=False)
class SchemaNode:
    """One node of a parsed schema tree.

    Attributes:
        types: Declared kinds (empty = any kind)
        boolean: True/False for boolean schemas, None otherwise
        ref: Unresolved `$ref` pointer
        properties: Child nodes by property name
        pattern_properties: Child nodes keyed by property-name regex
        required: Names listed in the object's `required` array
        required_flag: Node-level `required: true`
        additional_properties: False, a node, or None (unrestricted)
        items: A single node (every element) or a tuple (positional)
        additional_items: False, a node, or None for tuple remainders
        validator: Optional custom predicate called as (value, context)
        raw: The authored mapping
    """

    types: tuple[str, ...] = ()
    boolean: Optional[bool] = None
    ref: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    default: Any = MISSING
    example: Any = MISSING
    enum: Optional[tuple[Any, ...]] = None
    const: Any = MISSING
    nullable: bool = False
    required_flag: bool = False
    # string
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    pattern_error: Optional[str] = None
    format: Optional[str] = None
    # number
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Union[bool, float, None] = None
    exclusive_maximum: Union[bool, float, None] = None
    multiple_of: Optional[float] = None
    # object
    properties: dict[str, SchemaNode] = field(default_factory=dict)
    pattern_properties: dict[str, SchemaNode] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    additional_properties: AdditionalSpec = None
    min_properties: Optional[int] = None
    max_properties: Optional[int] = None
    # array
    items: ItemsSpec = None
    additional_items: AdditionalSpec = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: bool = False
    # combinators
    all_of: tuple[SchemaNode, ...] = ()
    any_of: tuple[SchemaNode, ...] = ()
    one_of: tuple[SchemaNode, ...] = ()
    not_: Optional[SchemaNode] = None
    validator: Optional[Callable[..., Any]] = None
    raw: Any = field(default_factory=dict)

    @property
    def allows_null(self) -> bool:
        """Whether JSON null is acceptable for this node."""
        if self.nullable or not self.types or Kind.NULL.value in self.types:
            return True
        return self.enum is not None and None in self.enum

    @property
    def primary_kind(self) -> Optional[str]:
        """First declared kind, used by coercion and sample generation."""
        return self.types[0] if self.types else None

    def has_kind(self, kind: Union[Kind, str]) -> bool:
        value = kind.value if isinstance(kind, Kind) else kind
        return value in self.types

    @classmethod
    def parse(cls, schema: Any) -> SchemaNode:
        """Parse an authored schema into a node tree.

        Args:
            schema: Mapping, boolean, or an already parsed SchemaNode

        Returns:
            Root SchemaNode

        Raises:
            InvalidSchemaError: If the schema or a keyword is malformed
        """
        if isinstance(schema, SchemaNode):
            return schema
        if isinstance(schema, bool):
            return cls(boolean=schema, raw=schema)
        if not isinstance(schema, Mapping):
            raise InvalidSchemaError(
                f"Schema must be an object or boolean, got {type(schema).__name__}"
            )
        return cls.from_dict(schema)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SchemaNode:
        """Create a node from its dictionary representation."""
        kinds = data.get("type")
        if kinds is None:
            types: tuple[str, ...] = ()
        elif isinstance(kinds, str):
            types = (kinds,)
        elif isinstance(kinds, (list, tuple)) and all(isinstance(k, str) for k in kinds):
            types = tuple(kinds)
        else:
            raise InvalidSchemaError(f"Invalid 'type' value: {kinds!r}")

        required = data.get("required")
        required_flag = required is True
        if isinstance(required, (list, tuple)):
            required_names = tuple(str(name) for name in required)
        else:
            required_names = ()

        example = data.get("example", MISSING)
        examples = data.get("examples")
        if example is MISSING and isinstance(examples, (list, tuple)) and examples:
            example = examples[0]

        enum = data.get("enum")
        if enum is not None and not isinstance(enum, (list, tuple)):
            raise InvalidSchemaError(f"Invalid 'enum' value: {enum!r}")

        validator = data.get("validate")
        if validator is not None and not callable(validator):
            validator = None

        ref = data.get("$ref")
        if ref is not None and not isinstance(ref, str):
            raise InvalidSchemaError(f"Invalid '$ref' value: {ref!r}")

        return cls(
            types=types,
            ref=ref,
            title=data.get("title"),
            description=data.get("description"),
            default=data.get("default", MISSING),
            example=example,
            enum=tuple(enum) if enum is not None else None,
            const=data.get("const", MISSING),
            nullable=data.get("nullable") is True,
            required_flag=required_flag,
            min_length=_number(data, "minLength"),
            max_length=_number(data, "maxLength"),
            pattern=_string(data, "pattern"),
            pattern_error=_string(data, "patternError"),
            format=_string(data, "format"),
            minimum=_number(data, "minimum"),
            maximum=_number(data, "maximum"),
            exclusive_minimum=_bound(data, "exclusiveMinimum"),
            exclusive_maximum=_bound(data, "exclusiveMaximum"),
            multiple_of=_positive(data, "multipleOf"),
            properties=_children(data, "properties"),
            pattern_properties=_children(data, "patternProperties"),
            required=required_names,
            additional_properties=_additional(data, "additionalProperties"),
            min_properties=_number(data, "minProperties"),
            max_properties=_number(data, "maxProperties"),
            items=_items(data),
            additional_items=_additional(data, "additionalItems"),
            min_items=_number(data, "minItems"),
            max_items=_number(data, "maxItems"),
            unique_items=data.get("uniqueItems") is True,
            all_of=_branches(data, "allOf"),
            any_of=_branches(data, "anyOf"),
            one_of=_branches(data, "oneOf"),
            not_=cls.parse(data["not"]) if "not" in data else None,
            validator=validator,
            raw=data,
        )


def resolve_ref(root: SchemaNode, ref: str) -> Optional[SchemaNode]:
    """Resolve a local `$ref` (JSON pointer) against the root schema.

    Supports "#" and "#/..." pointers (e.g. "#/definitions/address").

    Returns:
        The referenced node, or None if the pointer does not resolve
    """
    if ref == "#":
        return root
    if not ref.startswith("#/"):
        return None
    target: Any = root.raw
    for token in ref[2:].split("/"):
        token = unquote(token).replace("~1", "/").replace("~0", "~")
        if isinstance(target, Mapping) and token in target:
            target = target[token]
        elif isinstance(target, list) and token.isdigit() and int(token) < len(target):
            target = target[int(token)]
        else:
            return None
    return SchemaNode.parse(target)


class RefResolver:
    """Caches `$ref` lookups for one root schema."""

    def __init__(self, root: SchemaNode) -> None:
        self.root = root
        self._cache: dict[str, Optional[SchemaNode]] = {}

    def resolve(self, ref: str) -> Optional[SchemaNode]:
        if ref not in self._cache:
            self._cache[ref] = resolve_ref(self.root, ref)
        return self._cache[ref]


def _number(data: Mapping[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidSchemaError(f"Keyword '{key}' must be a number, got {value!r}")
    return value


def _positive(data: Mapping[str, Any], key: str) -> Optional[float]:
    value = _number(data, key)
    if value is not None and value <= 0:
        raise InvalidSchemaError(f"Keyword '{key}' must be greater than 0, got {value!r}")
    return value


def _string(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidSchemaError(f"Keyword '{key}' must be a string, got {value!r}")
    return value


def _bound(data: Mapping[str, Any], key: str) -> Union[bool, float, None]:
    # Draft-04 style boolean flag or Draft-06+ numeric bound
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return value
    return _number(data, key)


def _children(data: Mapping[str, Any], key: str) -> dict[str, SchemaNode]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidSchemaError(f"Keyword '{key}' must be an object")
    return {str(name): SchemaNode.parse(child) for name, child in value.items()}


def _additional(data: Mapping[str, Any], key: str) -> AdditionalSpec:
    value = data.get(key)
    if value is None or value is True:
        return None
    if value is False:
        return False
    return SchemaNode.parse(value)


def _items(data: Mapping[str, Any]) -> ItemsSpec:
    value = data.get("items")
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return tuple(SchemaNode.parse(item) for item in value)
    return SchemaNode.parse(value)


def _branches(data: Mapping[str, Any], key: str) -> tuple[SchemaNode, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise InvalidSchemaError(f"Keyword '{key}' must be an array of schemas")
    return tuple(SchemaNode.parse(branch) for branch in value)
