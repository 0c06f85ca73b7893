"""
Deterministic sample generation.

generate() builds a representative instance of a schema. Identical input
always yields an identical sample: built-in format samples are fixed
strings and nothing reads the clock or a random source.

Selection order per node:
    example (use_examples) -> default (use_defaults) -> const -> enum[0]
    -> per-kind synthesis of the first declared kind

Known limits:
    - A `pattern` without an example yields the placeholder
      "Pattern: <regex>", which need not match the pattern
    - Arrays with uniqueItems derive later items from the first one (next
      enum entry, number offset by multipleOf or 1, string with an index
      suffix); formatted strings and objects are repeated as is
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .nodes import MISSING, RefResolver, SchemaNode
from .plugins import FormatRegistry, TypeRegistry
from .validator import is_number

DEFAULT_ARRAY_CAP = 5
FILLER = "sample"
FILLER_LENGTH = 6


@dataclass(frozen=True)
class SampleOptions:
    use_examples: bool = True
    use_defaults: bool = True
    required_only: bool = False


class SampleGenerator:
    """Generates samples for one root SchemaNode."""

    def __init__(
        self,
        root: SchemaNode,
        types: TypeRegistry,
        formats: FormatRegistry,
        options: SampleOptions,
    ) -> None:
        self._refs = RefResolver(root)
        self._types = types
        self._formats = formats
        self._options = options

    def generate(self) -> Any:
        value = self._generate(self._refs.root, frozenset())
        return None if value is MISSING else value

    def _generate(self, node: SchemaNode, refs: frozenset) -> Any:
        if node.boolean is not None:
            return None
        if node.ref is not None:
            # Recursive references stop here; optional properties are dropped
            if node.ref in refs:
                return MISSING
            target = self._refs.resolve(node.ref)
            return MISSING if target is None else self._generate(target, refs | {node.ref})

        if self._options.use_examples and node.example is not MISSING:
            return copy.deepcopy(node.example)
        if self._options.use_defaults and node.default is not MISSING:
            return copy.deepcopy(node.default)
        if node.const is not MISSING:
            return copy.deepcopy(node.const)
        if node.enum:
            return copy.deepcopy(node.enum[0])

        if not node.types:
            branch = self._combinator_branch(node)
            if branch is not None:
                return self._generate(branch, refs)

        kind = node.primary_kind or self._infer_kind(node)
        if kind == "object":
            return self._object(node, refs)
        if kind == "array":
            return self._array(node, refs)
        if kind == "string":
            return self._string(node)
        if kind in ("number", "integer"):
            return self._number(node, integer=kind == "integer")
        if kind == "boolean":
            return False
        if kind == "null":
            return None
        custom = self._types.get(kind)
        if custom is not None and custom.sample is not None:
            return custom.sample(node)
        return None

    @staticmethod
    def _infer_kind(node: SchemaNode) -> str:
        if node.items is not None:
            return "array"
        if any(bound is not None for bound in (node.min_length, node.max_length, node.pattern, node.format)):
            return "string"
        if any(bound is not None for bound in (node.minimum, node.maximum, node.multiple_of)):
            return "number"
        return "object"

    @staticmethod
    def _combinator_branch(node: SchemaNode) -> Optional[SchemaNode]:
        if node.all_of:
            merged: Dict[str, Any] = {}
            properties: Dict[str, Any] = {}
            required: List[str] = []
            for branch in node.all_of:
                if not isinstance(branch.raw, dict):
                    continue
                merged.update(branch.raw)
                properties.update(branch.raw.get("properties") or {})
                for name in branch.required:
                    if name not in required:
                        required.append(name)
            if properties:
                merged["properties"] = properties
            if required:
                merged["required"] = required
            return SchemaNode.parse(merged)
        if node.any_of:
            return node.any_of[0]
        if node.one_of:
            return node.one_of[0]
        return None

    def _object(self, node: SchemaNode, refs: frozenset) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for name, child in node.properties.items():
            if self._options.required_only and name not in node.required and not child.required_flag:
                continue
            value = self._generate(child, refs)
            if value is not MISSING:
                result[name] = value
        for name in node.required:
            if name not in node.properties and name not in result:
                result[name] = FILLER

        if node.min_properties and node.additional_properties is not False:
            extra = node.additional_properties
            index = 1
            while len(result) < node.min_properties:
                name = f"property{index}"
                index += 1
                if name in result:
                    continue
                value = self._generate(extra, refs) if isinstance(extra, SchemaNode) else FILLER
                result[name] = None if value is MISSING else value
        return result

    def _array(self, node: SchemaNode, refs: frozenset) -> List[Any]:
        min_items = int(node.min_items or 0)
        if node.items is None:
            return [f"{FILLER}{index + 1}" for index in range(min_items)]
        cap = int(node.max_items) if node.max_items is not None else max(DEFAULT_ARRAY_CAP, min_items)
        count = max(min_items, min(min_items + 1, cap))
        if node.unique_items:
            count = max(min_items, min(1, cap))

        if isinstance(node.items, tuple):
            limit = len(node.items) if node.max_items is None else min(len(node.items), cap)
            samples = [self._generate(item, refs) for item in node.items[:limit]]
            return [None if value is MISSING else value for value in samples]

        result = []
        for index in range(count):
            value = self._generate(node.items, refs)
            if value is MISSING:
                break
            if node.unique_items and index:
                value = self._variant(node.items, value, index)
            result.append(value)
        return result

    def _variant(self, node: SchemaNode, value: Any, index: int) -> Any:
        """Derive the index-th distinct item from the first item sample."""
        if node.ref is not None:
            target = self._refs.resolve(node.ref)
            if target is None:
                return value
            node = target
        if node.enum and index < len(node.enum):
            return copy.deepcopy(node.enum[index])
        if isinstance(value, bool):
            return not value if index == 1 else value
        if is_number(value):
            step = node.multiple_of or 1
            candidate = value + index * step
            if (node.maximum is not None and candidate > node.maximum) or (
                is_number(node.exclusive_maximum) and candidate >= node.exclusive_maximum
            ):
                candidate = value - index * step
            return candidate
        if isinstance(value, str) and node.format is None:
            suffix = str(index)
            if node.max_length is not None and len(value) + len(suffix) > node.max_length:
                return value[: max(int(node.max_length) - len(suffix), 0)] + suffix
            return value + suffix
        return value

    def _string(self, node: SchemaNode) -> str:
        if node.format is not None:
            custom = self._formats.get(node.format)
            if custom is not None and custom.sample is not None:
                return custom.sample()
        if node.pattern is not None:
            return f"Pattern: {node.pattern}"
        target = max(int(node.min_length or 0), FILLER_LENGTH)
        if node.max_length is not None:
            target = min(target, int(node.max_length))
        repeats = target // len(FILLER) + 1
        return (FILLER * repeats)[:target]

    @staticmethod
    def _number(node: SchemaNode, integer: bool) -> Any:
        step = node.multiple_of
        lower: Optional[float] = node.minimum
        strict_lower = node.exclusive_minimum is True
        if is_number(node.exclusive_minimum) and (lower is None or node.exclusive_minimum >= lower):
            lower, strict_lower = node.exclusive_minimum, True
        upper: Optional[float] = node.maximum
        strict_upper = node.exclusive_maximum is True
        if is_number(node.exclusive_maximum) and (upper is None or node.exclusive_maximum <= upper):
            upper, strict_upper = node.exclusive_maximum, True

        if lower is not None:
            value = lower
        elif upper is not None and upper < 0:
            value = upper
        else:
            value = 0

        if step:
            value = math.ceil(value / step) * step
        if integer:
            value = math.ceil(value)
        if strict_lower and lower is not None and value <= lower:
            value = value + (step or 1)
        if upper is not None and (value > upper or (strict_upper and value >= upper)):
            value = upper - (step or 1) if strict_upper else upper
            if step:
                value = math.floor(value / step) * step
        if lower is not None and upper is not None and (value < lower or (strict_lower and value <= lower)):
            # Interval narrower than one step
            value = (lower + upper) / 2

        if integer or (isinstance(value, float) and value.is_integer()):
            return int(value)
        return value
