"""
Sanitizer: reshape data to fit a schema without validating it.

sanitize() works on a deep copy of the input and never rejects anything.
Per value it:
    1. Strips markup from strings (`strip_html`), then trims them (`trim`)
    2. Coerces values whose kind does not match (`coerce_types`)
    3. Fills absent properties with their defaults (`use_defaults`)
    4. Drops undeclared properties when `additionalProperties` is false
       (`remove_additional`)

Invariants:
    - sanitize(sanitize(x)) == sanitize(x)
    - String cleanup runs before coercion, so " 42 " reaches 42 in one pass
    - Defaults are sanitized like any other value
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List

from .coercion import coerce
from .nodes import BUILTIN_KINDS, MISSING, RefResolver, SchemaNode
from .plugins import TypeRegistry
from .validator import compile_pattern, matches_builtin

HTML_TAG_RE = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class SanitizeOptions:
    """Flags for sanitize(); every step is on by default."""

    remove_additional: bool = True
    use_defaults: bool = True
    coerce_types: bool = True
    trim: bool = True
    strip_html: bool = True


class Sanitizer:
    """Sanitizes values against one root SchemaNode."""

    def __init__(self, root: SchemaNode, types: TypeRegistry, options: SanitizeOptions) -> None:
        self._refs = RefResolver(root)
        self._types = types
        self._options = options

    def sanitize(self, data: Any) -> Any:
        return self._sanitize(copy.deepcopy(data), self._refs.root, frozenset())

    def _sanitize(self, value: Any, node: SchemaNode, refs: frozenset) -> Any:
        if node.boolean is not None or value is None or value is MISSING:
            return value
        if node.ref is not None:
            if node.ref in refs:
                return value
            target = self._refs.resolve(node.ref)
            if target is None:
                return value
            return self._sanitize(value, target, refs | {node.ref})

        if isinstance(value, str):
            value = self._clean_string(value)
        if self._options.coerce_types and node.types:
            value = self._coerce(value, node)

        if isinstance(value, Mapping):
            value = self._sanitize_object(value, node)
        elif isinstance(value, (list, tuple)):
            value = self._sanitize_array(list(value), node)

        for branch in node.all_of:
            value = self._sanitize(value, branch, refs)
        return value

    def _clean_string(self, value: str) -> str:
        if self._options.strip_html:
            value = HTML_TAG_RE.sub("", value)
        if self._options.trim:
            value = value.strip()
        return value

    def _coerce(self, value: Any, node: SchemaNode) -> Any:
        for kind in node.types:
            if matches_builtin(value, kind):
                return value
            custom = self._types.get(kind)
            if custom is not None and custom.matches(value, node):
                return value
        for kind in node.types:
            if kind not in BUILTIN_KINDS:
                continue
            coerced = coerce(value, kind)
            if coerced is not MISSING and matches_builtin(coerced, kind):
                if isinstance(coerced, str):
                    coerced = self._clean_string(coerced)
                return coerced
        return value

    def _sanitize_object(self, value: Mapping, node: SchemaNode) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(value)
        for name, child in node.properties.items():
            if name not in result:
                if not self._options.use_defaults or child.default is MISSING:
                    continue
                result[name] = copy.deepcopy(child.default)
            result[name] = self._sanitize(result[name], child, frozenset())

        patterns = [(compile_pattern(p), child) for p, child in node.pattern_properties.items()]
        for name in list(result):
            if name in node.properties:
                continue
            matched = [child for regex, child in patterns if regex.search(name)]
            if matched:
                for child in matched:
                    result[name] = self._sanitize(result[name], child, frozenset())
            elif node.additional_properties is False and self._options.remove_additional:
                del result[name]
            elif isinstance(node.additional_properties, SchemaNode):
                result[name] = self._sanitize(
                    result[name], node.additional_properties, frozenset()
                )
        return result

    def _sanitize_array(self, value: List[Any], node: SchemaNode) -> List[Any]:
        if isinstance(node.items, SchemaNode):
            return [self._sanitize(item, node.items, frozenset()) for item in value]
        if isinstance(node.items, tuple):
            prefix = len(node.items)
            result = [
                self._sanitize(item, item_node, frozenset())
                for item, item_node in zip(value, node.items)
            ]
            rest = value[prefix:]
            if isinstance(node.additional_items, SchemaNode):
                rest = [self._sanitize(item, node.additional_items, frozenset()) for item in rest]
            return result + rest
        return value
