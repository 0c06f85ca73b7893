"""
Recursive validator for docschema.

The validator walks a SchemaNode tree alongside a data value and collects
every violation it finds. It is pure: each step returns a (valid, value)
pair and containers are rebuilt rather than mutated, so coercion, defaults
and additional-property removal show up only in ValidationResult.data.

Invariants:
    - Validation never stops at the first error; sibling properties and
      items are always visited
    - Within a string or number node the first failing constraint ends the
      checks for that node
    - Custom hooks run only when every other check on the node passed, and
      their exceptions become `custom` errors
    - A custom type or format plugin that raises counts as a failed check
      (`type` / `format` error)
    - The caller's data is never modified

How to change safely:
    - New keywords get their own _check_* step and error type
    - Keep error detail keys stable; they are part of the output format
"""

from __future__ import annotations

import copy
import difflib
import functools
import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..canonical import content_key
from ..errors import InvalidSchemaError
from .coercion import coerce
from .nodes import BUILTIN_KINDS, MISSING, RefResolver, SchemaNode, runtime_kind
from .plugins import FormatRegistry, TypeRegistry

logger = logging.getLogger(__name__)

MULTIPLE_OF_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ValidationOptions:
    """Flags for a single validate() call."""

    throw_on_error: bool = False
    remove_additional: bool = False
    use_defaults: bool = False
    coerce_types: bool = False


@dataclass(frozen=True)
class ValidationContext:
    """Traversal state handed down the recursion and to custom hooks.

    Attributes:
        path: Dotted/bracketed path of the current value ("" at the root)
        options: Active options
        key: Property name or index of the current value in its parent
        refs: `$ref` pointers followed at this path (cycle guard)
    """

    path: str = ""
    options: ValidationOptions = field(default_factory=ValidationOptions)
    key: Any = None
    refs: frozenset = frozenset()

    def child(self, name: str) -> ValidationContext:
        path = f"{self.path}.{name}" if self.path else name
        return replace(self, path=path, key=name, refs=frozenset())

    def item(self, index: int) -> ValidationContext:
        return replace(self, path=f"{self.path}[{index}]", key=index, refs=frozenset())


@dataclass
class ValidationError:
    """One violation found during validation.

    Attributes:
        type: Error type (required, type, enum, minLength, ...)
        path: Path of the offending value
        message: Human-readable message
        details: Type-specific fields (limit, expected_types, ...)
    """

    type: str
    path: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {"type": self.type, "path": self.path, "message": self.message}
        result.update(self.details)
        return result


@dataclass
class ValidationResult:
    """Outcome of a validate() call.

    Attributes:
        valid: True when no error was collected
        errors: Every violation, in traversal order
        data: The validated value after coercion, defaults and removal
    """

    valid: bool
    errors: List[ValidationError]
    data: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "data": self.data,
        }


ErrorFormatter = Callable[[ValidationError], ValidationError]


@functools.lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern:
    """Compile a schema regex, raising InvalidSchemaError when malformed."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidSchemaError(f"Invalid pattern {pattern!r}: {e}") from e


def is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not (isinstance(value, float) and math.isnan(value))
    )


def matches_builtin(value: Any, kind: str) -> bool:
    """Check value against a built-in kind."""
    if kind == "string":
        return isinstance(value, str)
    if kind == "number":
        return is_number(value)
    if kind == "integer":
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        return isinstance(value, float) and value.is_integer()
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "object":
        return isinstance(value, Mapping)
    if kind == "array":
        return isinstance(value, (list, tuple))
    if kind == "null":
        return value is None
    return False


def is_multiple_of(value: Any, divisor: Any) -> bool:
    """multipleOf check.

    Integers are compared exactly. Otherwise the quotient must lie within
    1e-9 * max(1, |quotient|) of an integer.
    """
    if divisor == 0:
        return False
    if isinstance(value, int) and isinstance(divisor, int):
        return value % divisor == 0
    quotient = value / divisor
    if not math.isfinite(quotient):
        return False
    return abs(quotient - round(quotient)) <= MULTIPLE_OF_TOLERANCE * max(1.0, abs(quotient))


def _format_literal(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Validator:
    """Validates data against one root SchemaNode.

    A Validator is bound to a root schema (for `$ref` resolution) and the
    engine's plugin registries. It holds no per-call state apart from the
    `$ref` cache, so a single instance may be reused.

    Example:
        >>> node = SchemaNode.parse({"type": "integer", "minimum": 0})
        >>> Validator(node, TypeRegistry.with_defaults(),
        ...           FormatRegistry.with_defaults()).validate(-1).valid
        False
    """

    def __init__(
        self,
        root: SchemaNode,
        types: TypeRegistry,
        formats: FormatRegistry,
        error_formatter: Optional[ErrorFormatter] = None,
    ) -> None:
        self._root = root
        self._types = types
        self._formats = formats
        self._error_formatter = error_formatter
        self._refs = RefResolver(root)

    def validate(self, data: Any, options: Optional[ValidationOptions] = None) -> ValidationResult:
        """Validate data and collect all errors.

        Args:
            data: Value to validate (MISSING for "no value")
            options: Validation flags

        Returns:
            ValidationResult with all errors and the transformed data
        """
        options = options or ValidationOptions()
        errors: List[ValidationError] = []
        context = ValidationContext(options=options)
        valid, value = self._validate(data, self._root, errors, context)
        if self._error_formatter is not None:
            errors = [self._error_formatter(error) for error in errors]
        return ValidationResult(
            valid=valid and not errors,
            errors=errors,
            data=None if value is MISSING else value,
        )

    # ------------------------------------------------------------------
    # Recursion
    # ------------------------------------------------------------------

    def _validate(
        self,
        value: Any,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> Tuple[bool, Any]:
        if node.boolean is not None:
            if node.boolean or value is MISSING:
                return True, value
            errors.append(
                ValidationError("falseSchema", context.path, "No value is allowed here")
            )
            return False, value

        if node.ref is not None:
            return self._validate_ref(value, node.ref, errors, context)

        if value is MISSING:
            if context.options.use_defaults and node.default is not MISSING:
                value = copy.deepcopy(node.default)
            elif node.required_flag:
                errors.append(
                    ValidationError("required", context.path, "Required value is missing")
                )
                return False, value
            else:
                return True, value

        if value is None:
            if not node.allows_null:
                errors.append(
                    ValidationError(
                        "type",
                        context.path,
                        "Value must not be null",
                        {"expected_types": list(node.types), "actual_type": "null"},
                    )
                )
                return False, value
        elif node.types:
            matched, value = self._check_kind(value, node, errors, context)
            if not matched:
                return False, value

        if not self._check_literals(value, node, errors, context):
            return False, value

        valid = True
        if isinstance(value, str):
            valid = self._check_string(value, node, errors, context)
        elif is_number(value):
            valid = self._check_number(value, node, errors, context)
        elif isinstance(value, Mapping):
            valid, value = self._check_object(value, node, errors, context)
        elif isinstance(value, (list, tuple)):
            valid, value = self._check_array(value, node, errors, context)

        if node.all_of or node.any_of or node.one_of or node.not_ is not None:
            combined, value = self._check_combinators(value, node, errors, context)
            valid = valid and combined

        if valid and node.validator is not None:
            valid = self._run_hook(value, node, errors, context)

        return valid, value

    def _validate_ref(
        self,
        value: Any,
        ref: str,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> Tuple[bool, Any]:
        if ref in context.refs:
            errors.append(
                ValidationError("ref", context.path, f"Circular reference: {ref}", {"ref": ref})
            )
            return False, value
        target = self._refs.resolve(ref)
        if target is None:
            errors.append(
                ValidationError(
                    "ref", context.path, f"Cannot resolve reference: {ref}", {"ref": ref}
                )
            )
            return False, value
        return self._validate(value, target, errors, replace(context, refs=context.refs | {ref}))

    # ------------------------------------------------------------------
    # Kind and literal checks
    # ------------------------------------------------------------------

    def _matches(self, value: Any, kind: str, node: SchemaNode) -> bool:
        if matches_builtin(value, kind):
            return True
        custom = self._types.get(kind)
        return custom is not None and custom.matches(value, node)

    def _check_kind(
        self,
        value: Any,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> Tuple[bool, Any]:
        if any(self._matches(value, kind, node) for kind in node.types):
            return True, value

        if context.options.coerce_types:
            for kind in node.types:
                if kind not in BUILTIN_KINDS:
                    continue
                coerced = coerce(value, kind)
                if coerced is not MISSING and matches_builtin(coerced, kind):
                    return True, coerced

        actual = runtime_kind(value)
        errors.append(
            ValidationError(
                "type",
                context.path,
                f"Expected {' or '.join(node.types)}, got {actual}",
                {"expected_types": list(node.types), "actual_type": actual},
            )
        )
        return False, value

    def _check_literals(
        self,
        value: Any,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> bool:
        if node.enum is not None:
            allowed = {content_key(option) for option in node.enum}
            if content_key(value) not in allowed:
                errors.append(
                    ValidationError(
                        "enum",
                        context.path,
                        "Value must be one of: "
                        + ", ".join(_format_literal(option) for option in node.enum),
                        {"allowed_values": list(node.enum)},
                    )
                )
                return False
        if node.const is not MISSING and content_key(value) != content_key(node.const):
            errors.append(
                ValidationError(
                    "const",
                    context.path,
                    f"Value must be equal to {_format_literal(node.const)}",
                    {"allowed_value": node.const},
                )
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Kind-specific checks
    # ------------------------------------------------------------------

    def _check_string(
        self,
        value: str,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> bool:
        path = context.path
        if node.min_length is not None and len(value) < node.min_length:
            errors.append(
                ValidationError(
                    "minLength",
                    path,
                    f"String must be at least {node.min_length} characters long",
                    {"min_length": node.min_length, "actual_length": len(value)},
                )
            )
            return False
        if node.max_length is not None and len(value) > node.max_length:
            errors.append(
                ValidationError(
                    "maxLength",
                    path,
                    f"String must be at most {node.max_length} characters long",
                    {"max_length": node.max_length, "actual_length": len(value)},
                )
            )
            return False
        if node.pattern is not None and not compile_pattern(node.pattern).search(value):
            errors.append(
                ValidationError(
                    "pattern",
                    path,
                    node.pattern_error or f"String must match pattern: {node.pattern}",
                    {"pattern": node.pattern},
                )
            )
            return False
        if node.format is not None:
            custom = self._formats.get(node.format)
            if custom is not None and not custom.accepts(value):
                errors.append(
                    ValidationError(
                        "format",
                        path,
                        custom.error or f"String must be valid {node.format}",
                        {"format": node.format},
                    )
                )
                return False
        return True

    def _check_number(
        self,
        value: Any,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> bool:
        path = context.path

        def bound_error(kind: str, limit: Any, exclusive: bool) -> None:
            if kind == "minimum":
                relation = "greater than" if exclusive else "greater than or equal to"
            else:
                relation = "less than" if exclusive else "less than or equal to"
            errors.append(
                ValidationError(
                    kind,
                    path,
                    f"Number must be {relation} {limit}",
                    {"limit": limit, "exclusive": exclusive, "actual": value},
                )
            )

        if node.minimum is not None:
            exclusive = node.exclusive_minimum is True
            if value < node.minimum or (exclusive and value == node.minimum):
                bound_error("minimum", node.minimum, exclusive)
                return False
        if is_number(node.exclusive_minimum) and value <= node.exclusive_minimum:
            bound_error("minimum", node.exclusive_minimum, True)
            return False
        if node.maximum is not None:
            exclusive = node.exclusive_maximum is True
            if value > node.maximum or (exclusive and value == node.maximum):
                bound_error("maximum", node.maximum, exclusive)
                return False
        if is_number(node.exclusive_maximum) and value >= node.exclusive_maximum:
            bound_error("maximum", node.exclusive_maximum, True)
            return False
        if node.multiple_of is not None and not is_multiple_of(value, node.multiple_of):
            errors.append(
                ValidationError(
                    "multipleOf",
                    path,
                    f"Number must be a multiple of {node.multiple_of}",
                    {"multiple_of": node.multiple_of, "actual": value},
                )
            )
            return False
        return True

    def _check_object(
        self,
        value: Mapping,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> Tuple[bool, Dict[str, Any]]:
        valid = True
        result: Dict[str, Any] = dict(value)

        for name, child in node.properties.items():
            ok, child_value = self._validate(
                result.get(name, MISSING), child, errors, context.child(name)
            )
            valid = valid and ok
            if child_value is not MISSING:
                result[name] = child_value

        patterns = [(compile_pattern(p), child) for p, child in node.pattern_properties.items()]
        for name in list(result):
            for regex, child in patterns:
                if regex.search(name):
                    ok, result[name] = self._validate(
                        result[name], child, errors, context.child(name)
                    )
                    valid = valid and ok

        for name in node.required:
            declared = node.properties.get(name)
            if name in result or (declared is not None and declared.required_flag):
                continue
            errors.append(
                ValidationError(
                    "required",
                    context.child(name).path,
                    f"Required property '{name}' is missing",
                    {"missing_property": name},
                )
            )
            valid = False

        extras = [
            name
            for name in result
            if name not in node.properties and not any(r.search(name) for r, _ in patterns)
        ]
        if node.additional_properties is False:
            for name in extras:
                suggestions = difflib.get_close_matches(name, list(node.properties), n=3, cutoff=0.6)
                message = f"Additional property '{name}' is not allowed"
                if suggestions:
                    message += f". Did you mean '{suggestions[0]}'?"
                errors.append(
                    ValidationError(
                        "additionalProperties",
                        context.child(name).path,
                        message,
                        {"additional_property": name, "suggestions": suggestions},
                    )
                )
                valid = False
                if context.options.remove_additional:
                    del result[name]
        elif isinstance(node.additional_properties, SchemaNode):
            for name in extras:
                ok, result[name] = self._validate(
                    result[name], node.additional_properties, errors, context.child(name)
                )
                valid = valid and ok

        count = len(result)
        if node.min_properties is not None and count < node.min_properties:
            errors.append(
                ValidationError(
                    "minProperties",
                    context.path,
                    f"Object must have at least {node.min_properties} properties",
                    {"min_properties": node.min_properties, "actual_properties": count},
                )
            )
            valid = False
        if node.max_properties is not None and count > node.max_properties:
            errors.append(
                ValidationError(
                    "maxProperties",
                    context.path,
                    f"Object must have at most {node.max_properties} properties",
                    {"max_properties": node.max_properties, "actual_properties": count},
                )
            )
            valid = False

        return valid, result

    def _check_array(
        self,
        value: Any,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> Tuple[bool, List[Any]]:
        valid = True
        result = list(value)
        path = context.path

        if node.min_items is not None and len(result) < node.min_items:
            errors.append(
                ValidationError(
                    "minItems",
                    path,
                    f"Array must have at least {node.min_items} items",
                    {"min_items": node.min_items, "actual_items": len(result)},
                )
            )
            valid = False
        if node.max_items is not None and len(result) > node.max_items:
            errors.append(
                ValidationError(
                    "maxItems",
                    path,
                    f"Array must have at most {node.max_items} items",
                    {"max_items": node.max_items, "actual_items": len(result)},
                )
            )
            valid = False

        if node.unique_items:
            seen = set()
            duplicates = []
            for index, item in enumerate(result):
                key = content_key(item)
                if key in seen:
                    duplicates.append(index)
                else:
                    seen.add(key)
            if duplicates:
                errors.append(
                    ValidationError(
                        "uniqueItems",
                        path,
                        "Array items must be unique",
                        {"duplicate_indices": duplicates},
                    )
                )
                valid = False

        if isinstance(node.items, SchemaNode):
            for index, item in enumerate(result):
                ok, result[index] = self._validate(item, node.items, errors, context.item(index))
                valid = valid and ok
        elif isinstance(node.items, tuple):
            prefix = len(node.items)
            for index, item_node in enumerate(node.items[: len(result)]):
                ok, result[index] = self._validate(
                    result[index], item_node, errors, context.item(index)
                )
                valid = valid and ok
            if len(result) > prefix:
                if node.additional_items is False:
                    errors.append(
                        ValidationError(
                            "additionalItems",
                            path,
                            f"Array must not have more than {prefix} items",
                            {"max_items": prefix, "actual_items": len(result)},
                        )
                    )
                    valid = False
                elif isinstance(node.additional_items, SchemaNode):
                    for index in range(prefix, len(result)):
                        ok, result[index] = self._validate(
                            result[index], node.additional_items, errors, context.item(index)
                        )
                        valid = valid and ok

        return valid, result

    # ------------------------------------------------------------------
    # Combinators and hooks
    # ------------------------------------------------------------------

    def _check_combinators(
        self,
        value: Any,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> Tuple[bool, Any]:
        valid = True

        for branch in node.all_of:
            ok, value = self._validate(value, branch, errors, context)
            valid = valid and ok

        if node.any_of:
            for branch in node.any_of:
                ok, branch_value = self._validate(value, branch, [], context)
                if ok:
                    value = branch_value
                    break
            else:
                errors.append(
                    ValidationError(
                        "anyOf",
                        context.path,
                        "Value must match at least one schema in anyOf",
                        {"branches": len(node.any_of)},
                    )
                )
                valid = False

        if node.one_of:
            passing = []
            for index, branch in enumerate(node.one_of):
                ok, branch_value = self._validate(value, branch, [], context)
                if ok:
                    passing.append((index, branch_value))
            if len(passing) == 1:
                value = passing[0][1]
            else:
                errors.append(
                    ValidationError(
                        "oneOf",
                        context.path,
                        f"Value must match exactly one schema in oneOf, matched {len(passing)}",
                        {"matching_branches": [index for index, _ in passing]},
                    )
                )
                valid = False

        if node.not_ is not None:
            ok, _ = self._validate(value, node.not_, [], context)
            if ok:
                errors.append(
                    ValidationError("not", context.path, "Value must not match the schema in not")
                )
                valid = False

        return valid, value

    def _run_hook(
        self,
        value: Any,
        node: SchemaNode,
        errors: List[ValidationError],
        context: ValidationContext,
    ) -> bool:
        try:
            outcome = node.validator(value, context)
        except Exception as e:
            logger.debug(
                f"Custom validator raised at '{context.path}': {e}",
                extra={"path": context.path},
            )
            errors.append(
                ValidationError("custom", context.path, str(e) or "Custom validation error")
            )
            return False
        if outcome is True:
            return True
        message = outcome if isinstance(outcome, str) else "Custom validation failed"
        errors.append(ValidationError("custom", context.path, message))
        return False
