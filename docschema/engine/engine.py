"""
SchemaEngine: storage-independent schema operations.

The engine validates, sanitizes, samples and documents data against
schemas. Schemas may be passed inline (dict, bool or SchemaNode) or by the
id of a schema added with add_schema().

Invariants:
    - Plugin registries are frozen when the engine is constructed
    - validate() raises only for a missing/malformed root schema, or with
      throw_on_error after the full pass
    - No operation mutates the caller's data or schema

How to change safely:
    - Keep keyword handling in the walkers (validator, sanitizer, samples,
      docs), not in this facade
    - New operations should accept `SchemaLike` and go through _resolve()

Example:
    >>> engine = SchemaEngine()
    >>> engine.validate({"age": -1}, {"properties": {"age": {"minimum": 0}}}).valid
    False
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Union

from ..errors import InvalidSchemaError, SchemaNotFoundError, ValidationFailedError
from .docs import build_doc_tree, doc_name, render
from .meta_schema import build_meta_schema
from .nodes import SchemaNode
from .plugins import CustomFormat, CustomType, FormatRegistry, TypeRegistry
from .samples import SampleGenerator, SampleOptions
from .sanitizer import SanitizeOptions, Sanitizer
from .validator import ErrorFormatter, ValidationOptions, ValidationResult, Validator

logger = logging.getLogger(__name__)

SchemaLike = Union[str, Mapping, bool, SchemaNode]


class SchemaEngine:
    """Validation, coercion, sanitization, samples and docs for schemas.

    Args:
        types: Extra custom types, or a prepared TypeRegistry
        formats: Extra custom formats, or a prepared FormatRegistry
        error_formatter: Optional callable applied to each collected error
    """

    def __init__(
        self,
        types: Union[TypeRegistry, Dict[str, CustomType], None] = None,
        formats: Union[FormatRegistry, Dict[str, CustomFormat], None] = None,
        error_formatter: Optional[ErrorFormatter] = None,
    ) -> None:
        self.types = types if isinstance(types, TypeRegistry) else TypeRegistry.with_defaults(types)
        self.formats = (
            formats if isinstance(formats, FormatRegistry) else FormatRegistry.with_defaults(formats)
        )
        self.types.freeze()
        self.formats.freeze()
        self.error_formatter = error_formatter
        self._schemas: Dict[str, SchemaNode] = {}
        self._meta_schema: Optional[SchemaNode] = None

    # ------------------------------------------------------------------
    # Named schemas
    # ------------------------------------------------------------------

    def add_schema(self, schema_id: str, schema: Union[Mapping, bool, SchemaNode]) -> SchemaNode:
        """Parse and store a schema under schema_id (replacing any previous one).

        Raises:
            ValueError: If schema_id is empty
            InvalidSchemaError: If the schema cannot be parsed
        """
        if not schema_id:
            raise ValueError("Schema ID is required")
        node = SchemaNode.parse(schema)
        self._schemas[schema_id] = node
        logger.debug(f"Added schema: {schema_id}")
        return node

    def get_schema(self, schema_id: str) -> SchemaNode:
        """Return the parsed schema stored under schema_id.

        Raises:
            SchemaNotFoundError: If no schema has that id
        """
        try:
            return self._schemas[schema_id]
        except KeyError:
            raise SchemaNotFoundError(schema_id) from None

    def remove_schema(self, schema_id: str) -> bool:
        return self._schemas.pop(schema_id, None) is not None

    def schema_ids(self) -> List[str]:
        return sorted(self._schemas)

    def _resolve(self, schema: SchemaLike) -> SchemaNode:
        if isinstance(schema, str):
            return self.get_schema(schema)
        if schema is None:
            raise InvalidSchemaError("Invalid schema: None")
        return SchemaNode.parse(schema)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(
        self,
        data: Any,
        schema: SchemaLike,
        *,
        throw_on_error: bool = False,
        remove_additional: bool = False,
        use_defaults: bool = False,
        coerce_types: bool = False,
    ) -> ValidationResult:
        """Validate data against a schema, collecting every error.

        Args:
            data: Value to validate
            schema: Schema, or id of a schema added with add_schema()
            throw_on_error: Raise ValidationFailedError when invalid
            remove_additional: Drop properties rejected by
                `additionalProperties: false` from result.data
            use_defaults: Fill absent values from `default`
            coerce_types: Convert mismatched values where a rule exists

        Returns:
            ValidationResult(valid, errors, data)

        Raises:
            SchemaNotFoundError: Unknown schema id
            InvalidSchemaError: Malformed schema
            ValidationFailedError: Invalid data with throw_on_error
        """
        options = ValidationOptions(
            throw_on_error=throw_on_error,
            remove_additional=remove_additional,
            use_defaults=use_defaults,
            coerce_types=coerce_types,
        )
        return self._run(data, self._resolve(schema), options)

    def _run(self, data: Any, node: SchemaNode, options: ValidationOptions) -> ValidationResult:
        validator = Validator(node, self.types, self.formats, self.error_formatter)
        result = validator.validate(data, options)
        if options.throw_on_error and not result.valid:
            raise ValidationFailedError(result)
        return result

    def validate_field(self, value: Any, field_schema: SchemaLike, **flags: bool) -> ValidationResult:
        """Validate a single value; error paths are relative to the field."""
        return self.validate(value, field_schema, **flags)

    def create_validator(self, schema: SchemaLike, **flags: bool) -> Callable[[Any], ValidationResult]:
        """Return a reusable validate(data) callable bound to schema and flags."""
        node = self._resolve(schema)
        options = ValidationOptions(**flags)

        def validate(data: Any) -> ValidationResult:
            return self._run(data, node, options)

        return validate

    def check_schema(self, schema: Union[Mapping, bool]) -> ValidationResult:
        """Validate a schema document against the meta-schema."""
        if self._meta_schema is None:
            self._meta_schema = SchemaNode.parse(build_meta_schema(self.types.names()))
        return Validator(self._meta_schema, self.types, self.formats).validate(schema)

    # ------------------------------------------------------------------
    # Transformation
    # ------------------------------------------------------------------

    def sanitize(
        self,
        data: Any,
        schema: SchemaLike,
        *,
        remove_additional: bool = True,
        use_defaults: bool = True,
        coerce_types: bool = True,
        trim: bool = True,
        strip_html: bool = True,
    ) -> Any:
        """Return a sanitized deep copy of data. Never rejects data."""
        options = SanitizeOptions(
            remove_additional=remove_additional,
            use_defaults=use_defaults,
            coerce_types=coerce_types,
            trim=trim,
            strip_html=strip_html,
        )
        return Sanitizer(self._resolve(schema), self.types, options).sanitize(data)

    def generate_sample(
        self,
        schema: SchemaLike,
        *,
        use_examples: bool = True,
        use_defaults: bool = True,
        required_only: bool = False,
    ) -> Any:
        """Generate a deterministic sample instance of schema."""
        options = SampleOptions(
            use_examples=use_examples,
            use_defaults=use_defaults,
            required_only=required_only,
        )
        return SampleGenerator(self._resolve(schema), self.types, self.formats, options).generate()

    def generate_docs(
        self,
        schema: SchemaLike,
        *,
        format: str = "markdown",
        include_examples: bool = True,
        title: Optional[str] = None,
    ) -> Union[str, Dict[str, Any]]:
        """Render documentation for schema.

        Args:
            schema: Schema, or id of a schema added with add_schema()
            format: "markdown", "html" or "json" (returns a dict)
            include_examples: Include `example` sections
            title: Overrides the document name

        Raises:
            ValueError: Unknown format
        """
        node = self._resolve(schema)
        fallback = schema if isinstance(schema, str) else "schema"
        tree = build_doc_tree(node, doc_name(node, fallback, title))
        return render(tree, format, include_examples)


