"""
Unit tests for validation.

Tests cover:
- Error collection across a whole document
- Per-kind constraints (string, number, object, array)
- Coercion, defaults and additional-property removal
- Combinators, $ref, boolean schemas and custom hooks
"""

import pytest

from docschema.engine import CustomType, SchemaEngine, ValidationError
from docschema.engine.validator import is_multiple_of
from docschema.errors import InvalidSchemaError, SchemaNotFoundError, ValidationFailedError

USER_SCHEMA = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "age": {"type": "integer", "minimum": 0},
    },
}


def error_types(result):
    return [(error.type, error.path) for error in result.errors]


@pytest.fixture
def engine():
    return SchemaEngine()


class TestErrorCollection:
    """Tests for collecting every violation in one pass."""

    def test_missing_required_and_minimum(self, engine):
        """Both the missing name and the negative age are reported."""
        result = engine.validate({"age": -1}, USER_SCHEMA)

        assert result.valid is False
        assert ("required", "name") in error_types(result)
        assert ("minimum", "age") in error_types(result)

    def test_required_error_details(self, engine):
        """Required errors name the missing property."""
        result = engine.validate({}, USER_SCHEMA)
        error = result.errors[0]
        assert error.details["missing_property"] == "name"
        assert error.to_dict()["missing_property"] == "name"

    def test_valid_document(self, engine):
        """A conforming document has no errors."""
        result = engine.validate({"name": "Ada", "age": 36}, USER_SCHEMA)
        assert result.valid
        assert result.errors == []
        assert result.data == {"name": "Ada", "age": 36}

    def test_nested_paths(self, engine):
        """Paths use dots for properties and brackets for items."""
        schema = {
            "properties": {
                "tags": {"type": "array", "items": {"type": "string"}},
                "owner": {"properties": {"email": {"type": "string", "format": "email"}}},
            }
        }
        result = engine.validate({"tags": ["a", 1], "owner": {"email": "nope"}}, schema)
        assert error_types(result) == [("type", "tags[1]"), ("format", "owner.email")]

    def test_throw_on_error_after_full_pass(self, engine):
        """throw_on_error raises with every collected error."""
        with pytest.raises(ValidationFailedError) as exc_info:
            engine.validate({"age": -1}, USER_SCHEMA, throw_on_error=True)
        assert len(exc_info.value.errors) == 2
        assert exc_info.value.code == "validation_failed"

    def test_unknown_schema_id(self, engine):
        """A schema id that was never added raises."""
        with pytest.raises(SchemaNotFoundError):
            engine.validate({}, "missing")

    def test_malformed_root(self, engine):
        """A non-schema root raises immediately."""
        with pytest.raises(InvalidSchemaError):
            engine.validate({}, None)

    def test_does_not_mutate_input(self, engine):
        """Coercion and defaults only affect result.data."""
        data = {"count": "3"}
        schema = {"properties": {"count": {"type": "integer"}, "flag": {"default": True}}}
        result = engine.validate(data, schema, coerce_types=True, use_defaults=True)
        assert result.data == {"count": 3, "flag": True}
        assert data == {"count": "3"}


class TestTypes:
    """Tests for kind checks and null handling."""

    def test_type_error_details(self, engine):
        result = engine.validate("x", {"type": ["integer", "boolean"]})
        error = result.errors[0]
        assert error.type == "type"
        assert error.message == "Expected integer or boolean, got string"
        assert error.details == {"expected_types": ["integer", "boolean"], "actual_type": "string"}

    def test_null_rejected_by_typed_node(self, engine):
        result = engine.validate(None, {"type": "string"})
        assert error_types(result) == [("type", "")]

    def test_null_allowed(self, engine):
        assert engine.validate(None, {"type": ["string", "null"]}).valid
        assert engine.validate(None, {"type": "string", "nullable": True}).valid
        assert engine.validate(None, {}).valid

    def test_integral_float_is_integer(self, engine):
        assert engine.validate(2.0, {"type": "integer"}).valid
        assert not engine.validate(2.5, {"type": "integer"}).valid

    def test_boolean_is_not_number(self, engine):
        assert not engine.validate(True, {"type": "number"}).valid

    def test_custom_type(self):
        """Custom type predicates extend the `type` keyword."""
        engine = SchemaEngine(
            types={"even": CustomType(check=lambda value, node: isinstance(value, int) and value % 2 == 0)}
        )
        assert engine.validate(4, {"type": "even"}).valid
        assert not engine.validate(3, {"type": "even"}).valid

    def test_builtin_email_type(self, engine):
        assert engine.validate("a@example.com", {"type": "email"}).valid
        assert not engine.validate("a@", {"type": "email"}).valid


class TestCoercion:
    """Tests for coerce_types."""

    def test_string_to_integer(self, engine):
        """'42' becomes 42 when coercion is on."""
        result = engine.validate("42", {"type": "integer"}, coerce_types=True)
        assert result.valid
        assert result.data == 42
        assert isinstance(result.data, int)

    def test_coerced_value_written_into_parent(self, engine):
        """Coerced property values replace the originals in result.data."""
        schema = {"properties": {"count": {"type": "integer"}, "on": {"type": "boolean"}}}
        result = engine.validate({"count": "7", "on": "yes"}, schema, coerce_types=True)
        assert result.valid
        assert result.data == {"count": 7, "on": True}

    def test_without_coercion(self, engine):
        result = engine.validate("42", {"type": "integer"})
        assert not result.valid
        assert result.data == "42"

    def test_failed_coercion_keeps_type_error(self, engine):
        result = engine.validate("abc", {"type": "number"}, coerce_types=True)
        assert error_types(result) == [("type", "")]


class TestStrings:
    """Tests for string constraints."""

    def test_length(self, engine):
        assert engine.validate("ab", {"minLength": 3}).errors[0].type == "minLength"
        assert engine.validate("abcd", {"maxLength": 3}).errors[0].type == "maxLength"

    def test_pattern_and_custom_message(self, engine):
        schema = {"type": "string", "pattern": "^[a-z]+$", "patternError": "Lowercase only"}
        result = engine.validate("ABC", schema)
        assert result.errors[0].type == "pattern"
        assert result.errors[0].message == "Lowercase only"

    def test_invalid_pattern(self, engine):
        with pytest.raises(InvalidSchemaError):
            engine.validate("x", {"pattern": "("})

    @pytest.mark.parametrize(
        "fmt,good,bad",
        [
            ("date", "2024-02-29", "2023-02-29"),
            ("date-time", "2024-01-01T12:00:00Z", "2024-01-01 12:00"),
            ("uuid", "123e4567-e89b-42d3-a456-426614174000", "123"),
            ("ipv4", "10.0.0.1", "10.0.0.256"),
            ("ipv6", "::1", "1::2::3"),
            ("hostname", "docs.example.com", "-bad-.com"),
        ],
    )
    def test_formats(self, engine, fmt, good, bad):
        schema = {"type": "string", "format": fmt}
        assert engine.validate(good, schema).valid
        assert engine.validate(bad, schema).errors[0].type == "format"

    def test_unknown_format_accepted(self, engine):
        assert engine.validate("anything", {"format": "color"}).valid


class TestNumbers:
    """Tests for numeric constraints."""

    def test_exclusive_bounds(self, engine):
        assert not engine.validate(5, {"exclusiveMinimum": 5}).valid
        assert engine.validate(5, {"minimum": 5}).valid
        assert not engine.validate(5, {"minimum": 5, "exclusiveMinimum": True}).valid
        assert not engine.validate(10, {"exclusiveMaximum": 10}).valid

    def test_maximum_details(self, engine):
        error = engine.validate(11, {"maximum": 10}).errors[0]
        assert error.type == "maximum"
        assert error.details == {"limit": 10, "exclusive": False, "actual": 11}

    def test_multiple_of_float_tolerance(self, engine):
        """0.3 is a multiple of 0.1 despite binary rounding."""
        assert engine.validate(0.3, {"multipleOf": 0.1}).valid
        assert not engine.validate(0.35, {"multipleOf": 0.1}).valid

    def test_multiple_of_exact_integers(self):
        assert is_multiple_of(10**20, 10)
        assert not is_multiple_of(10**20 + 1, 10)


class TestObjects:
    """Tests for object constraints."""

    def test_additional_properties_with_suggestion(self, engine):
        schema = {"properties": {"email": {"type": "string"}}, "additionalProperties": False}
        result = engine.validate({"emial": "a@example.com"}, schema)
        error = result.errors[0]
        assert error.type == "additionalProperties"
        assert error.path == "emial"
        assert "Did you mean 'email'?" in error.message

    def test_remove_additional(self, engine):
        schema = {"properties": {"a": {}}, "additionalProperties": False}
        result = engine.validate({"a": 1, "b": 2}, schema, remove_additional=True)
        assert result.data == {"a": 1}

    def test_additional_properties_schema(self, engine):
        schema = {"properties": {"id": {}}, "additionalProperties": {"type": "integer"}}
        result = engine.validate({"id": "x", "extra": "y"}, schema)
        assert error_types(result) == [("type", "extra")]

    def test_pattern_properties(self, engine):
        schema = {"patternProperties": {"^x-": {"type": "string"}}, "additionalProperties": False}
        assert engine.validate({"x-trace": "abc"}, schema).valid
        assert error_types(engine.validate({"x-trace": 1}, schema)) == [("type", "x-trace")]

    def test_property_counts(self, engine):
        assert engine.validate({}, {"minProperties": 1}).errors[0].type == "minProperties"
        assert engine.validate({"a": 1, "b": 2}, {"maxProperties": 1}).errors[0].type == "maxProperties"

    def test_defaults(self, engine):
        schema = {"properties": {"role": {"type": "string", "default": "reader"}}}
        assert engine.validate({}, schema, use_defaults=True).data == {"role": "reader"}
        assert engine.validate({}, schema).data == {}

    def test_property_level_required_flag(self, engine):
        schema = {"properties": {"id": {"type": "string", "required": True}}}
        result = engine.validate({}, schema)
        assert error_types(result) == [("required", "id")]


class TestArrays:
    """Tests for array constraints."""

    def test_unique_items_structural(self, engine):
        """Structurally equal objects are duplicates."""
        result = engine.validate([{"a": 1}, {"a": 1}], {"type": "array", "uniqueItems": True})
        assert not result.valid
        error = result.errors[0]
        assert error.type == "uniqueItems"
        assert error.details["duplicate_indices"] == [1]

    def test_unique_items_key_order(self, engine):
        result = engine.validate([{"a": 1, "b": 2}, {"b": 2, "a": 1}], {"uniqueItems": True})
        assert not result.valid

    def test_item_counts(self, engine):
        assert engine.validate([], {"minItems": 1}).errors[0].type == "minItems"
        assert engine.validate([1, 2], {"maxItems": 1}).errors[0].type == "maxItems"

    def test_tuple_items_and_additional_items(self, engine):
        schema = {"items": [{"type": "string"}, {"type": "integer"}], "additionalItems": False}
        assert engine.validate(["a", 1], schema).valid
        assert error_types(engine.validate(["a", "b"], schema)) == [("type", "[1]")]
        assert engine.validate(["a", 1, True], schema).errors[0].type == "additionalItems"

    def test_additional_items_schema(self, engine):
        schema = {"items": [{"type": "string"}], "additionalItems": {"type": "integer"}}
        assert engine.validate(["a", 1, 2], schema).valid
        assert error_types(engine.validate(["a", "b"], schema)) == [("type", "[1]")]


class TestLiterals:
    """Tests for enum and const."""

    def test_enum(self, engine):
        result = engine.validate("purple", {"enum": ["red", "green"]})
        assert result.errors[0].type == "enum"
        assert result.errors[0].message == "Value must be one of: red, green"

    def test_enum_structural(self, engine):
        assert engine.validate({"a": 1}, {"enum": [{"a": 1}]}).valid

    def test_const(self, engine):
        assert engine.validate("v1", {"const": "v1"}).valid
        assert engine.validate("v2", {"const": "v1"}).errors[0].type == "const"


class TestComposition:
    """Tests for combinators, refs and boolean schemas."""

    def test_all_of(self, engine):
        schema = {"allOf": [{"type": "integer"}, {"minimum": 10}]}
        assert engine.validate(12, schema).valid
        assert error_types(engine.validate(5, schema)) == [("minimum", "")]

    def test_any_of(self, engine):
        schema = {"anyOf": [{"type": "string"}, {"type": "integer"}]}
        assert engine.validate(1, schema).valid
        assert [e.type for e in engine.validate(1.5, schema).errors] == ["anyOf"]

    def test_one_of(self, engine):
        schema = {"oneOf": [{"type": "integer"}, {"minimum": 0}]}
        assert engine.validate(-1, schema).valid
        result = engine.validate(1, schema)
        assert result.errors[0].type == "oneOf"
        assert result.errors[0].details["matching_branches"] == [0, 1]

    def test_not(self, engine):
        assert engine.validate(1, {"not": {"type": "string"}}).valid
        assert engine.validate("x", {"not": {"type": "string"}}).errors[0].type == "not"

    def test_ref(self, engine):
        schema = {
            "definitions": {"positive": {"type": "integer", "minimum": 1}},
            "properties": {"count": {"$ref": "#/definitions/positive"}},
        }
        assert engine.validate({"count": 2}, schema).valid
        assert error_types(engine.validate({"count": 0}, schema)) == [("minimum", "count")]

    def test_recursive_ref(self, engine):
        schema = {
            "properties": {
                "name": {"type": "string"},
                "children": {"type": "array", "items": {"$ref": "#"}},
            }
        }
        data = {"name": "root", "children": [{"name": "leaf", "children": [{"name": 1}]}]}
        assert error_types(engine.validate(data, schema)) == [("type", "children[0].children[0].name")]

    def test_unresolvable_ref(self, engine):
        result = engine.validate(1, {"$ref": "#/definitions/nope"})
        assert result.errors[0].type == "ref"

    def test_boolean_schemas(self, engine):
        assert engine.validate({"anything": 1}, True).valid
        assert engine.validate(1, False).errors[0].type == "falseSchema"


class TestCustomHook:
    """Tests for the `validate` hook."""

    def test_hook_receives_context(self, engine):
        seen = []

        def hook(value, context):
            seen.append((value, context.path))
            return True

        assert engine.validate({"n": 3}, {"properties": {"n": {"validate": hook}}}).valid
        assert seen == [(3, "n")]

    def test_hook_message(self, engine):
        schema = {"validate": lambda value, context: "Must be even" if value % 2 else True}
        result = engine.validate(3, schema)
        assert result.errors[0].type == "custom"
        assert result.errors[0].message == "Must be even"

    def test_hook_exception_becomes_error(self, engine):
        def hook(value, context):
            raise RuntimeError("boom")

        result = engine.validate(1, {"validate": hook})
        assert [(e.type, e.message) for e in result.errors] == [("custom", "boom")]

    def test_hook_skipped_after_failure(self, engine):
        calls = []
        schema = {"type": "integer", "validate": lambda value, context: calls.append(value) or True}
        engine.validate("x", schema)
        assert calls == []


class TestEngineFacade:
    """Tests for named schemas and helper entry points."""

    def test_named_schemas(self, engine):
        engine.add_schema("user", USER_SCHEMA)
        assert engine.schema_ids() == ["user"]
        assert engine.validate({"name": "Ada"}, "user").valid
        assert engine.remove_schema("user") is True
        assert engine.remove_schema("user") is False

    def test_add_schema_requires_id(self, engine):
        with pytest.raises(ValueError):
            engine.add_schema("", {})

    def test_validate_field(self, engine):
        result = engine.validate_field("", {"type": "string", "minLength": 1})
        assert error_types(result) == [("minLength", "")]

    def test_create_validator(self, engine):
        validate = engine.create_validator({"type": "integer"}, coerce_types=True)
        assert validate("5").data == 5
        assert not validate("five").valid

    def test_error_formatter(self):
        def shout(error):
            return ValidationError(error.type, error.path, error.message.upper(), error.details)

        engine = SchemaEngine(error_formatter=shout)
        result = engine.validate("x", {"type": "integer"})
        assert result.errors[0].message == "EXPECTED INTEGER, GOT STRING"

    def test_result_to_dict(self, engine):
        data = engine.validate({"age": "x"}, USER_SCHEMA).to_dict()
        assert data["valid"] is False
        assert {"type": "type", "path": "age"}.items() <= data["errors"][0].items()
        assert data["errors"][1]["missing_property"] == "name"
