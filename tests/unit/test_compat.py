"""
Unit tests for schema compatibility checking.

Tests cover:
- Detection of breaking changes
- Detection of non-breaking changes
- Report rendering
"""

import pytest

from docschema.registry import ChangeType, CompatibilityReport, SchemaChange, compare_schemas


def props(**properties):
    """Helper to build an object schema from keyword properties."""
    return {"type": "object", "properties": properties}


class TestCompareSchemas:
    """Tests for compare_schemas."""

    def test_no_changes(self):
        """Identical schemas have no changes."""
        schema = props(id={"type": "string"})
        report = compare_schemas(schema, dict(schema))
        assert report.compatible
        assert report.changes == []

    def test_key_order_ignored(self):
        old = props(id={"type": "string", "minLength": 1})
        new = props(id={"minLength": 1, "type": "string"})
        assert compare_schemas(old, new).changes == []

    def test_add_property(self):
        """Adding a property is allowed."""
        report = compare_schemas(props(id={"type": "string"}), props(id={"type": "string"}, email={"type": "string"}))
        assert report.compatible
        assert len(report.changes) == 1
        change = report.changes[0]
        assert change.change_type == ChangeType.ADD
        assert change.path == "properties.email"
        assert not change.is_breaking

    def test_remove_optional_property(self):
        report = compare_schemas(props(id={"type": "string"}, note={"type": "string"}), props(id={"type": "string"}))
        assert report.compatible
        assert report.changes[0].change_type == ChangeType.REMOVE

    def test_remove_required_property_is_breaking(self):
        old = dict(props(id={"type": "string"}), required=["id"])
        new = dict(props(), required=["id"])
        report = compare_schemas(old, new)
        assert not report.compatible
        assert report.changes[0].path == "properties.id"
        assert report.changes[0].is_breaking

    def test_type_change_is_breaking(self):
        report = compare_schemas(props(age={"type": "integer"}), props(age={"type": "string"}))
        assert not report.compatible
        assert report.changes[0].change_type == ChangeType.CHANGE

    def test_constraint_change_same_type(self):
        report = compare_schemas(
            props(age={"type": "integer"}), props(age={"type": "integer", "maximum": 150})
        )
        assert report.compatible
        assert report.changes[0].change_type == ChangeType.CHANGE
        assert not report.changes[0].is_breaking

    def test_adding_required_is_breaking(self):
        """Adding a required field with a new property breaks old documents."""
        old = props(id={"type": "string"})
        new = dict(props(id={"type": "string"}, email={"type": "string"}), required=["email"])
        report = compare_schemas(old, new)

        assert not report.compatible
        assert [change.path for change in report.breaking_changes] == ["required"]
        assert report.breaking_changes[0].description == "Added required properties: email"

    def test_removing_required_is_compatible(self):
        old = dict(props(id={"type": "string"}), required=["id"])
        new = dict(props(id={"type": "string"}), required=[])
        report = compare_schemas(old, new)
        assert report.compatible
        assert report.changes[0].description == "Removed required properties: id"

    def test_required_list_dropped(self):
        old = dict(props(id={"type": "string"}), required=["id"])
        report = compare_schemas(old, props(id={"type": "string"}))
        assert report.compatible
        assert report.changes[0].description == "Removed all required properties"

    def test_non_object_schemas(self):
        assert compare_schemas(True, {"type": "string"}).changes == []

    @pytest.mark.parametrize("extra", ["a", "b", "zeta"])
    def test_optional_additions_stay_compatible(self, extra):
        old = dict(props(id={"type": "string"}), required=["id"])
        new = dict(props(id={"type": "string"}, **{extra: {"type": "number"}}), required=["id"])
        assert compare_schemas(old, new).compatible


class TestReport:
    """Tests for report rendering."""

    def test_change_str(self):
        assert str(SchemaChange(ChangeType.ADD, "properties.a", "Added property 'a'")) == (
            "[OK] add: properties.a - Added property 'a'"
        )
        assert str(SchemaChange(ChangeType.CHANGE, "required", "x", is_breaking=True)).startswith(
            "[BREAKING] change"
        )

    def test_to_dict(self):
        report = CompatibilityReport(
            compatible=False,
            changes=[SchemaChange(ChangeType.REMOVE, "properties.a", "Removed", is_breaking=True)],
            latest_version="1",
        )
        assert report.to_dict() == {
            "compatible": False,
            "changes": [
                {"type": "remove", "path": "properties.a", "description": "Removed", "breaking": True}
            ],
            "latest_version": "1",
        }
