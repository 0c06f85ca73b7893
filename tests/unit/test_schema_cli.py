"""
Unit tests for the docschema command line tool.

Tests cover:
- Engine commands on JSON and YAML files
- Exit codes for invalid data, breaking changes and errors
- Registry commands against a SQLite file
"""

import json
import tempfile
from pathlib import Path

import pytest

from docschema.config import Settings, StorageBackend
from docschema.tools.schema_cli import load_document, run

USER_SCHEMA = {
    "title": "User",
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "age": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": False,
}

USER_SCHEMA_YAML = """\
title: User
type: object
required: [name]
properties:
  name: {type: string, minLength: 1}
  age: {type: integer, minimum: 0}
additionalProperties: false
"""


class TestEngineCommands:
    """Tests for commands that work on local files."""

    @pytest.fixture
    def files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)

            def write(name, content):
                path = root / name
                path.write_text(content if isinstance(content, str) else json.dumps(content))
                return str(path)

            yield write

    def test_load_document_yaml_and_json(self, files):
        assert load_document(files("user.yaml", USER_SCHEMA_YAML)) == USER_SCHEMA
        assert load_document(files("user.json", USER_SCHEMA)) == USER_SCHEMA

    def test_validate_valid(self, files, capsys):
        code = run(["validate", "-s", files("user.yaml", USER_SCHEMA_YAML), "-d", files("d.json", {"name": "A"})])
        assert code == 0
        assert capsys.readouterr().out.strip() == "Data is valid"

    def test_validate_invalid(self, files, capsys):
        schema = files("user.json", USER_SCHEMA)
        code = run(["validate", "-s", schema, "-d", files("d.json", {"age": -1})])

        out = capsys.readouterr().out
        assert code == 1
        assert out.startswith("Validation failed with 2 error(s):")
        assert "  - [minimum] age:" in out
        assert "  - [required] name:" in out

    def test_validate_json_with_coercion(self, files, capsys):
        schema = files("user.json", USER_SCHEMA)
        code = run(
            ["validate", "-s", schema, "-d", files("d.json", {"name": "A", "age": "7"}), "--coerce-types", "--format", "json"]
        )
        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"valid": True, "errors": [], "data": {"name": "A", "age": 7}}

    def test_sanitize(self, files, capsys):
        schema = files("user.json", USER_SCHEMA)
        code = run(["sanitize", "-s", schema, "-d", files("d.json", {"name": "  <b>A</b> ", "x": 1})])
        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"name": "A"}

    def test_sample(self, files, capsys):
        code = run(["sample", "-s", files("user.json", USER_SCHEMA), "--required-only"])
        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"name": "sample"}

    def test_docs(self, files, capsys):
        schema = files("user.json", USER_SCHEMA)
        assert run(["docs", "-s", schema]) == 0
        assert capsys.readouterr().out.startswith("# User\n")
        assert run(["docs", "-s", schema, "--format", "json", "--title", "Person"]) == 0
        assert json.loads(capsys.readouterr().out)["name"] == "Person"

    def test_check_schema(self, files, capsys):
        assert run(["check-schema", "-s", files("good.json", USER_SCHEMA)]) == 0
        assert capsys.readouterr().out.strip() == "Schema is valid"
        assert run(["check-schema", "-s", files("bad.json", {"type": "strng"})]) == 1
        assert capsys.readouterr().out.startswith("Schema check failed")

    def test_diff(self, files, capsys):
        old = files("old.json", {"type": "object", "properties": {"id": {"type": "string"}}})
        new = files(
            "new.json",
            {"type": "object", "properties": {"id": {"type": "integer"}}},
        )
        assert run(["diff", "--old", old, "--new", old]) == 0
        assert capsys.readouterr().out.strip() == "No changes detected"
        assert run(["diff", "--old", old, "--new", new]) == 1
        out = capsys.readouterr().out
        assert "[BREAKING] change: properties.id" in out
        assert out.strip().endswith("INCOMPATIBLE")

    def test_missing_file(self, capsys):
        code = run(["validate", "-s", "/nonexistent/schema.json", "-d", "/nonexistent/data.json"])
        assert code == 2
        assert capsys.readouterr().err.startswith("Error:")

    def test_malformed_json(self, files, capsys):
        code = run(["sample", "-s", files("broken.json", "{not json")])
        assert code == 2

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            run([])


class TestRegistryCommands:
    """Tests for `registry` sub-commands against a SQLite file."""

    @pytest.fixture
    def workspace(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            v1 = root / "v1.json"
            v1.write_text(json.dumps({"type": "object", "properties": {"id": {"type": "string"}}}))
            v2 = root / "v2.json"
            v2.write_text(
                json.dumps(
                    {
                        "type": "object",
                        "properties": {"id": {"type": "string"}, "email": {"type": "string"}},
                        "required": ["email"],
                    }
                )
            )
            settings = Settings(storage_backend=StorageBackend.SQLITE, sqlite_path=str(root / "reg.db"))
            yield settings, str(v1), str(v2)

    def test_lifecycle(self, workspace, capsys):
        settings, v1, v2 = workspace

        assert run(["registry", "register", "docs", "user", "-s", v1, "--version", "1"], settings) == 0
        assert capsys.readouterr().out.strip() == "Registered docs.user@1 (default)"
        assert run(["registry", "register", "docs", "user", "-s", v2, "--version", "2"], settings) == 0
        capsys.readouterr()

        assert run(["registry", "list"], settings) == 0
        assert capsys.readouterr().out.strip() == "docs"
        assert run(["registry", "list", "docs"], settings) == 0
        assert capsys.readouterr().out.strip() == "docs.user@1 (default)"

        assert run(["registry", "versions", "docs", "user"], settings) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert [line.split()[0] for line in lines] == ["1", "2"]
        assert lines[0].endswith("(default)")

        assert run(["registry", "show", "docs", "user", "--latest"], settings) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["version"] == "2"
        assert shown["schema"]["required"] == ["email"]

        assert run(["registry", "set-default", "docs", "user", "2"], settings) == 0
        assert capsys.readouterr().out.strip() == "Default is now docs.user@2 (default)"

        assert run(["registry", "delete", "docs", "user", "--version", "2"], settings) == 0
        capsys.readouterr()
        assert run(["registry", "show", "docs", "user"], settings) == 0
        assert json.loads(capsys.readouterr().out)["is_default"] is True

    def test_check(self, workspace, capsys):
        settings, v1, v2 = workspace
        run(["registry", "register", "docs", "user", "-s", v1], settings)
        capsys.readouterr()

        assert run(["registry", "check", "docs", "user", "-s", v2, "--format", "json"], settings) == 1
        report = json.loads(capsys.readouterr().out)
        assert report["compatible"] is False
        assert [c["path"] for c in report["changes"] if c["breaking"]] == ["required"]

    def test_lookup_errors(self, workspace, capsys):
        settings, _, _ = workspace
        assert run(["registry", "show", "docs", "missing"], settings) == 2
        assert "Schema not found: docs.missing" in capsys.readouterr().err
        assert run(["registry", "delete", "docs", "missing"], settings) == 1
