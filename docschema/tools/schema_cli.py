"""
Command line tool for docschema.

Engine commands work on local files:
- validate: Validate a data file against a schema file
- sanitize: Print a sanitized copy of a data file
- sample: Print a generated sample instance
- docs: Render schema documentation
- check-schema: Check a schema file against the meta-schema
- diff: Compare two schema files for compatibility

Registry commands (`registry ...`) run against the storage backend from
the DOCSCHEMA_* environment; use DOCSCHEMA_STORAGE_BACKEND=sqlite to keep
registrations between runs.

Usage:
    docschema validate --schema user.schema.yaml --data user.json
    docschema diff --old user.v1.json --new user.v2.json --format json
    docschema registry register docs user --schema user.schema.json

Invariants:
    - Invalid data, invalid schemas and breaking changes exit with 1
    - Usage and lookup errors exit with 2
    - JSON output is deterministic (sorted keys)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml

from ..config import Settings
from ..engine.engine import SchemaEngine
from ..engine.validator import ValidationResult
from ..errors import DocSchemaError
from ..logging_config import setup_logging
from ..registry.compat import CompatibilityReport, compare_schemas
from ..registry.registry import SchemaRegistry

logger = logging.getLogger(__name__)


def load_document(path: str) -> Any:
    """Load a JSON or YAML file.

    Files ending in .json are parsed as JSON; anything else as YAML.
    """
    text = Path(path).read_text(encoding="utf-8")
    if path.endswith(".json"):
        return json.loads(text)
    return yaml.safe_load(text)


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, default=str)


def format_result(result: ValidationResult) -> str:
    if result.valid:
        return "Data is valid"
    lines = [f"Validation failed with {len(result.errors)} error(s):"]
    for error in result.errors:
        location = error.path or "(root)"
        lines.append(f"  - [{error.type}] {location}: {error.message}")
    return "\n".join(lines)


def format_report(report: CompatibilityReport) -> str:
    if not report.changes:
        return "No changes detected"
    lines = [f"Found {len(report.changes)} change(s):"]
    lines.extend(f"  {change}" for change in report.changes)
    lines.append("Compatible" if report.compatible else "INCOMPATIBLE")
    return "\n".join(lines)


class SchemaCLI:
    """Command implementations. Each returns (output, exit_code).

    Example:
        >>> cli = SchemaCLI()
        >>> output, code = cli.validate("user.schema.json", "user.json")
    """

    def __init__(self, engine: Optional[SchemaEngine] = None) -> None:
        self.engine = engine or SchemaEngine()

    def validate(
        self,
        schema_path: str,
        data_path: str,
        *,
        coerce_types: bool = False,
        use_defaults: bool = False,
        remove_additional: bool = False,
        output_format: str = "text",
    ) -> Tuple[str, int]:
        result = self.engine.validate(
            load_document(data_path),
            load_document(schema_path),
            coerce_types=coerce_types,
            use_defaults=use_defaults,
            remove_additional=remove_additional,
        )
        output = _dumps(result.to_dict()) if output_format == "json" else format_result(result)
        return output, 0 if result.valid else 1

    def sanitize(
        self,
        schema_path: str,
        data_path: str,
        *,
        trim: bool = True,
        strip_html: bool = True,
        remove_additional: bool = True,
    ) -> Tuple[str, int]:
        data = self.engine.sanitize(
            load_document(data_path),
            load_document(schema_path),
            trim=trim,
            strip_html=strip_html,
            remove_additional=remove_additional,
        )
        return _dumps(data), 0

    def sample(
        self, schema_path: str, *, required_only: bool = False, use_examples: bool = True
    ) -> Tuple[str, int]:
        sample = self.engine.generate_sample(
            load_document(schema_path),
            required_only=required_only,
            use_examples=use_examples,
        )
        return _dumps(sample), 0

    def docs(
        self,
        schema_path: str,
        *,
        output_format: str = "markdown",
        include_examples: bool = True,
        title: Optional[str] = None,
    ) -> Tuple[str, int]:
        rendered = self.engine.generate_docs(
            load_document(schema_path),
            format=output_format,
            include_examples=include_examples,
            title=title,
        )
        return (rendered if isinstance(rendered, str) else _dumps(rendered)), 0

    def check_schema(self, schema_path: str) -> Tuple[str, int]:
        result = self.engine.check_schema(load_document(schema_path))
        if result.valid:
            return "Schema is valid", 0
        return format_result(result).replace("Validation failed", "Schema check failed"), 1

    def diff(self, old_path: str, new_path: str, output_format: str = "text") -> Tuple[str, int]:
        report = compare_schemas(load_document(old_path), load_document(new_path))
        output = _dumps(report.to_dict()) if output_format == "json" else format_report(report)
        return output, 0 if report.compatible else 1

    async def registry(self, args: argparse.Namespace, registry: SchemaRegistry) -> Tuple[str, int]:
        """Run one `registry` sub-command."""
        action = args.registry_command

        if action == "register":
            record = await registry.register_schema(
                args.namespace,
                args.name,
                load_document(args.schema),
                version=args.version,
                is_default=args.default,
            )
            return f"Registered {record}", 0

        if action == "list":
            if args.namespace:
                records = await registry.get_namespace_schemas(args.namespace)
                return "\n".join(str(record) for record in records) or "No schemas", 0
            namespaces = await registry.get_namespaces()
            return "\n".join(namespaces) or "No namespaces", 0

        if action == "show":
            record = await registry.get_schema(
                args.namespace, args.name, args.version, latest_version=args.latest
            )
            return _dumps(record.to_dict()), 0

        if action == "versions":
            records = await registry.get_schema_versions(args.namespace, args.name)
            lines = [
                f"{r.version}  {r.created_at}  {r.fingerprint}" + ("  (default)" if r.is_default else "")
                for r in records
            ]
            return "\n".join(lines) or "No versions", 0

        if action == "set-default":
            record = await registry.set_default_version(args.namespace, args.name, args.version)
            return f"Default is now {record}", 0

        if action == "delete":
            if args.version:
                deleted = await registry.delete_schema_version(args.namespace, args.name, args.version)
            else:
                deleted = await registry.delete_schema(args.namespace, args.name)
            return ("Deleted" if deleted else "Nothing to delete"), 0 if deleted else 1

        if action == "check":
            report = await registry.check_compatibility(
                args.namespace, args.name, load_document(args.schema)
            )
            output = _dumps(report.to_dict()) if args.format == "json" else format_report(report)
            return output, 0 if report.compatible else 1

        raise ValueError(f"Unknown registry command: {action}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docschema", description="Schema validation and registry tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate data against a schema")
    validate_parser.add_argument("--schema", "-s", required=True, help="Schema file (JSON or YAML)")
    validate_parser.add_argument("--data", "-d", required=True, help="Data file (JSON or YAML)")
    validate_parser.add_argument("--coerce-types", action="store_true")
    validate_parser.add_argument("--use-defaults", action="store_true")
    validate_parser.add_argument("--remove-additional", action="store_true")
    validate_parser.add_argument("--format", choices=["text", "json"], default="text")

    # sanitize command
    sanitize_parser = subparsers.add_parser("sanitize", help="Print sanitized data")
    sanitize_parser.add_argument("--schema", "-s", required=True)
    sanitize_parser.add_argument("--data", "-d", required=True)
    sanitize_parser.add_argument("--no-trim", action="store_true")
    sanitize_parser.add_argument("--no-strip-html", action="store_true")
    sanitize_parser.add_argument("--keep-additional", action="store_true")

    # sample command
    sample_parser = subparsers.add_parser("sample", help="Generate a sample instance")
    sample_parser.add_argument("--schema", "-s", required=True)
    sample_parser.add_argument("--required-only", action="store_true")
    sample_parser.add_argument("--no-examples", action="store_true")

    # docs command
    docs_parser = subparsers.add_parser("docs", help="Render schema documentation")
    docs_parser.add_argument("--schema", "-s", required=True)
    docs_parser.add_argument("--format", choices=["markdown", "html", "json"], default="markdown")
    docs_parser.add_argument("--no-examples", action="store_true")
    docs_parser.add_argument("--title")

    # check-schema command
    check_parser = subparsers.add_parser("check-schema", help="Check a schema against the meta-schema")
    check_parser.add_argument("--schema", "-s", required=True)

    # diff command
    diff_parser = subparsers.add_parser("diff", help="Show differences between schemas")
    diff_parser.add_argument("--old", required=True, help="Path to old schema")
    diff_parser.add_argument("--new", required=True, help="Path to new schema")
    diff_parser.add_argument("--format", choices=["text", "json"], default="text")

    # registry commands
    registry_parser = subparsers.add_parser("registry", help="Manage the schema registry")
    registry_sub = registry_parser.add_subparsers(dest="registry_command", required=True)

    register = registry_sub.add_parser("register", help="Register a schema version")
    register.add_argument("namespace")
    register.add_argument("name")
    register.add_argument("--schema", "-s", required=True)
    register.add_argument("--version")
    register.add_argument("--default", action="store_true", help="Make this the default version")

    listing = registry_sub.add_parser("list", help="List namespaces, or schemas in a namespace")
    listing.add_argument("namespace", nargs="?")

    show = registry_sub.add_parser("show", help="Show one schema version")
    show.add_argument("namespace")
    show.add_argument("name")
    selector = show.add_mutually_exclusive_group()
    selector.add_argument("--version")
    selector.add_argument("--latest", action="store_true")

    versions = registry_sub.add_parser("versions", help="List versions of a schema")
    versions.add_argument("namespace")
    versions.add_argument("name")

    set_default = registry_sub.add_parser("set-default", help="Set the default version")
    set_default.add_argument("namespace")
    set_default.add_argument("name")
    set_default.add_argument("version")

    delete = registry_sub.add_parser("delete", help="Delete a version, or every version")
    delete.add_argument("namespace")
    delete.add_argument("name")
    delete.add_argument("--version")

    check = registry_sub.add_parser("check", help="Check compatibility with the latest version")
    check.add_argument("namespace")
    check.add_argument("name")
    check.add_argument("--schema", "-s", required=True)
    check.add_argument("--format", choices=["text", "json"], default="text")

    return parser


def run(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """Parse arguments, run one command and print its output.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    settings = settings or Settings()
    cli = SchemaCLI()

    try:
        if args.command == "validate":
            output, code = cli.validate(
                args.schema,
                args.data,
                coerce_types=args.coerce_types,
                use_defaults=args.use_defaults,
                remove_additional=args.remove_additional,
                output_format=args.format,
            )
        elif args.command == "sanitize":
            output, code = cli.sanitize(
                args.schema,
                args.data,
                trim=not args.no_trim,
                strip_html=not args.no_strip_html,
                remove_additional=not args.keep_additional,
            )
        elif args.command == "sample":
            output, code = cli.sample(
                args.schema, required_only=args.required_only, use_examples=not args.no_examples
            )
        elif args.command == "docs":
            output, code = cli.docs(
                args.schema,
                output_format=args.format,
                include_examples=not args.no_examples,
                title=args.title,
            )
        elif args.command == "check-schema":
            output, code = cli.check_schema(args.schema)
        elif args.command == "diff":
            output, code = cli.diff(args.old, args.new, args.format)
        else:
            registry = SchemaRegistry.from_settings(settings, cli.engine)
            output, code = asyncio.run(cli.registry(args, registry))
    except (DocSchemaError, OSError, ValueError, yaml.YAMLError) as e:
        logger.debug(f"Command {args.command} failed: {e!r}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(output)
    return code


def main() -> None:
    """CLI entry point."""
    settings = Settings()
    setup_logging(settings)
    sys.exit(run(settings=settings))


if __name__ == "__main__":
    main()
