"""
Schema CLI tool for ContentDB.

This tool manages exported schema definitions:
- export: Write a tenant's schemas to a JSON file
- diff: Show differences between two exports
- validate: Check an export for structural errors
- templates: List (or print) the quickstart templates

Usage:
    contentdb-schema export --tenant acme > schemas.json
    contentdb-schema diff --old schemas.v1.json --new schemas.v2.json
    contentdb-schema validate --file schemas.json
    contentdb-schema templates --show blog_post

Invariants:
    - Destructive changes cause a non-zero exit code from diff
    - Export files are deterministic (sorted JSON, schemas ordered by id)

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
from typing import Any

from ..config import Settings
from ..engine import ContentEngine
from ..logging_config import setup_logging
from ..schema.changes import diff_schema_sets
from ..schema.templates import TEMPLATES, template_names
from ..schema.types import Schema
from ..store.codec import schema_from_dict

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = 1


def _read_export(path: str) -> list[Schema]:
    with open(path) as f:
        data = json.load(f)
    # Accept both the wrapped export format and a bare list
    raw = data.get("schemas", []) if isinstance(data, dict) else data
    return [schema_from_dict(s) for s in raw]


class SchemaCLI:
    """CLI tool for schema management.

    Example:
        >>> cli = SchemaCLI()
        >>> print(cli.render_export("acme", schemas))
        >>> changes = cli.diff("old.json", "new.json")
    """

    def render_export(self, tenant_id: str, schemas: list[Schema]) -> str:
        """Render schemas as a deterministic JSON export."""
        output = {
            "version": EXPORT_FORMAT_VERSION,
            "tenant": tenant_id,
            "schemas": [s.to_dict() for s in sorted(schemas, key=lambda s: s.id)],
        }
        return json.dumps(output, indent=2, sort_keys=True)

    async def export(self, engine: ContentEngine, tenant_id: str) -> str:
        """Export a tenant's schemas."""
        return self.render_export(tenant_id, await engine.export_schemas(tenant_id))

    def diff(self, old_path: str, new_path: str) -> list[dict[str, Any]]:
        """Show differences between two exports.

        Returns:
            List of change dictionaries
        """
        changes = diff_schema_sets(_read_export(old_path), _read_export(new_path))
        return [change.to_dict() for change in changes]

    def validate(self, path: str) -> list[str]:
        """Check every schema of an export for structural errors.

        Relation targets must name a schema in the same export.
        """
        schemas = _read_export(path)
        known = {s.id for s in schemas}
        errors: list[str] = []
        for schema in schemas:
            schema_errors, _ = schema.structural_errors()
            errors.extend(f"{schema.name}: {e}" for e in schema_errors)
            for f in schema.get_relation_fields():
                if f.relation_target and f.relation_target not in known:
                    errors.append(
                        f"{schema.name}: relation field '{f.id}' targets unknown schema "
                        f"'{f.relation_target}'"
                    )
        return errors

    def templates(self) -> list[dict[str, Any]]:
        """Summaries of the quickstart templates."""
        return [
            {
                "name": name,
                "schema": TEMPLATES[name].name,
                "kind": TEMPLATES[name].kind.value,
                "fields": TEMPLATES[name].field_ids,
            }
            for name in template_names()
        ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ContentDB schema management tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    export_parser = subparsers.add_parser("export", help="Export a tenant's schemas to JSON")
    export_parser.add_argument("--tenant", "-t", required=True, help="Tenant (workspace) id")
    export_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    # diff command
    diff_parser = subparsers.add_parser("diff", help="Show differences between exports")
    diff_parser.add_argument("--old", required=True, help="Path to old export JSON")
    diff_parser.add_argument("--new", required=True, help="Path to new export JSON")
    diff_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate an export file")
    validate_parser.add_argument("--file", required=True, help="Export JSON file to validate")

    # templates command
    templates_parser = subparsers.add_parser("templates", help="List quickstart templates")
    templates_parser.add_argument("--show", help="Print one template as JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for schema tool."""
    args = build_parser().parse_args(argv)
    cli = SchemaCLI()

    if args.command == "export":
        settings = Settings()
        setup_logging(settings)
        engine = ContentEngine.from_settings(settings)

        async def run() -> str:
            try:
                return await cli.export(engine, args.tenant)
            finally:
                await engine.close()

        output = asyncio.run(run())
        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            print(f"Schemas exported to {args.output}", file=sys.stderr)
        else:
            print(output)
        return 0

    if args.command == "diff":
        changes = cli.diff(args.old, args.new)

        if args.format == "json":
            print(json.dumps(changes, indent=2))
        elif not changes:
            print("No changes detected")
        else:
            print(f"Found {len(changes)} change(s):")
            for change in changes:
                status = "DESTRUCTIVE" if change["destructive"] else "OK"
                print(f"  [{status}] {change['kind']}: {change['path']}")
                print(f"          {change['message']}")

        # Exit with error if destructive changes
        return 1 if any(c["destructive"] for c in changes) else 0

    if args.command == "validate":
        errors = cli.validate(args.file)
        if not errors:
            print("Schemas are valid")
            return 0
        print(f"Schema validation failed with {len(errors)} error(s):")
        for error in errors:
            print(f"  - {error}")
        return 1

    if args.command == "templates":
        if args.show:
            if args.show not in TEMPLATES:
                print(f"Unknown template '{args.show}'. Available: {template_names()}", file=sys.stderr)
                return 2
            print(json.dumps(TEMPLATES[args.show].to_dict(), indent=2, sort_keys=True))
            return 0
        for summary in cli.templates():
            print(f"{summary['name']:<14} {summary['kind']:<10} {', '.join(summary['fields'])}")
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
