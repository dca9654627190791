"""
Unit tests for the schema CLI.

Tests cover:
- export rendering (deterministic output)
- diff exit codes for destructive / non-destructive changes
- validate error reporting
- templates listing
"""

import json
import os
import tempfile

import pytest

from cms.contentdb.schema.types import Schema, field
from cms.contentdb.tools.schema_cli import SchemaCLI, main
from tests.helpers import blog_post_schema, homepage_schema


def write_export(path, schemas, tenant="acme"):
    with open(path, "w") as f:
        f.write(SchemaCLI().render_export(tenant, schemas))


class TestSchemaCLI:
    """Tests for SchemaCLI and main()."""

    @pytest.fixture
    def workdir(self):
        """Create temporary directory for export files."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    def test_render_export_is_deterministic(self):
        cli = SchemaCLI()
        first = cli.render_export("acme", [homepage_schema(), blog_post_schema()])
        second = cli.render_export("acme", [blog_post_schema(), homepage_schema()])

        assert first == second
        data = json.loads(first)
        assert data["version"] == 1
        assert [s["id"] for s in data["schemas"]] == ["blog-post", "homepage"]

    def test_diff_no_changes(self, workdir, capsys):
        old = os.path.join(workdir, "old.json")
        write_export(old, [blog_post_schema()])

        assert main(["diff", "--old", old, "--new", old]) == 0
        assert "No changes detected" in capsys.readouterr().out

    def test_diff_additive_change(self, workdir, capsys):
        old, new = os.path.join(workdir, "old.json"), os.path.join(workdir, "new.json")
        schema = blog_post_schema()
        write_export(old, [schema])
        write_export(new, [schema.with_fields([*schema.fields, field("summary", "Summary", "text")])])

        assert main(["diff", "--old", old, "--new", new]) == 0
        assert "[OK] field_added" in capsys.readouterr().out

    def test_diff_destructive_change(self, workdir, capsys):
        old, new = os.path.join(workdir, "old.json"), os.path.join(workdir, "new.json")
        schema = blog_post_schema()
        write_export(old, [schema])
        write_export(new, [schema.with_fields(schema.fields[:1])])

        assert main(["diff", "--old", old, "--new", new, "--format", "json"]) == 1
        changes = json.loads(capsys.readouterr().out)
        assert changes[0]["kind"] == "field_purged"
        assert changes[0]["destructive"] is True

    def test_diff_accepts_bare_list(self, workdir):
        old, new = os.path.join(workdir, "old.json"), os.path.join(workdir, "new.json")
        with open(old, "w") as f:
            json.dump([blog_post_schema().to_dict()], f)
        write_export(new, [blog_post_schema(), homepage_schema()])

        changes = SchemaCLI().diff(old, new)
        assert [c["kind"] for c in changes] == ["schema_added"]

    def test_validate(self, workdir, capsys):
        good, bad = os.path.join(workdir, "good.json"), os.path.join(workdir, "bad.json")
        write_export(good, [blog_post_schema()])
        write_export(bad, [
            Schema(
                id="post",
                name="Post",
                fields=(
                    field("cat", "Category", "enum"),
                    field("author", "Author", "relation", relation_target="author"),
                ),
            )
        ])

        assert main(["validate", "--file", good]) == 0
        assert main(["validate", "--file", bad]) == 1
        errors = SchemaCLI().validate(bad)
        assert len(errors) == 2
        assert "targets unknown schema 'author'" in errors[1]

    def test_templates(self, capsys):
        assert main(["templates"]) == 0
        out = capsys.readouterr().out
        assert "landing_page" in out
        assert "single" in out

        assert main(["templates", "--show", "product"]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["name"] == "Product"

        assert main(["templates", "--show", "recipe"]) == 2

    def test_export_seeded_memory_store(self, workdir, monkeypatch, restore_logging):
        monkeypatch.setenv("CONTENTDB_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("CONTENTDB_SEED_EXAMPLES", "true")
        output = os.path.join(workdir, "export.json")

        assert main(["export", "--tenant", "acme", "--output", output]) == 0

        with open(output) as f:
            data = json.load(f)
        assert data["tenant"] == "acme"
        assert [s["id"] for s in data["schemas"]] == ["blog-post", "homepage"]
