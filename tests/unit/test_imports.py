"""
Unit tests for package import order.

Each module is imported first thing in a fresh interpreter, so an import
cycle between the schema, content and store layers fails here even when
another test module happened to import things in a working order.
"""

import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


class TestFreshImports:
    """Every entry point imports cleanly on its own."""

    @pytest.mark.parametrize(
        "module",
        [
            "cms.contentdb",
            "cms.contentdb.store",
            "cms.contentdb.store.base",
            "cms.contentdb.store.codec",
            "cms.contentdb.schema",
            "cms.contentdb.schema.registry",
            "cms.contentdb.content",
            "cms.contentdb.content.service",
            "cms.contentdb.engine",
            "cms.contentdb.api.app",
            "cms.contentdb.tools.schema_cli",
        ],
    )
    def test_import_in_fresh_interpreter(self, module):
        result = subprocess.run(
            [sys.executable, "-c", f"import {module}"],
            capture_output=True,
            text=True,
            cwd=REPO_ROOT,
        )
        assert result.returncode == 0, result.stderr
