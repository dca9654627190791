"""
Schema system for ContentDB.

This package provides:
- Field and schema type definitions
- The closed field type catalog (checks and defaults)
- The schema registry and mutation engine
- Change descriptions and quickstart templates
"""

from .catalog import FieldCheck, check_value, default_for, is_empty, supported_types
from .changes import ChangeKind, SchemaChange, diff_schema_sets, diff_schemas
from .mutation import FieldDeletionResult, SchemaMutationEngine
from .registry import SchemaRegistry
from .templates import EXAMPLE_SCHEMAS, TEMPLATES, schema_from_template, template_names
from .types import (
    FieldDef,
    FieldMigrationPolicy,
    FieldType,
    RelationCardinality,
    Schema,
    SchemaKind,
    field,
)

__all__ = [
    # Types
    "FieldType",
    "FieldDef",
    "Schema",
    "SchemaKind",
    "RelationCardinality",
    "FieldMigrationPolicy",
    "field",
    # Catalog
    "FieldCheck",
    "check_value",
    "default_for",
    "is_empty",
    "supported_types",
    # Registry and mutations
    "SchemaRegistry",
    "SchemaMutationEngine",
    "FieldDeletionResult",
    # Changes
    "ChangeKind",
    "SchemaChange",
    "diff_schemas",
    "diff_schema_sets",
    # Templates
    "TEMPLATES",
    "EXAMPLE_SCHEMAS",
    "schema_from_template",
    "template_names",
]
