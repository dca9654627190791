"""
Schema change descriptions for ContentDB.

Every structural edit of a schema is described as a list of SchemaChange
entries. The registry and mutation engine log them; update() skips the
write when the list is empty. The schema CLI prints them when diffing
two exported schema sets.

A change is destructive when it can make stored item data unreadable or
stale:
- a field is removed (purged or retained)
- a field changes type
- an enum option is removed
- an optional field becomes required
- a schema is removed

Invariants:
    - Field ids are matched by id, never by label
    - diff_schemas(s, s) == []
    - Changes are returned in schema field order

How to change safely:
    - Add new ChangeKind members with an explicit destructive flag
    - Keep SchemaChange.__str__ stable (the CLI prints it)

Example:
    >>> changes = diff_schemas(old_schema, new_schema)
    >>> destructive = [c for c in changes if c.is_destructive]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .types import FieldDef, Schema

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Types of schema changes."""

    # Non-destructive
    SCHEMA_ADDED = "schema_added"
    SCHEMA_RENAMED = "schema_renamed"
    SCHEMA_ARCHIVED = "schema_archived"
    SCHEMA_UNARCHIVED = "schema_unarchived"
    DESCRIPTION_CHANGED = "description_changed"
    KIND_CHANGED = "kind_changed"
    FIELD_ADDED = "field_added"
    FIELD_RENAMED = "field_renamed"
    FIELD_REORDERED = "field_reordered"
    FIELD_UPDATED = "field_updated"
    REQUIRED_REMOVED = "required_removed"
    DEFAULT_CHANGED = "default_changed"
    ENUM_OPTION_ADDED = "enum_option_added"

    # Destructive
    SCHEMA_REMOVED = "schema_removed"
    FIELD_RETAINED = "field_retained"
    FIELD_PURGED = "field_purged"
    FIELD_TYPE_CHANGED = "field_type_changed"
    REQUIRED_ADDED = "required_added"
    ENUM_OPTION_REMOVED = "enum_option_removed"
    RELATION_TARGET_CHANGED = "relation_target_changed"

    @property
    def is_destructive(self) -> bool:
        """Whether this change kind can leave stored item data invalid."""
        return self in _DESTRUCTIVE


_DESTRUCTIVE = frozenset({
    ChangeKind.SCHEMA_REMOVED,
    ChangeKind.FIELD_RETAINED,
    ChangeKind.FIELD_PURGED,
    ChangeKind.FIELD_TYPE_CHANGED,
    ChangeKind.REQUIRED_ADDED,
    ChangeKind.ENUM_OPTION_REMOVED,
    ChangeKind.RELATION_TARGET_CHANGED,
})


@dataclass(frozen=True)
class SchemaChange:
    """A single schema change.

    Attributes:
        kind: The type of change
        path: Path to the changed element (e.g., "Schema:Blog Post.field:title")
        old_value: Previous value (if applicable)
        new_value: New value (if applicable)
        message: Human-readable description of the change
    """

    kind: ChangeKind
    path: str
    old_value: Any = None
    new_value: Any = None
    message: str = ""

    @property
    def is_destructive(self) -> bool:
        return self.kind.is_destructive

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "path": self.path,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "message": self.message,
            "destructive": self.is_destructive,
        }

    def __str__(self) -> str:
        status = "DESTRUCTIVE" if self.is_destructive else "OK"
        return f"[{status}] {self.kind.name}: {self.path} - {self.message}"


def _schema_path(schema: Schema) -> str:
    return f"Schema:{schema.name}"


def _field_path(schema: Schema, f: FieldDef) -> str:
    return f"{_schema_path(schema)}.field:{f.id}"


def field_added(schema: Schema, f: FieldDef) -> SchemaChange:
    return SchemaChange(
        kind=ChangeKind.FIELD_ADDED,
        path=_field_path(schema, f),
        new_value=f.type.value,
        message=f"Field '{f.label}' ({f.type.value}) added",
    )


def field_removed(schema: Schema, f: FieldDef, purged: bool) -> SchemaChange:
    kind = ChangeKind.FIELD_PURGED if purged else ChangeKind.FIELD_RETAINED
    how = "item data purged" if purged else "item data retained"
    return SchemaChange(
        kind=kind,
        path=_field_path(schema, f),
        old_value=f.type.value,
        message=f"Field '{f.label}' removed ({how})",
    )


def _diff_field(schema: Schema, old: FieldDef, new: FieldDef) -> list[SchemaChange]:
    changes: list[SchemaChange] = []
    path = _field_path(schema, old)

    if old.type != new.type:
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_TYPE_CHANGED,
            path=path,
            old_value=old.type.value,
            new_value=new.type.value,
            message=f"Field type changed from {old.type.value} to {new.type.value}",
        ))

    if old.label != new.label:
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_RENAMED,
            path=path,
            old_value=old.label,
            new_value=new.label,
            message=f"Field relabeled from '{old.label}' to '{new.label}'",
        ))

    if not old.required and new.required:
        changes.append(SchemaChange(
            kind=ChangeKind.REQUIRED_ADDED,
            path=path,
            message=f"Field '{new.label}' is now required",
        ))
    elif old.required and not new.required:
        changes.append(SchemaChange(
            kind=ChangeKind.REQUIRED_REMOVED,
            path=path,
            message=f"Field '{new.label}' is no longer required",
        ))

    if old.default_value != new.default_value:
        changes.append(SchemaChange(
            kind=ChangeKind.DEFAULT_CHANGED,
            path=path,
            old_value=old.default_value,
            new_value=new.default_value,
            message=f"Default changed from {old.default_value!r} to {new.default_value!r}",
        ))

    old_options = list(old.options or ())
    new_options = list(new.options or ())
    for option in old_options:
        if option not in new_options:
            changes.append(SchemaChange(
                kind=ChangeKind.ENUM_OPTION_REMOVED,
                path=f"{path}.option:{option}",
                old_value=option,
                message=f"Enum option '{option}' removed",
            ))
    for option in new_options:
        if option not in old_options:
            changes.append(SchemaChange(
                kind=ChangeKind.ENUM_OPTION_ADDED,
                path=f"{path}.option:{option}",
                new_value=option,
                message=f"Enum option '{option}' added",
            ))

    if old.relation_target != new.relation_target or old.is_many != new.is_many:
        changes.append(SchemaChange(
            kind=ChangeKind.RELATION_TARGET_CHANGED,
            path=path,
            old_value=old.relation_target,
            new_value=new.relation_target,
            message="Relation target or cardinality changed",
        ))

    if (old.description or "") != (new.description or ""):
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_UPDATED,
            path=path,
            old_value=old.description,
            new_value=new.description,
            message="Field description changed",
        ))

    return changes


def diff_schemas(old: Schema, new: Schema) -> list[SchemaChange]:
    """Compute the changes between two snapshots of the same schema.

    Fields are matched by id. A field missing from `new` is reported as
    retained when its id appears in new.retained_field_ids, else as purged.

    Args:
        old: The baseline schema
        new: The changed schema

    Returns:
        List of SchemaChange objects describing all differences
    """
    changes: list[SchemaChange] = []
    path = _schema_path(old)

    if old.name != new.name:
        changes.append(SchemaChange(
            kind=ChangeKind.SCHEMA_RENAMED,
            path=path,
            old_value=old.name,
            new_value=new.name,
            message=f"Schema renamed from '{old.name}' to '{new.name}'",
        ))
    if (old.description or "") != (new.description or ""):
        changes.append(SchemaChange(
            kind=ChangeKind.DESCRIPTION_CHANGED,
            path=path,
            old_value=old.description,
            new_value=new.description,
            message="Schema description changed",
        ))
    if old.kind != new.kind:
        changes.append(SchemaChange(
            kind=ChangeKind.KIND_CHANGED,
            path=path,
            old_value=old.kind.value,
            new_value=new.kind.value,
            message=f"Schema kind changed from {old.kind.value} to {new.kind.value}",
        ))
    if not old.is_archived and new.is_archived:
        changes.append(SchemaChange(kind=ChangeKind.SCHEMA_ARCHIVED, path=path, message="Schema archived"))
    elif old.is_archived and not new.is_archived:
        changes.append(SchemaChange(kind=ChangeKind.SCHEMA_UNARCHIVED, path=path, message="Schema unarchived"))

    old_fields = {f.id: f for f in old.fields}
    new_fields = {f.id: f for f in new.fields}

    for f in old.fields:
        if f.id not in new_fields:
            changes.append(field_removed(old, f, purged=f.id not in new.retained_field_ids))

    for f in new.fields:
        if f.id not in old_fields:
            changes.append(field_added(new, f))
        else:
            changes.extend(_diff_field(old, old_fields[f.id], f))

    common_old = [fid for fid in old.field_ids if fid in new_fields]
    common_new = [fid for fid in new.field_ids if fid in old_fields]
    if common_old != common_new:
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_REORDERED,
            path=path,
            old_value=common_old,
            new_value=common_new,
            message="Fields reordered",
        ))

    return changes


def diff_schema_sets(old: list[Schema], new: list[Schema]) -> list[SchemaChange]:
    """Compute the changes between two exported schema sets (matched by id)."""
    changes: list[SchemaChange] = []
    old_by_id = {s.id: s for s in old}
    new_by_id = {s.id: s for s in new}

    for schema in old:
        if schema.id not in new_by_id:
            changes.append(SchemaChange(
                kind=ChangeKind.SCHEMA_REMOVED,
                path=_schema_path(schema),
                old_value=schema.id,
                message=f"Schema '{schema.name}' (id={schema.id}) was removed",
            ))
    for schema in new:
        if schema.id not in old_by_id:
            changes.append(SchemaChange(
                kind=ChangeKind.SCHEMA_ADDED,
                path=_schema_path(schema),
                new_value=schema.id,
                message=f"Schema '{schema.name}' (id={schema.id}) added",
            ))
        else:
            changes.extend(diff_schemas(old_by_id[schema.id], schema))
    return changes


def log_changes(tenant_id: str, schema_id: str, changes: list[SchemaChange]) -> None:
    """Log every change of one mutation."""
    for change in changes:
        level = logging.WARNING if change.is_destructive else logging.INFO
        logger.log(
            level,
            str(change),
            extra={
                "tenant_id": tenant_id,
                "schema_id": schema_id,
                "change_kind": change.kind.value,
                "destructive": change.is_destructive,
            },
        )
