"""
Schema Registry for ContentDB.

The SchemaRegistry is the only writer of schema definitions. It provides:
- create / get / list / update / archive / unarchive / delete
- Validation of field ids, enum and relation definitions
- Optimistic concurrency on every write (Schema.version)

Invariants:
    - Nothing is persisted when validation fails
    - Field ids are unique within a schema and never change type
    - A relation field targets an existing schema of the same tenant
      (or the schema itself)
    - Every persisted change bumps Schema.version by exactly one
    - delete() is refused while any content item or relation field of
      another schema references the schema

How to change safely:
    - Route every schema write through commit() so the version stamp,
      timestamps and change log stay consistent
    - Never drop a field id through update(); dropped ids are retained

Example:
    >>> registry = SchemaRegistry(store, store)
    >>> post = await registry.create("tenant_1", Schema(id="", name="Post", fields=(...)))
    >>> post = await registry.archive("tenant_1", post.id, expected_version=post.version)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ..errors import (
    ConcurrentModificationError,
    NotFoundError,
    SchemaInUseError,
    SchemaValidationError,
    SingleTypeAlreadyPopulatedError,
)
from ..util import new_id, now_iso
from .catalog import check_value, is_empty
from .changes import ChangeKind, SchemaChange, diff_schemas, log_changes
from .types import FieldDef, FieldType, Schema, SchemaKind, normalize_field_dict

if TYPE_CHECKING:
    from ..store.base import ContentItemStore, SchemaFilter, SchemaStore

logger = logging.getLogger(__name__)

PATCHABLE_KEYS = frozenset({"name", "description", "kind", "fields"})


def coerce_field(value: FieldDef | dict[str, Any]) -> FieldDef:
    """Accept a FieldDef or its dict form (any supported shape)."""
    if isinstance(value, FieldDef):
        return value
    return FieldDef.from_dict(normalize_field_dict(value))


class SchemaRegistry:
    """Registry of content schemas, one namespace per tenant.

    Attributes:
        schema_store: Where schema definitions live
        item_store: Used to check item references (delete, kind change)
    """

    def __init__(self, schema_store: SchemaStore, item_store: ContentItemStore) -> None:
        self.schema_store = schema_store
        self.item_store = item_store

    # --- Validation ---

    async def validate(self, tenant_id: str, schema: Schema) -> None:
        """Check a schema definition, collecting every violation.

        Args:
            tenant_id: Tenant the schema belongs to
            schema: Candidate schema

        Raises:
            SchemaValidationError: With all error messages and offending field ids
        """
        errors, bad_ids = schema.structural_errors()

        targets_checked: dict[str, bool] = {}
        for f in schema.fields:
            if f.type == FieldType.RELATION and f.relation_target:
                target = f.relation_target
                if target == schema.id:
                    continue
                if target not in targets_checked:
                    existing = await self.schema_store.get_schema(tenant_id, target)
                    targets_checked[target] = existing is not None
                if not targets_checked[target]:
                    errors.append(
                        f"Relation field '{f.id}' targets unknown schema '{target}'"
                    )
                    bad_ids.append(f.id)

            if not is_empty(f.default_value) and not f.structural_errors():
                check = check_value(f, f.default_value)
                if not check.ok:
                    errors.append(f"Default value of field '{f.id}' {check.reason}")
                    bad_ids.append(f.id)

        if errors:
            raise SchemaValidationError(errors, list(dict.fromkeys(bad_ids)))

    # --- Reads ---

    async def get(self, tenant_id: str, schema_id: str) -> Schema:
        """Get a schema by id.

        Raises:
            NotFoundError: If the schema does not exist in the tenant
        """
        schema = await self.schema_store.get_schema(tenant_id, schema_id)
        if schema is None:
            raise NotFoundError(
                f"Schema '{schema_id}' not found", resource_type="schema", resource_id=schema_id
            )
        return schema

    async def find(self, tenant_id: str, schema_id: str) -> Schema | None:
        """Get a schema by id, or None."""
        return await self.schema_store.get_schema(tenant_id, schema_id)

    async def list(
        self, tenant_id: str, schema_filter: SchemaFilter | None = None
    ) -> list[Schema]:
        """List schemas, optionally filtered by kind, text and archive state."""
        schemas = await self.schema_store.list_schemas(tenant_id, schema_filter)
        return sorted(schemas, key=lambda s: (s.name.lower(), s.id))

    # --- Writes ---

    async def load_for_write(
        self, tenant_id: str, schema_id: str, expected_version: int | None
    ) -> Schema:
        """Load the current schema and check the caller's version stamp.

        Raises:
            NotFoundError: If the schema does not exist
            ConcurrentModificationError: If expected_version is stale
        """
        current = await self.get(tenant_id, schema_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrentModificationError(schema_id, expected_version, current.version)
        return current

    async def commit(
        self,
        tenant_id: str,
        current: Schema,
        updated: Schema,
        changes: list[SchemaChange] | None = None,
    ) -> Schema:
        """Persist a new snapshot of an existing schema.

        Bumps the version and updated_at, writes compare-and-set against the
        version that was read, and logs the change list.
        """
        stamped = replace(updated, version=current.version + 1, updated_at=now_iso())
        stored = await self.schema_store.put_schema(
            tenant_id, stamped, expected_version=current.version
        )
        if changes is None:
            changes = diff_schemas(current, stamped)
        log_changes(tenant_id, stored.id, changes)
        return stored

    async def create(self, tenant_id: str, schema: Schema) -> Schema:
        """Create a schema.

        An id is assigned when the schema has none; timestamps and
        version 1 are always assigned here.

        Raises:
            SchemaValidationError: If the definition is invalid
            ConcurrentModificationError: If a schema with this id already exists
        """
        now = now_iso()
        candidate = replace(
            schema,
            id=schema.id or new_id(),
            archived_at=None,
            created_at=now,
            updated_at=now,
            version=1,
        )
        await self.validate(tenant_id, candidate)

        stored = await self.schema_store.put_schema(tenant_id, candidate, expected_version=0)
        logger.info(
            f"Created schema: {stored.name}",
            extra={
                "tenant_id": tenant_id,
                "schema_id": stored.id,
                "kind": stored.kind.value,
                "field_count": len(stored.fields),
            },
        )
        return stored

    async def update(
        self,
        tenant_id: str,
        schema_id: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> Schema:
        """Apply a patch of name, description, kind and/or fields.

        Field ids present before and after must keep their type. Field ids
        dropped by a `fields` patch are retained (item data is untouched).

        Raises:
            NotFoundError: If the schema does not exist
            ConcurrentModificationError: If expected_version is stale
            SchemaValidationError: If the patched schema is invalid
            SingleTypeAlreadyPopulatedError: If switching to single while
                more than one live item exists
        """
        unknown = sorted(set(patch) - PATCHABLE_KEYS)
        if unknown:
            raise SchemaValidationError(
                [f"Cannot patch {unknown}; patchable keys are {sorted(PATCHABLE_KEYS)}"]
            )

        current = await self.load_for_write(tenant_id, schema_id, expected_version)
        updated = current

        if "name" in patch:
            updated = replace(updated, name=patch["name"])
        if "description" in patch:
            updated = replace(updated, description=patch["description"])
        if "kind" in patch:
            kind = patch["kind"]
            updated = replace(updated, kind=kind if isinstance(kind, SchemaKind) else SchemaKind(kind))
        if "fields" in patch:
            new_fields = tuple(coerce_field(f) for f in patch["fields"] or ())
            new_ids = {f.id for f in new_fields}
            dropped = [fid for fid in current.field_ids if fid not in new_ids]
            updated = replace(
                updated,
                fields=new_fields,
                retained_field_ids=tuple(dict.fromkeys([*current.retained_field_ids, *dropped])),
            )

        errors: list[str] = []
        bad_ids: list[str] = []
        old_fields = {f.id: f for f in current.fields}
        for f in updated.fields:
            old = old_fields.get(f.id)
            if old is not None and old.type != f.type:
                errors.append(
                    f"Field '{f.id}' cannot change type from {old.type.value} to {f.type.value}"
                )
                bad_ids.append(f.id)
        if errors:
            raise SchemaValidationError(errors, bad_ids)

        await self.validate(tenant_id, updated)

        if updated.kind == SchemaKind.SINGLE and current.kind != SchemaKind.SINGLE:
            items = await self.item_store.get_items_by_schema(tenant_id, schema_id)
            live = [i for i in items if not i.is_deleted]
            if len(live) > 1:
                raise SingleTypeAlreadyPopulatedError(schema_id, live[0].id)

        changes = diff_schemas(current, updated)
        if not changes:
            return current
        return await self.commit(tenant_id, current, updated, changes)

    async def archive(
        self, tenant_id: str, schema_id: str, expected_version: int | None = None
    ) -> Schema:
        """Archive a schema (reversible; items are unaffected)."""
        current = await self.load_for_write(tenant_id, schema_id, expected_version)
        if current.is_archived:
            return current
        updated = replace(current, archived_at=now_iso())
        change = SchemaChange(
            kind=ChangeKind.SCHEMA_ARCHIVED, path=f"Schema:{current.name}", message="Schema archived"
        )
        return await self.commit(tenant_id, current, updated, [change])

    async def unarchive(
        self, tenant_id: str, schema_id: str, expected_version: int | None = None
    ) -> Schema:
        """Clear archivedAt."""
        current = await self.load_for_write(tenant_id, schema_id, expected_version)
        if not current.is_archived:
            return current
        updated = replace(current, archived_at=None)
        change = SchemaChange(
            kind=ChangeKind.SCHEMA_UNARCHIVED, path=f"Schema:{current.name}", message="Schema unarchived"
        )
        return await self.commit(tenant_id, current, updated, [change])

    async def delete(
        self, tenant_id: str, schema_id: str, expected_version: int | None = None
    ) -> None:
        """Hard-delete a schema.

        Raises:
            NotFoundError: If the schema does not exist
            ConcurrentModificationError: If expected_version is stale
            SchemaInUseError: If any content item (soft-deleted included)
                or another schema's relation field still references it
        """
        current = await self.load_for_write(tenant_id, schema_id, expected_version)
        items = await self.item_store.get_items_by_schema(tenant_id, schema_id)
        schemas = await self.schema_store.list_schemas(tenant_id)
        referencing = sorted(
            s.id
            for s in schemas
            if s.id != schema_id
            and any(f.relation_target == schema_id for f in s.get_relation_fields())
        )
        if items or referencing:
            raise SchemaInUseError(schema_id, len(items), referencing)

        await self.schema_store.delete_schema(tenant_id, schema_id)
        log_changes(
            tenant_id,
            schema_id,
            [SchemaChange(
                kind=ChangeKind.SCHEMA_REMOVED,
                path=f"Schema:{current.name}",
                old_value=schema_id,
                message=f"Schema '{current.name}' deleted",
            )],
        )
