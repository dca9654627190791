"""
Schema Mutation Engine for ContentDB.

Applies one structural edit per call to a schema's field list:
- add_field: append a field under a freshly generated id
- rename_field: change a label (never touches item storage)
- update_field: change label, description, required, default or options
- reorder_fields: apply a permutation of the field ids
- delete_field: remove a field, migrating item data per FieldMigrationPolicy
- purge_field_data: retry (or start) the cleanup of a removed field's data

Purge flow:
    1. The schema without the field is committed (version bumped)
    2. Every item of the schema still carrying the key is re-read and
       written back without it, one put_item per item, concurrently up
       to `purge_concurrency` writes at a time
    3. Failures are collected; the caller gets PartialMigrationError
       listing them, or a FieldDeletionResult on full success

Invariants:
    - Field ids never change; a re-added field gets a new id
    - Retain leaves item data byte-identical in storage
    - Each item is purged all-or-nothing (single put_item)
    - No ordering is assumed across items

How to change safely:
    - Persist schema changes only through SchemaRegistry.commit()
    - Keep the schema commit ahead of item writes; a purge can always
      be retried, a half-removed field cannot
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from ..errors import InvalidOrderError, NotFoundError, PartialMigrationError, SchemaValidationError
from ..util import new_id, now_iso
from .changes import diff_schemas, field_added, field_removed
from .registry import SchemaRegistry, coerce_field
from .types import FieldDef, FieldMigrationPolicy, Schema

if TYPE_CHECKING:
    from ..store.base import ContentItemStore

logger = logging.getLogger(__name__)

FIELD_ID_PREFIX = "fld_"

# Keys accepted by update_field, with their FieldDef attribute
_UPDATABLE = {
    "label": "label",
    "description": "description",
    "required": "required",
    "defaultValue": "default_value",
    "default_value": "default_value",
    "options": "options",
}


@dataclass(frozen=True)
class FieldDeletionResult:
    """Outcome of delete_field() / purge_field_data().

    Attributes:
        schema: The schema as persisted after the removal
        field_id: The removed field id
        policy: Migration policy applied
        purged_item_ids: Items whose data no longer carries the field
        failed_item_ids: Items that could not be purged
    """

    schema: Schema
    field_id: str
    policy: FieldMigrationPolicy
    purged_item_ids: list[str] = field(default_factory=list)
    failed_item_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_item_ids


class SchemaMutationEngine:
    """Structural edits of a schema's field list.

    Example:
        >>> engine = SchemaMutationEngine(registry, store, purge_concurrency=8)
        >>> schema = await engine.add_field("t1", schema.id, field("x", "Summary", "text"))
        >>> result = await engine.delete_field("t1", schema.id, "fld_1a2b", "purge")
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        item_store: ContentItemStore,
        purge_concurrency: int = 8,
    ) -> None:
        if purge_concurrency < 1:
            raise ValueError("purge_concurrency must be at least 1")
        self.registry = registry
        self.item_store = item_store
        self.purge_concurrency = purge_concurrency

    def _require_field(self, schema: Schema, field_id: str) -> FieldDef:
        f = schema.get_field(field_id)
        if f is None:
            raise NotFoundError(
                f"Field '{field_id}' not found on schema '{schema.id}'",
                resource_type="field",
                resource_id=field_id,
            )
        return f

    async def add_field(
        self,
        tenant_id: str,
        schema_id: str,
        new_field: FieldDef | dict[str, Any],
        expected_version: int | None = None,
    ) -> Schema:
        """Append a field under a freshly generated id.

        Any id carried by `new_field` is ignored.

        Raises:
            SchemaValidationError: If the field definition is invalid
        """
        current = await self.registry.load_for_write(tenant_id, schema_id, expected_version)
        candidate = replace(coerce_field(_with_placeholder_id(new_field)), id=new_id(FIELD_ID_PREFIX))
        while candidate.id in current.known_keys():
            candidate = replace(candidate, id=new_id(FIELD_ID_PREFIX))

        updated = current.with_fields([*current.fields, candidate])
        await self.registry.validate(tenant_id, updated)
        return await self.registry.commit(
            tenant_id, current, updated, [field_added(current, candidate)]
        )

    async def rename_field(
        self,
        tenant_id: str,
        schema_id: str,
        field_id: str,
        new_label: str,
        expected_version: int | None = None,
    ) -> Schema:
        """Change a field's label. Item data is never read or written."""
        return await self.update_field(
            tenant_id, schema_id, field_id, {"label": new_label}, expected_version
        )

    async def update_field(
        self,
        tenant_id: str,
        schema_id: str,
        field_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> Schema:
        """Change the mutable attributes of a field.

        Accepted keys: label, description, required, defaultValue, options.
        The id and type of a field are immutable.

        Raises:
            NotFoundError: If the field is not active on the schema
            SchemaValidationError: If a key is not updatable or the result is invalid
        """
        rejected = sorted(set(changes) - set(_UPDATABLE))
        if rejected:
            raise SchemaValidationError(
                [f"Field attributes {rejected} cannot be changed; "
                 f"updatable: label, description, required, defaultValue, options"],
                [field_id],
            )

        current = await self.registry.load_for_write(tenant_id, schema_id, expected_version)
        old = self._require_field(current, field_id)

        attrs = {_UPDATABLE[k]: v for k, v in changes.items()}
        if "options" in attrs and attrs["options"] is not None:
            attrs["options"] = tuple(attrs["options"])
        if "required" in attrs:
            attrs["required"] = bool(attrs["required"])
        new = replace(old, **attrs)
        if new == old:
            return current

        updated = current.with_fields([new if f.id == field_id else f for f in current.fields])
        await self.registry.validate(tenant_id, updated)
        return await self.registry.commit(tenant_id, current, updated, diff_schemas(current, updated))

    async def reorder_fields(
        self,
        tenant_id: str,
        schema_id: str,
        new_order: list[str],
        expected_version: int | None = None,
    ) -> Schema:
        """Reorder fields.

        Raises:
            InvalidOrderError: If new_order is not a permutation of the field ids
        """
        current = await self.registry.load_for_write(tenant_id, schema_id, expected_version)
        existing = current.field_ids
        missing = [fid for fid in existing if fid not in new_order]
        unexpected = [fid for fid in new_order if fid not in existing]
        if missing or unexpected or len(new_order) != len(existing) or len(set(new_order)) != len(new_order):
            raise InvalidOrderError(schema_id, missing, unexpected)

        if list(new_order) == existing:
            return current
        by_id = {f.id: f for f in current.fields}
        updated = current.with_fields([by_id[fid] for fid in new_order])
        return await self.registry.commit(tenant_id, current, updated, diff_schemas(current, updated))

    async def delete_field(
        self,
        tenant_id: str,
        schema_id: str,
        field_id: str,
        policy: FieldMigrationPolicy | str,
        expected_version: int | None = None,
    ) -> FieldDeletionResult:
        """Remove a field from the schema.

        Retain: the id moves to retainedFieldIds; item data is untouched.
        Purge: the key is removed from every item of the schema.

        Raises:
            NotFoundError: If the field is not active on the schema
            PartialMigrationError: If some items could not be purged (the
                field is already removed from the schema)
        """
        policy = FieldMigrationPolicy(policy) if isinstance(policy, str) else policy
        current = await self.registry.load_for_write(tenant_id, schema_id, expected_version)
        removed = self._require_field(current, field_id)
        purge = policy == FieldMigrationPolicy.PURGE

        retained = current.retained_field_ids
        if not purge:
            retained = tuple(dict.fromkeys([*retained, field_id]))
        updated = replace(
            current.with_fields([f for f in current.fields if f.id != field_id]),
            retained_field_ids=retained,
        )
        schema = await self.registry.commit(
            tenant_id, current, updated, [field_removed(current, removed, purged=purge)]
        )

        if not purge:
            return FieldDeletionResult(schema=schema, field_id=field_id, policy=policy)
        return await self._purge(tenant_id, schema, field_id, policy)

    async def purge_field_data(
        self,
        tenant_id: str,
        schema_id: str,
        field_id: str,
        expected_version: int | None = None,
    ) -> FieldDeletionResult:
        """Remove a deleted field's key from every item of the schema.

        Used to retry after PartialMigrationError, or to purge the data of a
        field deleted earlier with the retain policy (the id then leaves
        retainedFieldIds).

        Raises:
            SchemaValidationError: If the field is still active
        """
        current = await self.registry.load_for_write(tenant_id, schema_id, expected_version)
        if current.get_field(field_id) is not None:
            raise SchemaValidationError(
                [f"Field '{field_id}' is still active on schema '{schema_id}'; delete it first"],
                [field_id],
            )

        schema = current
        if field_id in current.retained_field_ids:
            updated = replace(
                current,
                retained_field_ids=tuple(fid for fid in current.retained_field_ids if fid != field_id),
            )
            schema = await self.registry.commit(tenant_id, current, updated, [])
            logger.info(
                "Purging retained field data",
                extra={"tenant_id": tenant_id, "schema_id": schema_id, "field_id": field_id},
            )
        return await self._purge(tenant_id, schema, field_id, FieldMigrationPolicy.PURGE)

    async def _purge(
        self,
        tenant_id: str,
        schema: Schema,
        field_id: str,
        policy: FieldMigrationPolicy,
    ) -> FieldDeletionResult:
        items = await self.item_store.get_items_by_schema(tenant_id, schema.id)
        item_ids = [i.id for i in items if field_id in i.data]
        semaphore = asyncio.Semaphore(self.purge_concurrency)

        async def purge_one(item_id: str) -> bool:
            async with semaphore:
                try:
                    item = await self.item_store.get_item(tenant_id, item_id)
                    if item is None or field_id not in item.data:
                        return True
                    data = {k: v for k, v in item.data.items() if k != field_id}
                    await self.item_store.put_item(
                        tenant_id, replace(item, data=data, updated_at=now_iso())
                    )
                    return True
                except Exception as e:
                    logger.warning(
                        f"Failed to purge field from item: {e}",
                        extra={
                            "tenant_id": tenant_id,
                            "schema_id": schema.id,
                            "field_id": field_id,
                            "item_id": item_id,
                        },
                    )
                    return False

        outcomes = await asyncio.gather(*(purge_one(item_id) for item_id in item_ids))
        purged = [item_id for item_id, ok in zip(item_ids, outcomes) if ok]
        failed = [item_id for item_id, ok in zip(item_ids, outcomes) if not ok]

        logger.info(
            "Purged field data",
            extra={
                "tenant_id": tenant_id,
                "schema_id": schema.id,
                "field_id": field_id,
                "purged": len(purged),
                "failed": len(failed),
            },
        )
        if failed:
            raise PartialMigrationError(schema, field_id, purged, failed)
        return FieldDeletionResult(
            schema=schema,
            field_id=field_id,
            policy=policy,
            purged_item_ids=purged,
            failed_item_ids=[],
        )


def _with_placeholder_id(value: FieldDef | dict[str, Any]) -> FieldDef | dict[str, Any]:
    # Dict input may omit the id entirely; it is replaced anyway.
    if isinstance(value, dict) and not value.get("id"):
        return {**value, "id": FIELD_ID_PREFIX}
    return value
