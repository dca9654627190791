"""
Relation resolution for ContentDB.

Resolves the value of a relation field to the identities of live content
items in the field's target schema.

Invariants:
    - Read-only: targets are never written
    - Many cardinality fails as a whole if any id is missing (no partial result)
    - Soft-deleted items count as missing
    - A schema may relate to itself
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import ContentValidationError, RelationTargetNotFoundError
from ..schema.catalog import check_value, is_empty
from ..schema.types import FieldDef, FieldType, RelationCardinality, Schema

if TYPE_CHECKING:
    from ..store.base import ContentItemStore, SchemaStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedReference:
    """Target identity of a relation value.

    Attributes:
        field_id: Relation field the value belongs to
        target_schema_id: Schema the items belong to
        cardinality: One or many
        item_ids: Resolved item ids (empty when the value is empty)
    """

    field_id: str
    target_schema_id: str
    cardinality: RelationCardinality
    item_ids: tuple[str, ...] = ()

    @property
    def item_id(self) -> str | None:
        """The single target id of a one-cardinality reference."""
        return self.item_ids[0] if self.item_ids else None


class RelationResolver:
    """Look up relation targets through the stores.

    Example:
        >>> resolver = RelationResolver(store, store)
        >>> ref = await resolver.resolve("t1", author_field, "item_42")
        >>> ref.item_id
        'item_42'
    """

    def __init__(self, schema_store: SchemaStore, item_store: ContentItemStore) -> None:
        self.schema_store = schema_store
        self.item_store = item_store

    async def _live_ids(self, tenant_id: str, schema_id: str) -> set[str] | None:
        """Ids of live items in a schema; None if the schema does not exist."""
        if await self.schema_store.get_schema(tenant_id, schema_id) is None:
            return None
        items = await self.item_store.get_items_by_schema(tenant_id, schema_id)
        return {i.id for i in items if not i.is_deleted}

    async def resolve(
        self,
        tenant_id: str,
        f: FieldDef,
        value: Any,
        _cache: dict[str, set[str] | None] | None = None,
    ) -> ResolvedReference:
        """Resolve one relation value.

        Args:
            tenant_id: Tenant the items live in
            f: Relation field definition
            value: An id, or a list of ids for many cardinality

        Returns:
            ResolvedReference (empty for an empty value)

        Raises:
            ValueError: If f is not a relation field
            ContentValidationError: If the value is not shaped like ids
            RelationTargetNotFoundError: If any id does not resolve
        """
        if f.type != FieldType.RELATION or not f.relation_target:
            raise ValueError(f"Field '{f.id}' is not a relation field")
        cardinality = f.relation_cardinality or RelationCardinality.ONE
        target = f.relation_target

        if is_empty(value):
            return ResolvedReference(f.id, target, cardinality)

        check = check_value(f, value)
        if not check.ok:
            raise ContentValidationError([f.id], {f.id: check.reason or "invalid relation"})
        ids = check.value if isinstance(check.value, list) else [check.value]

        cache = _cache if _cache is not None else {}
        if target not in cache:
            cache[target] = await self._live_ids(tenant_id, target)
        live = cache[target]

        missing = [i for i in ids if live is None or i not in live]
        if missing:
            raise RelationTargetNotFoundError(f.id, target, missing)
        return ResolvedReference(f.id, target, cardinality, tuple(ids))

    async def resolve_many(
        self, tenant_id: str, schema: Schema, data: dict[str, Any]
    ) -> tuple[dict[str, ResolvedReference], dict[str, RelationTargetNotFoundError]]:
        """Resolve every relation field of a payload.

        Target lookups are shared between fields with the same target.

        Returns:
            (resolved references, failures), both keyed by field id
        """
        resolved: dict[str, ResolvedReference] = {}
        failures: dict[str, RelationTargetNotFoundError] = {}
        cache: dict[str, set[str] | None] = {}

        for f in schema.get_relation_fields():
            if f.id not in data:
                continue
            try:
                resolved[f.id] = await self.resolve(tenant_id, f, data[f.id], _cache=cache)
            except RelationTargetNotFoundError as e:
                failures[f.id] = e

        if failures:
            logger.debug(
                "Unresolved relation targets",
                extra={"tenant_id": tenant_id, "schema_id": schema.id, "fields": sorted(failures)},
            )
        return resolved, failures
