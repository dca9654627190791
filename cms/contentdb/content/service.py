"""
Content item lifecycle for ContentDB.

ContentService is the only writer of content items. It provides:
- create / update with validation before anything is persisted
- Status transitions (draft -> pending_review -> published, withdrawal)
- Soft delete, restore and hard delete
- Version history: an immutable snapshot per create/update/transition

Transition table (allow_direct_publish adds draft -> published):

    draft          -> pending_review
    pending_review -> published, draft
    published      -> draft

Invariants:
    - A single-kind schema never has more than one live (non-deleted) item
    - Item data keys are active or retained field ids of the item's schema
    - Leaving draft requires the data to be valid against the current schema
    - publishedAt is set while published and cleared on withdrawal

How to change safely:
    - Keep every write paired with a version snapshot (_save)
    - Do the single-kind check before validation; it rejects without
      looking at the payload
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ..errors import InvalidTransitionError, NotFoundError, SingleTypeAlreadyPopulatedError
from ..schema.types import FieldType, Schema, SchemaKind
from ..util import new_id, now_iso
from .types import ContentItem, ContentItemVersion, ContentStatus
from .validator import ContentValidator

if TYPE_CHECKING:
    from ..store.base import ContentItemStore, SchemaStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"

TRANSITIONS: dict[ContentStatus, frozenset[ContentStatus]] = {
    ContentStatus.DRAFT: frozenset({ContentStatus.PENDING_REVIEW}),
    ContentStatus.PENDING_REVIEW: frozenset({ContentStatus.PUBLISHED, ContentStatus.DRAFT}),
    ContentStatus.PUBLISHED: frozenset({ContentStatus.DRAFT}),
}


def default_title(schema: Schema, data: dict[str, Any]) -> str:
    """First non-empty text field value in schema order, else "Untitled"."""
    for f in schema.fields:
        if f.type != FieldType.TEXT:
            continue
        value = data.get(f.id)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return DEFAULT_TITLE


class ContentService:
    """Create, change and transition content items.

    Example:
        >>> service = ContentService(store, store, ContentValidator(resolver))
        >>> item = await service.create("t1", "blog-post", {"title": "Hello", "content": "..."})
        >>> item = await service.transition("t1", item.id, "pending_review")
    """

    def __init__(
        self,
        schema_store: SchemaStore,
        item_store: ContentItemStore,
        validator: ContentValidator,
        allow_direct_publish: bool = False,
    ) -> None:
        self.schema_store = schema_store
        self.item_store = item_store
        self.validator = validator
        self.transitions = {status: set(targets) for status, targets in TRANSITIONS.items()}
        if allow_direct_publish:
            self.transitions[ContentStatus.DRAFT].add(ContentStatus.PUBLISHED)

    # --- Reads ---

    async def _schema(self, tenant_id: str, schema_id: str) -> Schema:
        schema = await self.schema_store.get_schema(tenant_id, schema_id)
        if schema is None:
            raise NotFoundError(
                f"Schema '{schema_id}' not found", resource_type="schema", resource_id=schema_id
            )
        return schema

    async def get(self, tenant_id: str, item_id: str, include_deleted: bool = False) -> ContentItem:
        """Get an item by id.

        Raises:
            NotFoundError: If the item does not exist (or is soft-deleted and
                include_deleted is False)
        """
        item = await self.item_store.get_item(tenant_id, item_id)
        if item is None or (item.is_deleted and not include_deleted):
            raise NotFoundError(
                f"Content item '{item_id}' not found", resource_type="content_item", resource_id=item_id
            )
        return item

    async def list(
        self,
        tenant_id: str,
        schema_id: str,
        status: ContentStatus | str | None = None,
        include_deleted: bool = False,
    ) -> list[ContentItem]:
        """List items of a schema, most recently updated first."""
        wanted = ContentStatus.parse(status) if status is not None else None
        items = await self.item_store.get_items_by_schema(tenant_id, schema_id)
        result = [
            i
            for i in items
            if (include_deleted or not i.is_deleted) and (wanted is None or i.status == wanted)
        ]
        return sorted(result, key=lambda i: i.updated_at or "", reverse=True)

    async def history(self, tenant_id: str, item_id: str) -> list[ContentItemVersion]:
        """Version snapshots of an item, newest first."""
        await self.get(tenant_id, item_id, include_deleted=True)
        return await self.item_store.list_versions(tenant_id, item_id)

    # --- Writes ---

    async def _check_single(self, tenant_id: str, schema: Schema, exclude_id: str | None = None) -> None:
        if schema.kind != SchemaKind.SINGLE:
            return
        items = await self.item_store.get_items_by_schema(tenant_id, schema.id)
        live = [i for i in items if not i.is_deleted and i.id != exclude_id]
        if live:
            raise SingleTypeAlreadyPopulatedError(schema.id, live[0].id)

    async def _save(self, tenant_id: str, item: ContentItem, actor: str | None) -> ContentItem:
        stored = await self.item_store.put_item(tenant_id, item)
        version = ContentItemVersion(
            id=new_id(),
            content_item_id=item.id,
            schema_id=item.schema_id,
            title=item.title,
            status=item.status,
            data=dict(item.data),
            created_at=item.updated_at or now_iso(),
            created_by=actor,
        )
        await self.item_store.put_version(tenant_id, version)
        return stored

    async def create(
        self,
        tenant_id: str,
        schema_id: str,
        data: dict[str, Any],
        title: str | None = None,
        actor: str | None = None,
    ) -> ContentItem:
        """Create a draft item.

        Raises:
            NotFoundError: If the schema does not exist
            SingleTypeAlreadyPopulatedError: If the schema is single-kind and
                already has a live item
            ContentValidationError: If the payload is invalid
        """
        schema = await self._schema(tenant_id, schema_id)
        await self._check_single(tenant_id, schema)
        normalized = await self.validator.validate(tenant_id, schema, data)

        now = now_iso()
        item = ContentItem(
            id=new_id(),
            schema_id=schema.id,
            title=title.strip() if title and title.strip() else default_title(schema, normalized),
            status=ContentStatus.DRAFT,
            data=normalized,
            created_at=now,
            updated_at=now,
            created_by=actor,
            updated_by=actor,
        )
        stored = await self._save(tenant_id, item, actor)
        logger.info(
            "Created content item",
            extra={"tenant_id": tenant_id, "schema_id": schema.id, "item_id": item.id},
        )
        return stored

    async def update(
        self,
        tenant_id: str,
        item_id: str,
        data: dict[str, Any] | None = None,
        title: str | None = None,
        actor: str | None = None,
    ) -> ContentItem:
        """Replace an item's data and/or title.

        Retained keys stored on the item are carried over when `data`
        does not mention them.

        Raises:
            NotFoundError: If the item or its schema does not exist
            ContentValidationError: If the payload is invalid
        """
        item = await self.get(tenant_id, item_id)
        schema = await self._schema(tenant_id, item.schema_id)

        new_data = item.data
        if data is not None:
            new_data = await self.validator.validate(tenant_id, schema, data)
            for key in schema.retained_field_ids:
                if key in item.data and key not in new_data:
                    new_data[key] = item.data[key]

        new_title = item.title
        if title is not None:
            new_title = title.strip() or default_title(schema, new_data)

        updated = replace(
            item, data=new_data, title=new_title, updated_at=now_iso(), updated_by=actor
        )
        return await self._save(tenant_id, updated, actor)

    async def transition(
        self,
        tenant_id: str,
        item_id: str,
        status: ContentStatus | str,
        actor: str | None = None,
    ) -> ContentItem:
        """Move an item to another status.

        Raises:
            InvalidStatusError: If status is not one of the three statuses
            InvalidTransitionError: If the transition table forbids the move
            ContentValidationError: If leaving draft with data that does not
                validate against the current schema
        """
        target = ContentStatus.parse(status)
        item = await self.get(tenant_id, item_id)
        if item.status == target:
            return item
        if target not in self.transitions[item.status]:
            raise InvalidTransitionError(item_id, item.status.value, target.value)

        data = item.data
        if item.status == ContentStatus.DRAFT:
            schema = await self._schema(tenant_id, item.schema_id)
            data = await self.validator.validate(tenant_id, schema, item.data)

        now = now_iso()
        updated = replace(item, status=target, data=data, updated_at=now, updated_by=actor)
        if target == ContentStatus.PUBLISHED:
            updated = replace(updated, published_at=now, published_by=actor)
        elif target == ContentStatus.DRAFT:
            updated = replace(updated, published_at=None)

        stored = await self._save(tenant_id, updated, actor)
        logger.info(
            f"Content item moved from {item.status.value} to {target.value}",
            extra={"tenant_id": tenant_id, "item_id": item_id},
        )
        return stored

    async def archive(self, tenant_id: str, item_id: str, actor: str | None = None) -> ContentItem:
        """Mark an item archived (a display hint; status is unchanged)."""
        item = await self.get(tenant_id, item_id)
        if item.archived_at is not None:
            return item
        return await self.item_store.put_item(
            tenant_id, replace(item, archived_at=now_iso(), updated_by=actor)
        )

    async def unarchive(self, tenant_id: str, item_id: str, actor: str | None = None) -> ContentItem:
        item = await self.get(tenant_id, item_id)
        if item.archived_at is None:
            return item
        return await self.item_store.put_item(
            tenant_id, replace(item, archived_at=None, updated_by=actor)
        )

    async def delete(
        self, tenant_id: str, item_id: str, hard: bool = False, actor: str | None = None
    ) -> None:
        """Soft-delete an item, or remove it entirely with hard=True."""
        item = await self.get(tenant_id, item_id, include_deleted=hard)
        if hard:
            await self.item_store.delete_item(tenant_id, item_id)
        else:
            await self.item_store.put_item(
                tenant_id, replace(item, deleted_at=now_iso(), updated_by=actor)
            )
        logger.info(
            "Deleted content item",
            extra={"tenant_id": tenant_id, "item_id": item_id, "hard": hard},
        )

    async def restore(self, tenant_id: str, item_id: str, actor: str | None = None) -> ContentItem:
        """Undo a soft delete.

        Raises:
            SingleTypeAlreadyPopulatedError: If the schema is single-kind and
                another live item exists
        """
        item = await self.get(tenant_id, item_id, include_deleted=True)
        if not item.is_deleted:
            return item
        schema = await self._schema(tenant_id, item.schema_id)
        await self._check_single(tenant_id, schema, exclude_id=item.id)
        return await self.item_store.put_item(
            tenant_id, replace(item, deleted_at=None, updated_by=actor)
        )
