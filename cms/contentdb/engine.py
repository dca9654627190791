"""
ContentEngine: wires the registry, mutation engine, validator and
lifecycle service around one store pair.

Example:
    >>> engine = ContentEngine.from_settings(Settings())
    >>> schema = await engine.registry.create("t1", schema_from_template("blog_post"))
    >>> item = await engine.content.create("t1", schema.id, {"title": "Hello", "content": "Hi"})
    >>> await engine.mutations.delete_field("t1", schema.id, "summary", "retain")
"""

from __future__ import annotations

import logging
from typing import Any

from .config import Settings
from .content.relations import RelationResolver
from .content.service import ContentService
from .content.validator import ContentValidator
from .schema.mutation import SchemaMutationEngine
from .schema.registry import SchemaRegistry
from .schema.types import Schema
from .store import create_stores
from .store.base import ContentItemStore, SchemaStore

logger = logging.getLogger(__name__)


class ContentEngine:
    """Facade over the schema and content components of one deployment.

    Attributes:
        registry: Schema CRUD
        mutations: Structural field edits
        resolver: Relation resolution
        validator: Payload validation
        content: Item lifecycle
    """

    def __init__(
        self,
        schema_store: SchemaStore,
        item_store: ContentItemStore,
        purge_concurrency: int = 8,
        allow_direct_publish: bool = False,
    ) -> None:
        self.schema_store = schema_store
        self.item_store = item_store
        self.registry = SchemaRegistry(schema_store, item_store)
        self.mutations = SchemaMutationEngine(
            self.registry, item_store, purge_concurrency=purge_concurrency
        )
        self.resolver = RelationResolver(schema_store, item_store)
        self.validator = ContentValidator(self.resolver)
        self.content = ContentService(
            schema_store,
            item_store,
            self.validator,
            allow_direct_publish=allow_direct_publish,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> ContentEngine:
        """Build an engine over the stores configured in settings."""
        schema_store, item_store = create_stores(settings)
        return cls(
            schema_store,
            item_store,
            purge_concurrency=settings.purge_concurrency,
            allow_direct_publish=settings.allow_direct_publish,
        )

    async def validate(
        self, tenant_id: str, schema_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Validate a payload against a stored schema without saving anything."""
        schema = await self.registry.get(tenant_id, schema_id)
        return await self.validator.validate(tenant_id, schema, data)

    async def export_schemas(self, tenant_id: str) -> list[Schema]:
        """All schemas of a tenant, ordered by id."""
        return sorted(await self.schema_store.list_schemas(tenant_id), key=lambda s: s.id)

    async def close(self) -> None:
        """Release store resources (HTTP connections)."""
        closer = getattr(self.schema_store, "close", None)
        if closer is not None:
            await closer()
