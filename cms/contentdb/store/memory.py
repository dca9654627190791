"""
In-memory store implementation.

This is the local fallback used when no remote store is configured:
- Unit tests
- Demos and offline use
- Local development without external dependencies

It implements both SchemaStore and ContentItemStore. Records are kept as
JSON-shaped dicts (as browser storage would hold them) and decoded through
the codec on every read, so callers never share mutable state with the store.

Invariants:
    - All data is lost on process exit; nothing is shared across processes
    - A tenant's namespace is initialized on first use (optionally seeded)
    - Safe for concurrent coroutines (single asyncio lock)

How to change safely:
    - Keep behavior identical to SqliteStore and HttpStore; the engine tests
      run against this store
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..content.types import ContentItem, ContentItemVersion
from ..errors import ConcurrentModificationError
from ..schema.types import Schema
from .base import SchemaFilter
from .codec import item_from_dict, schema_from_dict, version_from_dict

logger = logging.getLogger(__name__)


@dataclass
class _TenantSpace:
    """Per-tenant record storage."""

    schemas: dict[str, dict[str, Any]] = field(default_factory=dict)
    items: dict[str, dict[str, Any]] = field(default_factory=dict)
    versions: dict[str, list[dict[str, Any]]] = field(default_factory=dict)


class InMemoryStore:
    """In-memory implementation of SchemaStore and ContentItemStore.

    Example:
        >>> store = InMemoryStore()
        >>> schema = await store.put_schema("tenant_1", Schema(id="s1", name="Post"))
        >>> await store.get_schema("tenant_1", "s1")
    """

    def __init__(self, seed_schemas: Iterable[Schema] | None = None) -> None:
        """Initialize the store.

        Args:
            seed_schemas: Schemas written into every tenant on first use
        """
        self._seed = [s.to_dict() for s in seed_schemas or ()]
        self._tenants: dict[str, _TenantSpace] = {}
        self._lock = asyncio.Lock()

    def _space(self, tenant_id: str) -> _TenantSpace:
        space = self._tenants.get(tenant_id)
        if space is None:
            space = _TenantSpace()
            for raw in self._seed:
                space.schemas[raw["id"]] = copy.deepcopy(raw)
            self._tenants[tenant_id] = space
            logger.debug(
                "Initialized in-memory tenant",
                extra={"tenant_id": tenant_id, "seeded_schemas": len(self._seed)},
            )
        return space

    def tenant_ids(self) -> list[str]:
        """Tenants initialized so far."""
        return sorted(self._tenants)

    # --- SchemaStore ---

    async def get_schema(self, tenant_id: str, schema_id: str) -> Schema | None:
        async with self._lock:
            raw = self._space(tenant_id).schemas.get(schema_id)
            return schema_from_dict(copy.deepcopy(raw)) if raw else None

    async def list_schemas(
        self, tenant_id: str, schema_filter: SchemaFilter | None = None
    ) -> list[Schema]:
        async with self._lock:
            raws = [copy.deepcopy(r) for r in self._space(tenant_id).schemas.values()]
        schemas = [schema_from_dict(r) for r in raws]
        if schema_filter is not None:
            schemas = [s for s in schemas if schema_filter.matches(s)]
        return schemas

    async def put_schema(
        self, tenant_id: str, schema: Schema, expected_version: int | None = None
    ) -> Schema:
        async with self._lock:
            space = self._space(tenant_id)
            existing = space.schemas.get(schema.id)
            actual = int(existing.get("version") or 0) if existing else 0
            if expected_version is not None and actual != expected_version:
                raise ConcurrentModificationError(schema.id, expected_version, actual)
            space.schemas[schema.id] = schema.to_dict()
        return schema

    async def delete_schema(self, tenant_id: str, schema_id: str) -> None:
        async with self._lock:
            self._space(tenant_id).schemas.pop(schema_id, None)

    # --- ContentItemStore ---

    async def get_item(self, tenant_id: str, item_id: str) -> ContentItem | None:
        async with self._lock:
            raw = self._space(tenant_id).items.get(item_id)
            return item_from_dict(copy.deepcopy(raw)) if raw else None

    async def get_items_by_schema(self, tenant_id: str, schema_id: str) -> list[ContentItem]:
        async with self._lock:
            raws = [
                copy.deepcopy(r)
                for r in self._space(tenant_id).items.values()
                if str(r.get("schemaId", r.get("schema_id"))) == schema_id
            ]
        return [item_from_dict(r) for r in raws]

    async def put_item(self, tenant_id: str, item: ContentItem) -> ContentItem:
        async with self._lock:
            self._space(tenant_id).items[item.id] = copy.deepcopy(item.to_dict())
        return item

    async def put_raw_item(self, tenant_id: str, raw: dict[str, Any]) -> None:
        """Store a record as-is (used to import legacy-shaped data)."""
        async with self._lock:
            self._space(tenant_id).items[str(raw["id"])] = copy.deepcopy(raw)

    async def raw_item(self, tenant_id: str, item_id: str) -> dict[str, Any] | None:
        """The record exactly as stored."""
        async with self._lock:
            raw = self._space(tenant_id).items.get(item_id)
            return copy.deepcopy(raw) if raw else None

    async def delete_item(self, tenant_id: str, item_id: str) -> None:
        async with self._lock:
            space = self._space(tenant_id)
            space.items.pop(item_id, None)
            space.versions.pop(item_id, None)

    async def put_version(self, tenant_id: str, version: ContentItemVersion) -> ContentItemVersion:
        async with self._lock:
            history = self._space(tenant_id).versions.setdefault(version.content_item_id, [])
            history.append(copy.deepcopy(version.to_dict()))
        return version

    async def list_versions(self, tenant_id: str, item_id: str) -> list[ContentItemVersion]:
        async with self._lock:
            raws = copy.deepcopy(self._space(tenant_id).versions.get(item_id, []))
        return [version_from_dict(r) for r in reversed(raws)]
