"""
Storage contracts for ContentDB.

The engine is storage-agnostic. It talks to two collaborators:
- SchemaStore: schema definitions
- ContentItemStore: content items and their version history

Implementations:
- InMemoryStore (memory.py): local fallback for demos and tests
- SqliteStore (sqlite.py): one SQLite file per tenant
- HttpStore (http.py): remote store behind the FastAPI gateway

Invariants:
    - Every call is scoped to a tenant_id
    - put_schema is compare-and-set on Schema.version when expected_version
      is given (ConcurrentModificationError on mismatch)
    - put_item is atomic per item
    - Storage failures surface as TransportError, never as None/empty results

How to change safely:
    - Add methods to the Protocols only together with all three implementations
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..content.types import ContentItem, ContentItemVersion
    from ..schema.types import Schema, SchemaKind


@dataclass(frozen=True)
class SchemaFilter:
    """Filter for listing schemas.

    Attributes:
        kind: Only schemas of this kind
        text: Case-insensitive substring of name or description
        archived: True = only archived, False = only active, None = both
    """

    kind: SchemaKind | None = None
    text: str | None = None
    archived: bool | None = None

    def matches(self, schema: Schema) -> bool:
        """Whether a schema passes this filter."""
        if self.kind is not None and schema.kind != self.kind:
            return False
        if self.archived is not None and schema.is_archived != self.archived:
            return False
        if self.text:
            needle = self.text.lower()
            haystack = f"{schema.name}\n{schema.description or ''}".lower()
            if needle not in haystack:
                return False
        return True


@runtime_checkable
class SchemaStore(Protocol):
    """Persistence contract for schema definitions."""

    async def get_schema(self, tenant_id: str, schema_id: str) -> Schema | None: ...

    async def list_schemas(
        self, tenant_id: str, schema_filter: SchemaFilter | None = None
    ) -> list[Schema]: ...

    async def put_schema(
        self, tenant_id: str, schema: Schema, expected_version: int | None = None
    ) -> Schema: ...

    async def delete_schema(self, tenant_id: str, schema_id: str) -> None: ...


@runtime_checkable
class ContentItemStore(Protocol):
    """Persistence contract for content items and their versions."""

    async def get_item(self, tenant_id: str, item_id: str) -> ContentItem | None: ...

    async def get_items_by_schema(self, tenant_id: str, schema_id: str) -> list[ContentItem]: ...

    async def put_item(self, tenant_id: str, item: ContentItem) -> ContentItem: ...

    async def delete_item(self, tenant_id: str, item_id: str) -> None: ...

    async def put_version(self, tenant_id: str, version: ContentItemVersion) -> ContentItemVersion: ...

    async def list_versions(self, tenant_id: str, item_id: str) -> list[ContentItemVersion]: ...
