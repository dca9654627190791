"""
Unit tests for the in-memory store.

Tests cover:
- Compare-and-set schema writes
- Seeding tenants on first use
- Legacy-shaped and undecodable records
- Isolation of returned objects from stored state
"""

from dataclasses import replace

import pytest

from cms.contentdb.content.types import ContentItem
from cms.contentdb.errors import ConcurrentModificationError, RecordDecodeError
from cms.contentdb.schema.templates import EXAMPLE_SCHEMAS
from cms.contentdb.schema.types import SchemaKind
from cms.contentdb.store.memory import InMemoryStore
from tests.helpers import TENANT, blog_post_schema


class TestSchemas:
    """Tests for schema storage."""

    @pytest.mark.asyncio
    async def test_compare_and_set(self, store):
        schema = replace(blog_post_schema(), version=1)
        await store.put_schema(TENANT, schema, expected_version=0)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await store.put_schema(TENANT, replace(schema, version=2), expected_version=0)
        assert exc_info.value.actual_version == 1

        await store.put_schema(TENANT, replace(schema, version=2), expected_version=1)
        assert (await store.get_schema(TENANT, schema.id)).version == 2

    @pytest.mark.asyncio
    async def test_unconditional_write(self, store):
        await store.put_schema(TENANT, blog_post_schema())
        await store.put_schema(TENANT, blog_post_schema())
        assert len(await store.list_schemas(TENANT)) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, store):
        await store.delete_schema(TENANT, "nope")
        assert await store.get_schema(TENANT, "nope") is None

    @pytest.mark.asyncio
    async def test_seeded_tenants(self):
        store = InMemoryStore(seed_schemas=EXAMPLE_SCHEMAS)

        schemas = await store.list_schemas("fresh")

        assert {s.id for s in schemas} == {"blog-post", "homepage"}
        homepage = await store.get_schema("fresh", "homepage")
        assert homepage.kind == SchemaKind.SINGLE
        assert store.tenant_ids() == ["fresh"]


class TestItems:
    """Tests for item storage."""

    @pytest.mark.asyncio
    async def test_returned_items_are_copies(self, store):
        item = ContentItem(id="i1", schema_id="blog-post", title="T", data={"title": "T"})
        await store.put_item(TENANT, item)

        loaded = await store.get_item(TENANT, "i1")
        loaded.data["title"] = "changed"

        assert (await store.get_item(TENANT, "i1")).data == {"title": "T"}

    @pytest.mark.asyncio
    async def test_legacy_records_decode(self, store):
        await store.put_raw_item(
            TENANT,
            {"id": 7, "schema_id": "blog-post", "title": "Old", "status": "published",
             "content": {"title": "Old"}},
        )

        items = await store.get_items_by_schema(TENANT, "blog-post")

        assert [i.id for i in items] == ["7"]
        assert items[0].data == {"title": "Old"}
        assert (await store.raw_item(TENANT, "7"))["content"] == {"title": "Old"}

    @pytest.mark.asyncio
    async def test_record_without_schema_id(self, store):
        await store.put_raw_item(TENANT, {"id": 8, "title": "Orphan", "content": {}})

        with pytest.raises(RecordDecodeError) as exc_info:
            await store.get_item(TENANT, "8")

        assert exc_info.value.record_type == "content_item"
        assert exc_info.value.record_id == "8"
        assert "schemaId" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_tenants_are_isolated(self, store):
        item = ContentItem(id="i1", schema_id="blog-post", title="T")
        await store.put_item(TENANT, item)
        assert await store.get_item("other", "i1") is None
