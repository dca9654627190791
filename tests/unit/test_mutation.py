"""
Unit tests for the schema mutation engine.

Tests cover:
- add_field id generation
- update / rename / reorder
- delete_field with the retain and purge policies
- Partial purge failures and retries
- The purge concurrency bound
"""

import asyncio

import pytest

from cms.contentdb.engine import ContentEngine
from cms.contentdb.errors import (
    ConcurrentModificationError,
    InvalidOrderError,
    NotFoundError,
    PartialMigrationError,
    SchemaValidationError,
    TransportError,
)
from cms.contentdb.schema.mutation import FIELD_ID_PREFIX, SchemaMutationEngine
from cms.contentdb.schema.types import FieldMigrationPolicy, field
from cms.contentdb.store.memory import InMemoryStore
from tests.helpers import TENANT, blog_post_schema


class FlakyStore(InMemoryStore):
    """put_item fails for the listed item ids."""

    def __init__(self):
        super().__init__()
        self.fail_ids: set[str] = set()

    async def put_item(self, tenant_id, item):
        if item.id in self.fail_ids:
            raise TransportError("write timed out", operation="put_item")
        return await super().put_item(tenant_id, item)


class CountingStore(InMemoryStore):
    """Records the highest number of put_item calls in flight."""

    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.peak = 0

    async def put_item(self, tenant_id, item):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            return await super().put_item(tenant_id, item)
        finally:
            self.in_flight -= 1


async def seed_posts(engine, count=3, **extra):
    schema = await engine.registry.create(TENANT, blog_post_schema())
    items = []
    for n in range(count):
        items.append(
            await engine.content.create(TENANT, schema.id, {"title": f"Post {n}", **extra})
        )
    return schema, items


def test_concurrency_must_be_positive(engine):
    with pytest.raises(ValueError):
        SchemaMutationEngine(engine.registry, engine.item_store, purge_concurrency=0)


class TestAddField:
    """Tests for add_field()."""

    @pytest.mark.asyncio
    async def test_generates_id_and_appends(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        updated = await engine.mutations.add_field(
            TENANT, schema.id, field("ignored", "Summary", "text")
        )

        new = updated.fields[-1]
        assert new.id.startswith(FIELD_ID_PREFIX)
        assert new.id != "ignored"
        assert new.label == "Summary"
        assert updated.version == schema.version + 1

    @pytest.mark.asyncio
    async def test_dict_without_id(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        updated = await engine.mutations.add_field(
            TENANT, schema.id, {"label": "Tags", "type": "enum", "options": ["a", "b"]}
        )
        assert updated.fields[-1].options == ("a", "b")

    @pytest.mark.asyncio
    async def test_invalid_field_not_persisted(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        with pytest.raises(SchemaValidationError):
            await engine.mutations.add_field(TENANT, schema.id, field("x", "Kind", "enum"))
        assert (await engine.registry.get(TENANT, schema.id)).version == 1

    @pytest.mark.asyncio
    async def test_stale_version(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        await engine.mutations.rename_field(TENANT, schema.id, "title", "Headline")
        with pytest.raises(ConcurrentModificationError):
            await engine.mutations.add_field(
                TENANT, schema.id, field("x", "X", "text"), expected_version=1
            )


class TestUpdateAndReorder:
    """Tests for rename_field(), update_field() and reorder_fields()."""

    @pytest.mark.asyncio
    async def test_rename_leaves_items_alone(self, engine, store):
        schema, items = await seed_posts(engine, count=1)
        before = await store.raw_item(TENANT, items[0].id)

        updated = await engine.mutations.rename_field(TENANT, schema.id, "title", "Headline")

        assert updated.get_field("title").label == "Headline"
        assert await store.raw_item(TENANT, items[0].id) == before

    @pytest.mark.asyncio
    async def test_update_required_and_default(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        updated = await engine.mutations.update_field(
            TENANT, schema.id, "published", {"required": True, "defaultValue": True}
        )
        f = updated.get_field("published")
        assert f.required and f.default_value is True

    @pytest.mark.asyncio
    async def test_update_rejects_type(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        with pytest.raises(SchemaValidationError):
            await engine.mutations.update_field(TENANT, schema.id, "title", {"type": "number"})

    @pytest.mark.asyncio
    async def test_update_unknown_field(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        with pytest.raises(NotFoundError):
            await engine.mutations.update_field(TENANT, schema.id, "nope", {"label": "X"})

    @pytest.mark.asyncio
    async def test_reorder(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        updated = await engine.mutations.reorder_fields(TENANT, schema.id, ["published", "title"])
        assert updated.field_ids == ["published", "title"]
        assert updated.version == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "order",
        [["title"], ["title", "published", "extra"], ["title", "title"], []],
    )
    async def test_reorder_requires_permutation(self, engine, order):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        with pytest.raises(InvalidOrderError):
            await engine.mutations.reorder_fields(TENANT, schema.id, order)
        assert (await engine.registry.get(TENANT, schema.id)).version == 1


class TestDeleteField:
    """Tests for delete_field() and purge_field_data()."""

    @pytest.mark.asyncio
    async def test_retain_keeps_item_data(self, engine, store):
        schema, items = await seed_posts(engine, count=2, published=True)
        before = [await store.raw_item(TENANT, i.id) for i in items]

        result = await engine.mutations.delete_field(
            TENANT, schema.id, "published", FieldMigrationPolicy.RETAIN
        )

        assert result.ok
        assert result.schema.field_ids == ["title"]
        assert result.schema.retained_field_ids == ("published",)
        assert [await store.raw_item(TENANT, i.id) for i in items] == before

    @pytest.mark.asyncio
    async def test_purge_removes_key(self, engine, store):
        schema, items = await seed_posts(engine, count=3)

        result = await engine.mutations.delete_field(TENANT, schema.id, "published", "purge")

        assert sorted(result.purged_item_ids) == sorted(i.id for i in items)
        for item in items:
            raw = await store.raw_item(TENANT, item.id)
            assert "published" not in raw["data"]
            assert raw["data"]["title"] == item.data["title"]

    @pytest.mark.asyncio
    async def test_unknown_field(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        with pytest.raises(NotFoundError):
            await engine.mutations.delete_field(TENANT, schema.id, "nope", "retain")

    @pytest.mark.asyncio
    async def test_bad_policy(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        with pytest.raises(ValueError):
            await engine.mutations.delete_field(TENANT, schema.id, "title", "archive")

    @pytest.mark.asyncio
    async def test_partial_failure_then_retry(self):
        """The schema change sticks; failed items can be purged later."""
        store = FlakyStore()
        engine = ContentEngine(store, store, purge_concurrency=2)
        schema, items = await seed_posts(engine, count=3)
        store.fail_ids = {items[1].id}

        with pytest.raises(PartialMigrationError) as exc_info:
            await engine.mutations.delete_field(TENANT, schema.id, "published", "purge")

        error = exc_info.value
        assert error.failed_item_ids == [items[1].id]
        assert sorted(error.purged_item_ids) == sorted([items[0].id, items[2].id])
        assert error.schema.get_field("published") is None
        assert (await engine.registry.get(TENANT, schema.id)).get_field("published") is None
        assert "published" in (await store.raw_item(TENANT, items[1].id))["data"]

        store.fail_ids = set()
        result = await engine.mutations.purge_field_data(TENANT, schema.id, "published")
        assert result.purged_item_ids == [items[1].id]
        assert "published" not in (await store.raw_item(TENANT, items[1].id))["data"]

    @pytest.mark.asyncio
    async def test_purge_of_retained_data(self, engine, store):
        schema, items = await seed_posts(engine, count=2)
        await engine.mutations.delete_field(TENANT, schema.id, "published", "retain")

        result = await engine.mutations.purge_field_data(TENANT, schema.id, "published")

        assert result.schema.retained_field_ids == ()
        for item in items:
            assert "published" not in (await store.raw_item(TENANT, item.id))["data"]

    @pytest.mark.asyncio
    async def test_purge_of_active_field_refused(self, engine):
        schema = await engine.registry.create(TENANT, blog_post_schema())
        with pytest.raises(SchemaValidationError):
            await engine.mutations.purge_field_data(TENANT, schema.id, "title")

    @pytest.mark.asyncio
    async def test_purge_respects_concurrency_bound(self):
        store = CountingStore()
        engine = ContentEngine(store, store, purge_concurrency=2)
        schema, _ = await seed_posts(engine, count=8)
        store.peak = 0

        await engine.mutations.delete_field(TENANT, schema.id, "published", "purge")

        assert 1 <= store.peak <= 2

    @pytest.mark.asyncio
    async def test_readded_field_gets_new_id(self, engine, store):
        """Re-adding a deleted field never resurrects the old values."""
        schema, items = await seed_posts(engine, count=1)
        await engine.mutations.delete_field(TENANT, schema.id, "published", "retain")

        updated = await engine.mutations.add_field(
            TENANT, schema.id, field("published", "Published", "boolean")
        )

        new_id = updated.fields[-1].id
        assert new_id != "published"
        raw = await store.raw_item(TENANT, items[0].id)
        assert new_id not in raw["data"]
