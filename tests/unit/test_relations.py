"""
Unit tests for relation resolution.

Tests cover:
- One and many cardinality
- Missing and soft-deleted targets
- Self-relations
- resolve_many() collecting failures per field
"""

import pytest

from cms.contentdb.errors import ContentValidationError, RelationTargetNotFoundError
from cms.contentdb.schema.types import RelationCardinality, Schema, field
from tests.helpers import TENANT, author_schema


async def seed_authors(engine):
    await engine.registry.create(TENANT, author_schema())
    ada = await engine.content.create(TENANT, "author", {"name": "Ada"})
    grace = await engine.content.create(TENANT, "author", {"name": "Grace"})
    return ada, grace


ONE = field("author", "Author", "relation", relation_target="author")
MANY = field("authors", "Authors", "relation", relation_target="author", many=True)


class TestResolve:
    """Tests for RelationResolver.resolve()."""

    @pytest.mark.asyncio
    async def test_one(self, engine):
        ada, _ = await seed_authors(engine)
        ref = await engine.resolver.resolve(TENANT, ONE, ada.id)
        assert ref.item_id == ada.id
        assert ref.target_schema_id == "author"
        assert ref.cardinality == RelationCardinality.ONE

    @pytest.mark.asyncio
    async def test_many(self, engine):
        ada, grace = await seed_authors(engine)
        ref = await engine.resolver.resolve(TENANT, MANY, [grace.id, ada.id])
        assert ref.item_ids == (grace.id, ada.id)

    @pytest.mark.asyncio
    async def test_empty_value(self, engine):
        ref = await engine.resolver.resolve(TENANT, MANY, [])
        assert ref.item_ids == ()
        assert ref.item_id is None

    @pytest.mark.asyncio
    async def test_many_fails_as_a_whole(self, engine):
        ada, _ = await seed_authors(engine)
        with pytest.raises(RelationTargetNotFoundError) as exc_info:
            await engine.resolver.resolve(TENANT, MANY, [ada.id, "ghost"])
        assert exc_info.value.missing_ids == ["ghost"]

    @pytest.mark.asyncio
    async def test_soft_deleted_target_is_missing(self, engine):
        ada, _ = await seed_authors(engine)
        await engine.content.delete(TENANT, ada.id)
        with pytest.raises(RelationTargetNotFoundError):
            await engine.resolver.resolve(TENANT, ONE, ada.id)

    @pytest.mark.asyncio
    async def test_missing_target_schema(self, engine):
        with pytest.raises(RelationTargetNotFoundError):
            await engine.resolver.resolve(TENANT, ONE, "anything")

    @pytest.mark.asyncio
    async def test_bad_shape(self, engine):
        with pytest.raises(ContentValidationError):
            await engine.resolver.resolve(TENANT, ONE, ["a", "b"])

    @pytest.mark.asyncio
    async def test_not_a_relation_field(self, engine):
        with pytest.raises(ValueError):
            await engine.resolver.resolve(TENANT, field("t", "T", "text"), "x")

    @pytest.mark.asyncio
    async def test_self_relation(self, engine):
        page = Schema(
            id="page",
            name="Page",
            fields=(
                field("title", "Title", "text"),
                field("parent", "Parent", "relation", relation_target="page"),
            ),
        )
        await engine.registry.create(TENANT, page)
        root = await engine.content.create(TENANT, "page", {"title": "Root"})
        child = await engine.content.create(TENANT, "page", {"title": "Child", "parent": root.id})

        ref = await engine.resolver.resolve(TENANT, page.get_field("parent"), child.data["parent"])
        assert ref.item_id == root.id


class TestResolveMany:
    """Tests for RelationResolver.resolve_many()."""

    @pytest.mark.asyncio
    async def test_collects_failures(self, engine):
        ada, _ = await seed_authors(engine)
        schema = Schema(id="post", name="Post", fields=(ONE, MANY))

        resolved, failures = await engine.resolver.resolve_many(
            TENANT, schema, {"author": ada.id, "authors": ["ghost"]}
        )

        assert resolved["author"].item_id == ada.id
        assert list(failures) == ["authors"]

    @pytest.mark.asyncio
    async def test_absent_fields_skipped(self, engine):
        schema = Schema(id="post", name="Post", fields=(ONE, MANY))
        resolved, failures = await engine.resolver.resolve_many(TENANT, schema, {})
        assert resolved == {} and failures == {}
