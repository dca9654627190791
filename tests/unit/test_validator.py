"""
Unit tests for content payload validation.

Tests cover:
- Required fields and defaults
- Type errors across several fields at once
- Unknown keys with suggestions
- Retained keys
- Relation resolution during validation
"""

import pytest

from cms.contentdb.content.validator import ContentValidator, check_payload, suggest_fields
from cms.contentdb.errors import ContentValidationError
from cms.contentdb.schema.types import Schema, field
from tests.helpers import TENANT, author_schema, blog_post_schema


def article_schema() -> Schema:
    return Schema(
        id="article",
        name="Article",
        fields=(
            field("title", "Title", "text", required=True),
            field("views", "Views", "number"),
            field("category", "Category", "enum", options=["News", "Opinion"], default_value="News"),
            field("featured", "Featured", "boolean"),
        ),
        retained_field_ids=("legacy_body",),
    )


class TestSuggestFields:
    """Tests for suggest_fields()."""

    def test_close_id(self):
        assert suggest_fields(article_schema(), "titel") == ["title"]

    def test_label_match(self):
        assert suggest_fields(article_schema(), "FEATURED")[0] == "featured"

    def test_nothing_close(self):
        assert suggest_fields(article_schema(), "zzz") == []


class TestCheckPayload:
    """Tests for check_payload()."""

    def test_defaults_fill_absent_optionals(self):
        normalized, reasons = check_payload(article_schema(), {"title": "Hi"})
        assert reasons == {}
        assert normalized == {"title": "Hi", "views": 0, "category": "News", "featured": False}

    def test_normalizes_values(self):
        normalized, _ = check_payload(article_schema(), {"title": "Hi", "views": "12"})
        assert normalized["views"] == 12

    def test_retained_keys_pass_through(self):
        normalized, reasons = check_payload(
            article_schema(), {"title": "Hi", "legacy_body": {"html": "<p/>"}}
        )
        assert reasons == {}
        assert normalized["legacy_body"] == {"html": "<p/>"}

    def test_empty_json_values_kept(self):
        """An optional json field keeps [] and {} instead of taking its default."""
        schema = Schema(id="s", name="S", fields=(field("meta", "Meta", "json"),))

        as_list, reasons = check_payload(schema, {"meta": []})
        as_dict, _ = check_payload(schema, {"meta": {}})

        assert reasons == {}
        assert as_list == {"meta": []}
        assert as_dict == {"meta": {}}
        assert check_payload(schema, as_list)[0] == as_list

    def test_null_takes_default(self):
        schema = Schema(id="s", name="S", fields=(field("meta", "Meta", "json"),))
        assert check_payload(schema, {"meta": None})[0] == {"meta": {}}
        assert check_payload(schema, {})[0] == {"meta": {}}

    def test_blank_form_input_takes_default(self):
        normalized, reasons = check_payload(
            article_schema(), {"title": "Hi", "views": "", "category": ""}
        )
        assert reasons == {}
        assert normalized["views"] == 0
        assert normalized["category"] == "News"

    def test_empty_optional_text_kept(self):
        schema = Schema(id="s", name="S", fields=(field("note", "Note", "text", default_value="n/a"),))
        assert check_payload(schema, {"note": ""})[0] == {"note": ""}

    def test_input_not_mutated(self):
        data = {"title": "Hi", "views": "3"}
        check_payload(article_schema(), data)
        assert data == {"title": "Hi", "views": "3"}


class TestContentValidator:
    """Tests for ContentValidator.validate()."""

    @pytest.mark.asyncio
    async def test_reports_every_offending_field(self):
        validator = ContentValidator()
        data = {"views": "many", "category": "Sports", "titel": "typo"}

        with pytest.raises(ContentValidationError) as exc_info:
            await validator.validate(TENANT, article_schema(), data)

        error = exc_info.value
        assert error.field_ids == ["title", "views", "category", "titel"]
        assert error.reasons["title"] == "is required"
        assert "Did you mean" in error.reasons["titel"]
        assert "'title'" in error.reasons["titel"]

    @pytest.mark.asyncio
    async def test_boolean_false_satisfies_required(self):
        schema = Schema(id="s", name="S", fields=(field("ok", "OK", "boolean", required=True),))
        assert await ContentValidator().validate(TENANT, schema, {"ok": False}) == {"ok": False}

    @pytest.mark.asyncio
    async def test_blank_required_text(self):
        with pytest.raises(ContentValidationError) as exc_info:
            await ContentValidator().validate(TENANT, blog_post_schema(), {"title": "   "})
        assert exc_info.value.field_ids == ["title"]

    @pytest.mark.asyncio
    async def test_idempotent(self):
        validator = ContentValidator()
        once = await validator.validate(TENANT, article_schema(), {"title": "Hi", "views": "4"})
        twice = await validator.validate(TENANT, article_schema(), once)
        assert once == twice

    @pytest.mark.asyncio
    async def test_non_dict_payload(self):
        with pytest.raises(TypeError):
            await ContentValidator().validate(TENANT, article_schema(), ["title"])

    @pytest.mark.asyncio
    async def test_relation_targets_checked(self, engine):
        await engine.registry.create(TENANT, author_schema())
        author = await engine.content.create(TENANT, "author", {"name": "Ada"})
        post = Schema(
            id="post",
            name="Post",
            fields=(
                field("title", "Title", "text"),
                field("author", "Author", "relation", relation_target="author"),
            ),
        )

        ok = await engine.validator.validate(TENANT, post, {"author": author.id})
        assert ok["author"] == author.id

        with pytest.raises(ContentValidationError) as exc_info:
            await engine.validator.validate(TENANT, post, {"author": "ghost", "title": 5})
        error = exc_info.value
        assert error.field_ids == ["title", "author"]
        assert "ghost" in error.reasons["author"]
