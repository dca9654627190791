"""Schema builders shared by the ContentDB tests."""

from cms.contentdb.schema.types import Schema, SchemaKind, field

TENANT = "tenant_1"


def blog_post_schema() -> Schema:
    """Blog Post: required text `title`, boolean `published` defaulting to false."""
    return Schema(
        id="blog-post",
        name="Blog Post",
        fields=(
            field("title", "Title", "text", required=True),
            field("published", "Published", "boolean", default_value=False),
        ),
    )


def homepage_schema() -> Schema:
    """Homepage: single kind with one required headline."""
    return Schema(
        id="homepage",
        name="Homepage",
        kind=SchemaKind.SINGLE,
        fields=(field("headline", "Headline", "text", required=True),),
    )


def author_schema() -> Schema:
    return Schema(
        id="author",
        name="Author",
        fields=(field("name", "Name", "text", required=True),),
    )
