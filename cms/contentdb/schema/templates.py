"""
Quickstart schema templates.

Templates are unsaved schemas a user can start from; pass the result of
schema_from_template() to SchemaRegistry.create(). EXAMPLE_SCHEMAS are the
schemas the in-memory store can be seeded with for demos.
"""

from __future__ import annotations

from dataclasses import replace

from .types import Schema, SchemaKind, field

TEMPLATES: dict[str, Schema] = {
    "blog_post": Schema(
        id="",
        name="Blog Post",
        description="Articles with a summary, a category and markdown body",
        fields=(
            field("title", "Title", "text", required=True),
            field("summary", "Summary", "text"),
            field("tags", "Tags", "enum", options=("General", "Update", "Opinion")),
            field("content", "Content", "markdown", required=True),
        ),
    ),
    "product": Schema(
        id="",
        name="Product",
        description="Catalog entries with price and image",
        fields=(
            field("name", "Name", "text", required=True),
            field("price", "Price", "number", required=True),
            field("image", "Image", "image"),
            field("description", "Description", "markdown"),
        ),
    ),
    "event": Schema(
        id="",
        name="Event",
        description="Dated events with a location",
        fields=(
            field("name", "Name", "text", required=True),
            field("date", "Date", "date", required=True),
            field("location", "Location", "text"),
            field("description", "Description", "markdown"),
        ),
    ),
    "landing_page": Schema(
        id="",
        name="Landing Page",
        kind=SchemaKind.SINGLE,
        description="The one landing page of the site",
        fields=(
            field("headline", "Headline", "text", required=True),
            field("hero_image", "Hero Image", "image"),
            field("body", "Body", "markdown"),
            field("show_signup", "Show Signup", "boolean", default_value=False),
        ),
    ),
}


def template_names() -> list[str]:
    """Names accepted by schema_from_template()."""
    return sorted(TEMPLATES)


def schema_from_template(name: str, schema_name: str | None = None) -> Schema:
    """Build an unsaved schema from a quickstart template.

    Args:
        name: Template name (see template_names())
        schema_name: Overrides the template's display name

    Raises:
        KeyError: If the template does not exist
    """
    try:
        template = TEMPLATES[name]
    except KeyError:
        raise KeyError(f"Unknown template '{name}'. Available: {template_names()}") from None
    if schema_name:
        return replace(template, name=schema_name)
    return template


EXAMPLE_SCHEMAS: tuple[Schema, ...] = (
    replace(TEMPLATES["blog_post"], id="blog-post", version=1),
    replace(TEMPLATES["landing_page"], id="homepage", name="Homepage", version=1),
)
