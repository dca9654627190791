"""
API routes for the ContentDB store gateway.

Exposes the SchemaStore / ContentItemStore contracts over HTTP so that
HttpStore clients can share one backing store. Every response body is a
`{data, error}` envelope.

Routes (prefix /api/v1/tenants/{tenant_id}):
    GET    /schemas                     list schemas (kind, text, archived)
    GET    /schemas/{schema_id}         get schema
    PUT    /schemas/{schema_id}         put schema (If-Match: expected version)
    DELETE /schemas/{schema_id}         delete schema
    GET    /schemas/{schema_id}/items   items of a schema
    GET    /items/{item_id}             get item
    PUT    /items/{item_id}             put item
    DELETE /items/{item_id}             delete item
    GET    /items/{item_id}/versions    item versions, newest first
    POST   /items/{item_id}/versions    append a version
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..schema.types import SchemaKind
from ..store.base import SchemaFilter
from ..store.codec import item_from_dict, schema_from_dict, version_from_dict

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ContentDB Store"])


class Envelope(BaseModel):
    """Response envelope shared by every route."""

    data: Any = Field(None, description="Result payload")
    error: dict[str, Any] | None = Field(None, description="Error (code, message, details)")


def ok(data: Any) -> Envelope:
    return Envelope(data=data)


def not_found(resource_type: str, resource_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "code": "NOT_FOUND",
            "message": f"{resource_type} '{resource_id}' not found",
            "details": {"resource_type": resource_type, "resource_id": resource_id},
        },
    )


# --- Dependencies ---


def get_store(request: Request) -> Any:
    """Get the backing store from app state."""
    return request.app.state.store


def require_api_key(request: Request) -> None:
    """Check the bearer token when the gateway is configured with one."""
    expected = request.app.state.settings.gateway_api_key
    if not expected:
        return
    header = request.headers.get("Authorization", "")
    if header != f"Bearer {expected}":
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHORIZED", "message": "Missing or invalid bearer token"},
        )


def decode(decoder: Callable[[dict[str, Any]], Any], payload: dict[str, Any]) -> Any:
    """Decode a request record, mapping malformed input to 400."""
    try:
        return decoder(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "BAD_REQUEST", "message": f"Malformed record: {e!r}"},
        ) from e


def parse_if_match(if_match: str | None) -> int | None:
    if if_match is None:
        return None
    try:
        return int(if_match.strip().strip('"'))
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={"code": "BAD_REQUEST", "message": f"If-Match must be a version number, got {if_match!r}"},
        ) from None


# --- Schema Routes ---


@router.get("/tenants/{tenant_id}/schemas", response_model=Envelope)
async def list_schemas(
    tenant_id: str,
    kind: SchemaKind | None = Query(None, description="Only schemas of this kind"),
    text: str | None = Query(None, description="Substring of name or description"),
    archived: bool | None = Query(None, description="Archive state filter"),
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """List schemas of a tenant."""
    schema_filter = SchemaFilter(kind=kind, text=text, archived=archived)
    schemas = await store.list_schemas(tenant_id, schema_filter)
    return ok([s.to_dict() for s in schemas])


@router.get("/tenants/{tenant_id}/schemas/{schema_id}", response_model=Envelope)
async def get_schema(
    tenant_id: str,
    schema_id: str,
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Get one schema."""
    schema = await store.get_schema(tenant_id, schema_id)
    if schema is None:
        raise not_found("schema", schema_id)
    return ok(schema.to_dict())


@router.put("/tenants/{tenant_id}/schemas/{schema_id}", response_model=Envelope)
async def put_schema(
    tenant_id: str,
    schema_id: str,
    payload: dict[str, Any] = Body(..., description="Schema record"),
    if_match: str | None = Header(None),
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Store a schema; compare-and-set when If-Match is present."""
    schema = decode(schema_from_dict, {**payload, "id": schema_id})
    stored = await store.put_schema(tenant_id, schema, expected_version=parse_if_match(if_match))
    return ok(stored.to_dict())


@router.delete("/tenants/{tenant_id}/schemas/{schema_id}", response_model=Envelope)
async def delete_schema(
    tenant_id: str,
    schema_id: str,
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Delete a schema (no-op if absent)."""
    await store.delete_schema(tenant_id, schema_id)
    return ok(None)


@router.get("/tenants/{tenant_id}/schemas/{schema_id}/items", response_model=Envelope)
async def get_items_by_schema(
    tenant_id: str,
    schema_id: str,
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """All items of a schema, soft-deleted included."""
    items = await store.get_items_by_schema(tenant_id, schema_id)
    return ok([i.to_dict() for i in items])


# --- Item Routes ---


@router.get("/tenants/{tenant_id}/items/{item_id}", response_model=Envelope)
async def get_item(
    tenant_id: str,
    item_id: str,
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Get one content item."""
    item = await store.get_item(tenant_id, item_id)
    if item is None:
        raise not_found("content_item", item_id)
    return ok(item.to_dict())


@router.put("/tenants/{tenant_id}/items/{item_id}", response_model=Envelope)
async def put_item(
    tenant_id: str,
    item_id: str,
    payload: dict[str, Any] = Body(..., description="Content item record"),
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Store a content item."""
    item = decode(item_from_dict, {**payload, "id": item_id})
    stored = await store.put_item(tenant_id, item)
    return ok(stored.to_dict())


@router.delete("/tenants/{tenant_id}/items/{item_id}", response_model=Envelope)
async def delete_item(
    tenant_id: str,
    item_id: str,
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Remove a content item and its versions."""
    await store.delete_item(tenant_id, item_id)
    return ok(None)


@router.get("/tenants/{tenant_id}/items/{item_id}/versions", response_model=Envelope)
async def list_versions(
    tenant_id: str,
    item_id: str,
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Version snapshots of an item, newest first."""
    versions = await store.list_versions(tenant_id, item_id)
    return ok([v.to_dict() for v in versions])


@router.post("/tenants/{tenant_id}/items/{item_id}/versions", response_model=Envelope)
async def put_version(
    tenant_id: str,
    item_id: str,
    payload: dict[str, Any] = Body(..., description="Version snapshot"),
    store: Any = Depends(get_store),
    _auth: None = Depends(require_api_key),
):
    """Append a version snapshot."""
    version = decode(version_from_dict, {**payload, "contentItemId": item_id})
    stored = await store.put_version(tenant_id, version)
    return ok(stored.to_dict())
