"""
HTTP store client for ContentDB.

Talks to the store gateway (api/app.py) over httpx. Every response is a
`{data, error}` envelope; the gateway keeps the same semantics as the
local stores, this module only maps transport outcomes onto the store
contract:

    2xx            -> envelope data
    404            -> None (reads) / no-op (deletes)
    409            -> ConcurrentModificationError
    network, 5xx   -> TransportError
    other 4xx      -> TransportError carrying the status code

Invariants:
    - No retries here; retry policy belongs to the caller
    - The expected schema version travels in the If-Match header
    - Tenant ids are path-quoted, never interpolated raw

How to change safely:
    - Add routes together with api/routes.py
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..content.types import ContentItem, ContentItemVersion
from ..errors import ConcurrentModificationError, RecordDecodeError, TransportError
from ..schema.types import Schema
from .base import SchemaFilter
from .codec import item_from_dict, schema_from_dict, version_from_dict

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class HttpStore:
    """Remote implementation of SchemaStore and ContentItemStore.

    Example:
        >>> async with HttpStore("http://localhost:8080", api_key="secret") as store:
        ...     schema = await store.get_schema("tenant_1", "blog-post")
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Gateway base URL
            api_key: Bearer token sent with every request
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (e.g. ASGITransport in tests)
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _path(self, tenant_id: str, *parts: str) -> str:
        segments = [quote(tenant_id, safe=""), *(quote(p, safe="") for p in parts)]
        return f"{API_PREFIX}/tenants/" + "/".join(segments)

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, Any]:
        """Send one request and unwrap the envelope.

        Returns:
            (status code, envelope data); data is None for 404

        Raises:
            TransportError: Network failure, 5xx, or unexpected status
            ConcurrentModificationError: On 409
            RecordDecodeError: The remote store holds a record it cannot decode
        """
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            logger.warning(
                f"Store request failed: {e}",
                extra={"operation": operation, "path": path},
            )
            raise TransportError(f"{operation} failed: {e}", operation=operation) from e

        try:
            envelope = response.json()
        except ValueError:
            envelope = {}
        if not isinstance(envelope, dict):
            envelope = {}
        error = envelope.get("error") or {}

        if response.status_code == 404:
            return 404, None
        if response.status_code == 409:
            details = error.get("details") or {}
            raise ConcurrentModificationError(
                details.get("schema_id", ""),
                details.get("expected_version"),
                details.get("actual_version"),
            )
        if error.get("code") == "RECORD_DECODE_ERROR":
            details = error.get("details") or {}
            raise RecordDecodeError(
                details.get("record_type", "record"),
                details.get("record_id"),
                details.get("reason", ""),
                field_id=details.get("field_id"),
            )
        if response.status_code >= 400:
            message = error.get("message") or response.reason_phrase
            raise TransportError(
                f"{operation} failed with HTTP {response.status_code}: {message}",
                operation=operation,
                status_code=response.status_code,
            )
        return response.status_code, envelope.get("data")

    # --- SchemaStore ---

    async def get_schema(self, tenant_id: str, schema_id: str) -> Schema | None:
        _, data = await self._request("GET", self._path(tenant_id, "schemas", schema_id), "get_schema")
        return schema_from_dict(data) if data else None

    async def list_schemas(
        self, tenant_id: str, schema_filter: SchemaFilter | None = None
    ) -> list[Schema]:
        params: dict[str, str] = {}
        if schema_filter is not None:
            if schema_filter.kind is not None:
                params["kind"] = schema_filter.kind.value
            if schema_filter.text:
                params["text"] = schema_filter.text
            if schema_filter.archived is not None:
                params["archived"] = "true" if schema_filter.archived else "false"
        _, data = await self._request(
            "GET", self._path(tenant_id, "schemas"), "list_schemas", params=params
        )
        return [schema_from_dict(raw) for raw in data or []]

    async def put_schema(
        self, tenant_id: str, schema: Schema, expected_version: int | None = None
    ) -> Schema:
        headers = {}
        if expected_version is not None:
            headers["If-Match"] = str(expected_version)
        _, data = await self._request(
            "PUT",
            self._path(tenant_id, "schemas", schema.id),
            "put_schema",
            json=schema.to_dict(),
            headers=headers,
        )
        return schema_from_dict(data) if data else schema

    async def delete_schema(self, tenant_id: str, schema_id: str) -> None:
        await self._request("DELETE", self._path(tenant_id, "schemas", schema_id), "delete_schema")

    # --- ContentItemStore ---

    async def get_item(self, tenant_id: str, item_id: str) -> ContentItem | None:
        _, data = await self._request("GET", self._path(tenant_id, "items", item_id), "get_item")
        return item_from_dict(data) if data else None

    async def get_items_by_schema(self, tenant_id: str, schema_id: str) -> list[ContentItem]:
        _, data = await self._request(
            "GET", self._path(tenant_id, "schemas", schema_id, "items"), "get_items_by_schema"
        )
        return [item_from_dict(raw) for raw in data or []]

    async def put_item(self, tenant_id: str, item: ContentItem) -> ContentItem:
        _, data = await self._request(
            "PUT", self._path(tenant_id, "items", item.id), "put_item", json=item.to_dict()
        )
        return item_from_dict(data) if data else item

    async def delete_item(self, tenant_id: str, item_id: str) -> None:
        await self._request("DELETE", self._path(tenant_id, "items", item_id), "delete_item")

    async def put_version(self, tenant_id: str, version: ContentItemVersion) -> ContentItemVersion:
        await self._request(
            "POST",
            self._path(tenant_id, "items", version.content_item_id, "versions"),
            "put_version",
            json=version.to_dict(),
        )
        return version

    async def list_versions(self, tenant_id: str, item_id: str) -> list[ContentItemVersion]:
        _, data = await self._request(
            "GET", self._path(tenant_id, "items", item_id, "versions"), "list_versions"
        )
        return [version_from_dict(raw) for raw in data or []]
