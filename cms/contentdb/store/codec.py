"""
Boundary codec for stored and transported records.

Records written by older dashboard versions use different attribute names:
- items carry their field values under `content` instead of `data`
- schemas mark their kind with `isCollection`, `schemaType` or `type`
- fields carry `name` instead of `label` and `isMultiple` for relations
- rows from SQL/REST backends use snake_case column names

Every store implementation decodes through this module, so the rest of
the engine only ever sees the canonical shape of schema/types.py and
content/types.py.

Invariants:
    - Decoding a canonical record is the identity (modulo copying)
    - When both `data` and `content` are present, `data` wins
    - Records of an unsupported shape raise RecordDecodeError, never a
      bare KeyError or ValueError
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from ..content.types import ContentItem, ContentItemVersion
from ..errors import RecordDecodeError
from ..schema.types import FieldDef, Schema, SchemaKind, normalize_field_dict
from ..util import now_iso

_SNAKE_TO_CAMEL = {
    "schema_id": "schemaId",
    "content_item_id": "contentItemId",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "published_at": "publishedAt",
    "archived_at": "archivedAt",
    "deleted_at": "deletedAt",
    "created_by": "createdBy",
    "updated_by": "updatedBy",
    "published_by": "publishedBy",
    "retained_field_ids": "retainedFieldIds",
}


def _camelize(raw: dict[str, Any]) -> dict[str, Any]:
    result = dict(raw)
    for snake, camel in _SNAKE_TO_CAMEL.items():
        if snake in result:
            value = result.pop(snake)
            result.setdefault(camel, value)
    return result


def _kind_of(raw: dict[str, Any]) -> str:
    for key in ("kind", "schemaType", "type"):
        value = raw.get(key)
        if value in (SchemaKind.COLLECTION.value, SchemaKind.SINGLE.value):
            return value
    if "isCollection" in raw:
        return SchemaKind.COLLECTION.value if raw["isCollection"] else SchemaKind.SINGLE.value
    return SchemaKind.COLLECTION.value


def normalize_schema_dict(raw: dict[str, Any]) -> dict[str, Any]:
    """Bring a schema record into canonical shape."""
    result = _camelize(raw)
    result["id"] = str(result["id"])
    result["kind"] = _kind_of(result)
    for legacy in ("schemaType", "type", "isCollection"):
        result.pop(legacy, None)
    if result.pop("isArchived", False) and not result.get("archivedAt"):
        result["archivedAt"] = result.get("updatedAt") or result.get("createdAt") or now_iso()
    result["fields"] = [normalize_field_dict(f) for f in result.get("fields") or []]
    return result


def normalize_item_dict(raw: dict[str, Any]) -> dict[str, Any]:
    """Bring a content item record into canonical shape."""
    result = _camelize(raw)
    result["id"] = str(result["id"])
    result["schemaId"] = str(result["schemaId"])
    legacy_content = result.pop("content", None)
    if result.get("data") is None:
        result["data"] = legacy_content if isinstance(legacy_content, dict) else {}
    return result


def _reason(error: Exception) -> str:
    if isinstance(error, KeyError):
        return f"missing attribute {error}"
    return str(error)


def _record_id(raw: Any, key: str = "id") -> str | None:
    value = raw.get(key) if isinstance(raw, dict) else None
    return str(value) if value is not None else None


def schema_from_dict(raw: dict[str, Any]) -> Schema:
    """Decode a schema record of any supported shape.

    Raises:
        RecordDecodeError: A field uses an unknown type tag or a mandatory
            attribute is missing. The error names the schema and field.
    """
    try:
        canonical = normalize_schema_dict(raw)
    except (KeyError, TypeError, ValueError) as e:
        raise RecordDecodeError("schema", _record_id(raw), _reason(e)) from e

    fields = []
    for raw_field in canonical.pop("fields"):
        try:
            fields.append(FieldDef.from_dict(raw_field))
        except (KeyError, TypeError, ValueError) as e:
            raise RecordDecodeError(
                "schema", canonical["id"], _reason(e), field_id=_record_id(raw_field)
            ) from e

    try:
        schema = Schema.from_dict(canonical)
    except (KeyError, TypeError, ValueError) as e:
        raise RecordDecodeError("schema", canonical["id"], _reason(e)) from e
    return replace(schema, fields=tuple(fields))


def item_from_dict(raw: dict[str, Any]) -> ContentItem:
    """Decode a content item record of any supported shape."""
    try:
        return ContentItem.from_dict(normalize_item_dict(raw))
    except (KeyError, TypeError, ValueError) as e:
        raise RecordDecodeError("content_item", _record_id(raw), _reason(e)) from e


def version_from_dict(raw: dict[str, Any]) -> ContentItemVersion:
    """Decode a content item version record."""
    try:
        result = _camelize(raw)
        result["id"] = str(result["id"])
        result["contentItemId"] = str(result["contentItemId"])
        result["schemaId"] = str(result["schemaId"])
        return ContentItemVersion.from_dict(result)
    except (KeyError, TypeError, ValueError) as e:
        raise RecordDecodeError("content_item_version", _record_id(raw), _reason(e)) from e
