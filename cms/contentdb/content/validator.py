"""
Content payload validation for ContentDB.

validate() checks a data payload against a schema's active fields:
- Required fields must be present and non-empty
- Present values must pass the field type check (schema/catalog.py)
- Absent (or null) optional fields receive their default; present values
  that pass the type check are kept as given, empty or not
- Keys that are neither active nor retained are rejected, with
  suggestions for the closest field ids
- Relation values must resolve to live items of the target schema

Invariants:
    - Every offending field id is reported, not just the first
    - validate(schema, validate(schema, data)) == validate(schema, data)
    - Retained keys pass through unchanged
    - The input payload is never mutated
"""

from __future__ import annotations

import logging
from difflib import get_close_matches
from typing import Any

from ..errors import ContentValidationError
from ..schema.catalog import check_value, default_for, is_empty
from ..schema.types import FieldType, Schema
from .relations import RelationResolver

logger = logging.getLogger(__name__)


def suggest_fields(schema: Schema, key: str, limit: int = 3) -> list[str]:
    """Field ids a mistyped key probably meant.

    Matches ids by similarity and labels case-insensitively.
    """
    ids = schema.field_ids
    matches = get_close_matches(key, ids, n=limit)
    by_label = [f.id for f in schema.fields if f.label.lower() == key.lower()]
    return list(dict.fromkeys(by_label + matches))[:limit]


def check_payload(schema: Schema, data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
    """Type-check a payload without relation lookups.

    Returns:
        (normalized data, reasons keyed by offending field id in schema order)
    """
    normalized: dict[str, Any] = {}
    reasons: dict[str, str] = {}

    for f in schema.fields:
        value = data.get(f.id)
        if f.required and is_empty(value):
            reasons[f.id] = "is required"
            continue
        if value is None:
            normalized[f.id] = default_for(f)
            continue
        check = check_value(f, value)
        if check.ok:
            normalized[f.id] = check.value
        elif is_empty(value):
            # Blank form input for an optional field
            normalized[f.id] = default_for(f)
        else:
            reasons[f.id] = check.reason or "is invalid"

    active = set(schema.field_ids)
    retained = set(schema.retained_field_ids)
    for key, value in data.items():
        if key in active:
            continue
        if key in retained:
            normalized[key] = value
            continue
        suggestions = suggest_fields(schema, key)
        if suggestions:
            reasons[key] = f"unknown field. Did you mean: {suggestions}?"
        else:
            reasons[key] = "unknown field"

    return normalized, reasons


class ContentValidator:
    """Validates item payloads against schemas.

    Attributes:
        resolver: Relation resolver; when None, relation values are only
            shape-checked
    """

    def __init__(self, resolver: RelationResolver | None = None) -> None:
        self.resolver = resolver

    async def validate(
        self, tenant_id: str, schema: Schema, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Validate and normalize a payload.

        Args:
            tenant_id: Tenant of the schema (for relation lookups)
            schema: Schema to validate against
            data: Field values keyed by field id

        Returns:
            Normalized data: active fields in schema order, then retained keys

        Raises:
            ContentValidationError: Listing every offending field id
        """
        if not isinstance(data, dict):
            raise TypeError(f"data must be a dict keyed by field id, got {type(data).__name__}")

        normalized, reasons = check_payload(schema, data)

        if self.resolver is not None:
            to_resolve = {
                f.id: normalized[f.id]
                for f in schema.fields
                if f.type == FieldType.RELATION
                and f.id not in reasons
                and not is_empty(normalized.get(f.id))
            }
            if to_resolve:
                _, failures = await self.resolver.resolve_many(tenant_id, schema, to_resolve)
                for field_id, error in failures.items():
                    reasons[field_id] = f"references missing item(s) {error.missing_ids}"

        if reasons:
            order = [*schema.field_ids, *data.keys()]
            field_ids = [fid for fid in dict.fromkeys(order) if fid in reasons]
            logger.debug(
                "Content validation failed",
                extra={"tenant_id": tenant_id, "schema_id": schema.id, "field_ids": field_ids},
            )
            raise ContentValidationError(field_ids, {fid: reasons[fid] for fid in field_ids})

        return normalized
