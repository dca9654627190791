"""
Error types for ContentDB.

This module defines every exception raised by the engine:
- CmsError: Base exception
- SchemaValidationError: Invalid schema definition (nothing persisted)
- ContentValidationError: Invalid item payload (nothing persisted)
- BusinessRuleError: Rule violation detected before any mutation
- PartialMigrationError: Some items kept stale data after a purge
- TransportError: Storage/network failure, retryable by the caller
- NotFoundError / RelationTargetNotFoundError / ConcurrentModificationError
- RecordDecodeError: A stored record has an unsupported shape

Invariants:
    - All errors inherit from CmsError
    - Error kinds are never conflated (a transport failure is never reported
      as a validation failure and vice versa)
    - Validation errors carry the complete list of offending ids
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .schema.types import Schema


class CmsError(Exception):
    """Base exception for all ContentDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CMS_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `error` member of a `{data, error}` envelope."""
        return {"code": self.code, "message": self.message, "details": self.details}


class SchemaValidationError(CmsError):
    """Schema definition is invalid.

    Raised when:
    - Field ids are duplicated or empty
    - An enum field has no options or an out-of-range default
    - A relation field targets a schema that does not exist
    - A field type is changed for an existing field id
    """

    def __init__(
        self,
        errors: list[str],
        field_ids: list[str] | None = None,
    ) -> None:
        super().__init__(
            f"Invalid schema: {'; '.join(errors)}",
            code="SCHEMA_VALIDATION_ERROR",
            details={"errors": errors, "field_ids": field_ids or []},
        )
        self.errors = errors
        self.field_ids = field_ids or []


class ContentValidationError(CmsError):
    """Content item payload failed validation.

    Attributes:
        field_ids: Every offending field id, in schema order
        reasons: Human-readable reason per field id
    """

    def __init__(
        self,
        field_ids: list[str],
        reasons: dict[str, str] | None = None,
    ) -> None:
        reasons = reasons or {}
        parts = [f"{fid}: {reasons[fid]}" if fid in reasons else fid for fid in field_ids]
        super().__init__(
            f"Content validation failed for {len(field_ids)} field(s): {'; '.join(parts)}",
            code="CONTENT_VALIDATION_ERROR",
            details={"field_ids": field_ids, "reasons": reasons},
        )
        self.field_ids = field_ids
        self.reasons = reasons


class BusinessRule(Enum):
    """Business rules enforced before any mutation."""

    SINGLE_TYPE_ALREADY_POPULATED = "SingleTypeAlreadyPopulated"
    SCHEMA_IN_USE = "SchemaInUse"
    INVALID_ORDER = "InvalidOrder"
    INVALID_STATUS = "InvalidStatus"
    INVALID_TRANSITION = "InvalidTransition"


class BusinessRuleError(CmsError):
    """A business rule rejected the operation.

    Attributes:
        rule: The violated rule
    """

    def __init__(
        self,
        rule: BusinessRule,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=rule.value, details=details)
        self.rule = rule


class SingleTypeAlreadyPopulatedError(BusinessRuleError):
    """A single-kind schema already has a live content item."""

    def __init__(self, schema_id: str, existing_item_id: str | None = None) -> None:
        super().__init__(
            BusinessRule.SINGLE_TYPE_ALREADY_POPULATED,
            f"Schema '{schema_id}' is a single type and already has a content item",
            details={"schema_id": schema_id, "existing_item_id": existing_item_id},
        )
        self.schema_id = schema_id
        self.existing_item_id = existing_item_id


class SchemaInUseError(BusinessRuleError):
    """A schema cannot be deleted while content items or relation fields reference it.

    Attributes:
        item_count: Content items of the schema (soft-deleted included)
        referenced_by: Ids of other schemas with relation fields targeting it
    """

    def __init__(
        self,
        schema_id: str,
        item_count: int = 0,
        referenced_by: list[str] | None = None,
    ) -> None:
        referenced_by = referenced_by or []
        reasons = []
        if item_count:
            reasons.append(f"{item_count} content item(s)")
        if referenced_by:
            reasons.append(f"relation fields of schema(s) {referenced_by}")
        super().__init__(
            BusinessRule.SCHEMA_IN_USE,
            f"Schema '{schema_id}' is used by {' and '.join(reasons)}",
            details={
                "schema_id": schema_id,
                "item_count": item_count,
                "referenced_by": referenced_by,
            },
        )
        self.schema_id = schema_id
        self.item_count = item_count
        self.referenced_by = referenced_by


class InvalidOrderError(BusinessRuleError):
    """A field order is not a permutation of the schema's field ids."""

    def __init__(self, schema_id: str, missing: list[str], unexpected: list[str]) -> None:
        msg = f"New field order for schema '{schema_id}' is not a permutation of its field ids"
        if missing:
            msg += f"; missing: {missing}"
        if unexpected:
            msg += f"; unexpected: {unexpected}"
        super().__init__(
            BusinessRule.INVALID_ORDER,
            msg,
            details={"schema_id": schema_id, "missing": missing, "unexpected": unexpected},
        )
        self.missing = missing
        self.unexpected = unexpected


class InvalidStatusError(BusinessRuleError):
    """A status value outside draft/pending_review/published."""

    def __init__(self, value: Any) -> None:
        super().__init__(
            BusinessRule.INVALID_STATUS,
            f"Invalid content status {value!r}. Valid statuses: draft, pending_review, published",
            details={"value": str(value)},
        )
        self.value = value


class InvalidTransitionError(BusinessRuleError):
    """A status change not allowed by the transition table."""

    def __init__(self, item_id: str, from_status: str, to_status: str) -> None:
        super().__init__(
            BusinessRule.INVALID_TRANSITION,
            f"Content item '{item_id}' cannot move from {from_status} to {to_status}",
            details={"item_id": item_id, "from": from_status, "to": to_status},
        )
        self.item_id = item_id
        self.from_status = from_status
        self.to_status = to_status


class PartialMigrationError(CmsError):
    """Purging a deleted field failed for some content items.

    The field is already gone from the schema; only item cleanup is incomplete.
    Retry with SchemaMutationEngine.purge_field_data().

    Attributes:
        schema: The schema as persisted after the field removal
        field_id: The deleted field id
        purged_item_ids: Items cleaned successfully
        failed_item_ids: Items that still carry the field
    """

    def __init__(
        self,
        schema: Schema,
        field_id: str,
        purged_item_ids: list[str],
        failed_item_ids: list[str],
    ) -> None:
        super().__init__(
            f"Field '{field_id}' was removed from schema '{schema.id}' but "
            f"{len(failed_item_ids)} content item(s) could not be purged",
            code="PARTIAL_MIGRATION",
            details={
                "schema_id": schema.id,
                "field_id": field_id,
                "purged_count": len(purged_item_ids),
                "failed_item_ids": failed_item_ids,
            },
        )
        self.schema = schema
        self.field_id = field_id
        self.purged_item_ids = purged_item_ids
        self.failed_item_ids = failed_item_ids


class TransportError(CmsError):
    """Storage or network failure.

    Raised when:
    - The remote store is unreachable or times out
    - The remote store returns a server error
    - The local SQLite database cannot be read or written
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"operation": operation, "status_code": status_code},
        )
        self.operation = operation
        self.status_code = status_code


class NotFoundError(CmsError):
    """Resource not found.

    Raised when:
    - Schema doesn't exist in the tenant
    - Content item doesn't exist
    - Field id is not active on the schema
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class RecordDecodeError(CmsError, ValueError):
    """A stored or transported record cannot be decoded.

    Raised when:
    - A field uses a type tag outside the catalog (e.g. multiselect, email)
    - A record is missing a mandatory attribute

    Attributes:
        record_type: "schema", "content_item" or "content_item_version"
        record_id: Id of the record, when it has one
        field_id: Offending field (schema records only)
    """

    def __init__(
        self,
        record_type: str,
        record_id: str | None,
        reason: str,
        field_id: str | None = None,
    ) -> None:
        where = f" field '{field_id}'" if field_id else ""
        super().__init__(
            f"Cannot decode {record_type} '{record_id}'{where}: {reason}",
            code="RECORD_DECODE_ERROR",
            details={
                "record_type": record_type,
                "record_id": record_id,
                "field_id": field_id,
                "reason": reason,
            },
        )
        self.record_type = record_type
        self.record_id = record_id
        self.field_id = field_id
        self.reason = reason


class RelationTargetNotFoundError(CmsError):
    """One or more relation ids do not resolve to a live item of the target schema."""

    def __init__(
        self,
        field_id: str,
        target_schema_id: str,
        missing_ids: list[str],
    ) -> None:
        super().__init__(
            f"Relation field '{field_id}' references missing item(s) {missing_ids} "
            f"in schema '{target_schema_id}'",
            code="TARGET_NOT_FOUND",
            details={
                "field_id": field_id,
                "target_schema_id": target_schema_id,
                "missing_ids": missing_ids,
            },
        )
        self.field_id = field_id
        self.target_schema_id = target_schema_id
        self.missing_ids = missing_ids


class ConcurrentModificationError(CmsError):
    """A schema write was based on a stale version."""

    def __init__(
        self,
        schema_id: str,
        expected_version: int | None,
        actual_version: int | None,
    ) -> None:
        super().__init__(
            f"Schema '{schema_id}' was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            code="CONCURRENT_MODIFICATION",
            details={
                "schema_id": schema_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.schema_id = schema_id
        self.expected_version = expected_version
        self.actual_version = actual_version
