"""
Content item types for ContentDB.

This module defines:
- ContentStatus: The three lifecycle states
- ContentItem: One instance of data conforming to a schema
- ContentItemVersion: Immutable snapshot recorded on every change

Invariants:
    - ContentItem.data keys are active or retained field ids of schema_id
    - status is always one of the three ContentStatus members
    - Versions are append-only
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import InvalidStatusError


class ContentStatus(Enum):
    """Lifecycle state of a content item."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PUBLISHED = "published"

    @classmethod
    def parse(cls, value: str | ContentStatus) -> ContentStatus:
        """Convert a status value to ContentStatus.

        Raises:
            InvalidStatusError: If value is not one of the three statuses
        """
        if isinstance(value, ContentStatus):
            return value
        for status in cls:
            if status.value == value:
                return status
        raise InvalidStatusError(value)


@dataclass
class ContentItem:
    """A content item.

    Attributes:
        id: Item identifier
        schema_id: Schema the data conforms to
        title: Display title
        status: Lifecycle state
        data: Field values keyed by field id
        created_at: Creation timestamp (ISO-8601)
        updated_at: Last update timestamp (ISO-8601)
        published_at: Set while published
        archived_at: Set while archived
        deleted_at: Set while soft-deleted
        created_by: Actor who created the item
        updated_by: Actor who last changed the item
        published_by: Actor who last published the item
    """

    id: str
    schema_id: str
    title: str
    status: ContentStatus = ContentStatus.DRAFT
    data: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None
    published_at: str | None = None
    archived_at: str | None = None
    deleted_at: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    published_by: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "schemaId": self.schema_id,
            "title": self.title,
            "status": self.status.value,
            "data": self.data,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "publishedAt": self.published_at,
            "archivedAt": self.archived_at,
            "deletedAt": self.deleted_at,
            "createdBy": self.created_by,
            "updatedBy": self.updated_by,
            "publishedBy": self.published_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentItem:
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            schema_id=data["schemaId"],
            title=data.get("title") or "",
            status=ContentStatus.parse(data.get("status") or ContentStatus.DRAFT.value),
            data=dict(data.get("data") or {}),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            published_at=data.get("publishedAt"),
            archived_at=data.get("archivedAt"),
            deleted_at=data.get("deletedAt"),
            created_by=data.get("createdBy"),
            updated_by=data.get("updatedBy"),
            published_by=data.get("publishedBy"),
        )


@dataclass(frozen=True)
class ContentItemVersion:
    """Snapshot of a content item at one point in time."""

    id: str
    content_item_id: str
    schema_id: str
    title: str
    status: ContentStatus
    data: dict[str, Any]
    created_at: str
    created_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contentItemId": self.content_item_id,
            "schemaId": self.schema_id,
            "title": self.title,
            "status": self.status.value,
            "data": self.data,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentItemVersion:
        return cls(
            id=data["id"],
            content_item_id=data["contentItemId"],
            schema_id=data["schemaId"],
            title=data.get("title") or "",
            status=ContentStatus.parse(data.get("status") or ContentStatus.DRAFT.value),
            data=dict(data.get("data") or {}),
            created_at=data["createdAt"],
            created_by=data.get("createdBy"),
        )
