"""
Content items for ContentDB.

This package provides:
- Content item and version types
- Payload validation against schemas
- Relation resolution
- The item lifecycle service
"""

from .relations import RelationResolver, ResolvedReference
from .service import TRANSITIONS, ContentService, default_title
from .types import ContentItem, ContentItemVersion, ContentStatus
from .validator import ContentValidator, check_payload, suggest_fields

__all__ = [
    "ContentItem",
    "ContentItemVersion",
    "ContentStatus",
    "ContentValidator",
    "check_payload",
    "suggest_fields",
    "RelationResolver",
    "ResolvedReference",
    "ContentService",
    "TRANSITIONS",
    "default_title",
]
