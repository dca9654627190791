"""
Storage layer for ContentDB.

This package provides:
- SchemaStore / ContentItemStore contracts
- The boundary codec for legacy record shapes
- In-memory, SQLite and HTTP implementations
- create_stores(): builds the store pair configured in Settings
"""

from __future__ import annotations

import logging

from ..config import Settings, StorageBackend
from .base import ContentItemStore, SchemaFilter, SchemaStore
from .codec import item_from_dict, schema_from_dict, version_from_dict
from .http import HttpStore
from .memory import InMemoryStore
from .sqlite import SqliteStore

logger = logging.getLogger(__name__)


def create_stores(settings: Settings) -> tuple[SchemaStore, ContentItemStore]:
    """Build the configured (schema store, item store) pair.

    All implementations serve both contracts, so both members are the
    same object.
    """
    if settings.storage_backend == StorageBackend.SQLITE:
        store = SqliteStore(
            settings.data_dir,
            wal_mode=settings.sqlite_wal_mode,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )
    elif settings.storage_backend == StorageBackend.HTTP:
        store = HttpStore(
            settings.http_base_url,
            api_key=settings.http_api_key,
            timeout=settings.http_timeout_seconds,
        )
    else:
        from ..schema.templates import EXAMPLE_SCHEMAS

        store = InMemoryStore(seed_schemas=EXAMPLE_SCHEMAS if settings.seed_examples else None)

    logger.info(f"Using {settings.storage_backend.value} store")
    return store, store


__all__ = [
    "SchemaStore",
    "ContentItemStore",
    "SchemaFilter",
    "InMemoryStore",
    "SqliteStore",
    "HttpStore",
    "create_stores",
    "schema_from_dict",
    "item_from_dict",
    "version_from_dict",
]
