"""
Per-tenant SQLite store for ContentDB.

This module manages one SQLite database per tenant (workspace) holding:
- Schemas, with their version stamp for compare-and-set writes
- Content items
- Content item version snapshots

Invariants:
    - One SQLite file per tenant; the tenant id is sanitized into the path
    - Every write runs in a single BEGIN IMMEDIATE transaction
    - put_schema compares the stored version inside the same transaction
    - sqlite3 errors surface as TransportError

How to change safely:
    - Schema migrations must be backward compatible (bump SCHEMA_VERSION)
    - Keep records as JSON blobs in canonical shape; decode via codec

Table schema:
    schemas:
        - tenant_id TEXT
        - schema_id TEXT
        - name TEXT
        - kind TEXT
        - version INTEGER
        - schema_json TEXT
        - PRIMARY KEY (tenant_id, schema_id)

    content_items:
        - tenant_id TEXT
        - item_id TEXT
        - schema_id TEXT
        - status TEXT
        - item_json TEXT
        - updated_at TEXT
        - PRIMARY KEY (tenant_id, item_id)

    content_item_versions:
        - tenant_id TEXT
        - version_id TEXT
        - item_id TEXT
        - created_at TEXT
        - version_json TEXT
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..content.types import ContentItem, ContentItemVersion
from ..errors import ConcurrentModificationError, TransportError
from ..schema.types import Schema
from .base import SchemaFilter
from .codec import item_from_dict, schema_from_dict, version_from_dict

logger = logging.getLogger(__name__)


class SqliteStore:
    """Per-tenant SQLite implementation of SchemaStore and ContentItemStore.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> store = SqliteStore("/var/lib/contentdb")
        >>> await store.put_schema("tenant_1", schema, expected_version=0)
        >>> items = await store.get_items_by_schema("tenant_1", schema.id)
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for SQLite database files
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._initialized: set[str] = set()
        self._init_lock = asyncio.Lock()

    def get_db_path(self, tenant_id: str) -> Path:
        """Get database file path for a tenant."""
        # Sanitize tenant_id to prevent path traversal
        safe_id = "".join(c for c in tenant_id if c.isalnum() or c in "-_")
        if not safe_id:
            raise ValueError(f"Invalid tenant id {tenant_id!r}")
        return self.data_dir / f"tenant_{safe_id}.db"

    @contextmanager
    def _connect(self, tenant_id: str, operation: str) -> Iterator[sqlite3.Connection]:
        """Open a configured connection, translating sqlite errors."""
        db_path = self.get_db_path(tenant_id)
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TransportError(f"Cannot create data directory: {e}", operation=operation) from e
        try:
            conn = sqlite3.connect(
                str(db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise TransportError(f"Cannot open tenant database: {e}", operation=operation) from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        except sqlite3.Error as e:
            raise TransportError(f"SQLite {operation} failed: {e}", operation=operation) from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, conn: sqlite3.Connection) -> Iterator[None]:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database tables."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS schemas (
                tenant_id TEXT NOT NULL,
                schema_id TEXT NOT NULL,
                name TEXT NOT NULL,
                kind TEXT NOT NULL,
                version INTEGER NOT NULL,
                schema_json TEXT NOT NULL,
                PRIMARY KEY (tenant_id, schema_id)
            );

            CREATE TABLE IF NOT EXISTS content_items (
                tenant_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                schema_id TEXT NOT NULL,
                status TEXT NOT NULL,
                item_json TEXT NOT NULL,
                updated_at TEXT,
                PRIMARY KEY (tenant_id, item_id)
            );

            CREATE INDEX IF NOT EXISTS idx_items_schema ON content_items(tenant_id, schema_id);

            CREATE TABLE IF NOT EXISTS content_item_versions (
                tenant_id TEXT NOT NULL,
                version_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                version_json TEXT NOT NULL,
                PRIMARY KEY (tenant_id, version_id)
            );

            CREATE INDEX IF NOT EXISTS idx_versions_item
                ON content_item_versions(tenant_id, item_id, created_at DESC);

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, datetime('now'));
        """)

    async def initialize_tenant(self, tenant_id: str) -> None:
        """Create the tenant database and tables if they don't exist.

        Args:
            tenant_id: Tenant identifier
        """
        async with self._init_lock:
            if tenant_id in self._initialized:
                return
            with self._connect(tenant_id, "initialize") as conn:
                self._create_schema(conn)
            self._initialized.add(tenant_id)
            logger.info(f"Initialized tenant database: {tenant_id}")

    async def tenant_exists(self, tenant_id: str) -> bool:
        """Check if tenant database exists."""
        return self.get_db_path(tenant_id).exists()

    # --- SchemaStore ---

    async def get_schema(self, tenant_id: str, schema_id: str) -> Schema | None:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "get_schema") as conn:
            row = conn.execute(
                "SELECT schema_json FROM schemas WHERE tenant_id = ? AND schema_id = ?",
                (tenant_id, schema_id),
            ).fetchone()
        return schema_from_dict(json.loads(row["schema_json"])) if row else None

    async def list_schemas(
        self, tenant_id: str, schema_filter: SchemaFilter | None = None
    ) -> list[Schema]:
        await self.initialize_tenant(tenant_id)
        query = "SELECT schema_json FROM schemas WHERE tenant_id = ?"
        params: list[str] = [tenant_id]
        if schema_filter is not None and schema_filter.kind is not None:
            query += " AND kind = ?"
            params.append(schema_filter.kind.value)
        query += " ORDER BY name COLLATE NOCASE"

        with self._connect(tenant_id, "list_schemas") as conn:
            rows = conn.execute(query, params).fetchall()

        schemas = [schema_from_dict(json.loads(r["schema_json"])) for r in rows]
        if schema_filter is not None:
            schemas = [s for s in schemas if schema_filter.matches(s)]
        return schemas

    async def put_schema(
        self, tenant_id: str, schema: Schema, expected_version: int | None = None
    ) -> Schema:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "put_schema") as conn:
            with self._transaction(conn):
                row = conn.execute(
                    "SELECT version FROM schemas WHERE tenant_id = ? AND schema_id = ?",
                    (tenant_id, schema.id),
                ).fetchone()
                actual = row["version"] if row else 0
                if expected_version is not None and actual != expected_version:
                    raise ConcurrentModificationError(schema.id, expected_version, actual)
                conn.execute(
                    """
                    INSERT OR REPLACE INTO schemas
                    (tenant_id, schema_id, name, kind, version, schema_json)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        tenant_id,
                        schema.id,
                        schema.name,
                        schema.kind.value,
                        schema.version,
                        json.dumps(schema.to_dict()),
                    ),
                )
        logger.debug(
            "Stored schema",
            extra={"tenant_id": tenant_id, "schema_id": schema.id, "version": schema.version},
        )
        return schema

    async def delete_schema(self, tenant_id: str, schema_id: str) -> None:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "delete_schema") as conn:
            conn.execute(
                "DELETE FROM schemas WHERE tenant_id = ? AND schema_id = ?",
                (tenant_id, schema_id),
            )

    # --- ContentItemStore ---

    async def get_item(self, tenant_id: str, item_id: str) -> ContentItem | None:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "get_item") as conn:
            row = conn.execute(
                "SELECT item_json FROM content_items WHERE tenant_id = ? AND item_id = ?",
                (tenant_id, item_id),
            ).fetchone()
        return item_from_dict(json.loads(row["item_json"])) if row else None

    async def get_items_by_schema(self, tenant_id: str, schema_id: str) -> list[ContentItem]:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "get_items_by_schema") as conn:
            rows = conn.execute(
                """
                SELECT item_json FROM content_items
                WHERE tenant_id = ? AND schema_id = ?
                ORDER BY updated_at DESC
                """,
                (tenant_id, schema_id),
            ).fetchall()
        return [item_from_dict(json.loads(r["item_json"])) for r in rows]

    async def put_item(self, tenant_id: str, item: ContentItem) -> ContentItem:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "put_item") as conn:
            with self._transaction(conn):
                conn.execute(
                    """
                    INSERT OR REPLACE INTO content_items
                    (tenant_id, item_id, schema_id, status, item_json, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        tenant_id,
                        item.id,
                        item.schema_id,
                        item.status.value,
                        json.dumps(item.to_dict()),
                        item.updated_at,
                    ),
                )
        return item

    async def delete_item(self, tenant_id: str, item_id: str) -> None:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "delete_item") as conn:
            with self._transaction(conn):
                conn.execute(
                    "DELETE FROM content_item_versions WHERE tenant_id = ? AND item_id = ?",
                    (tenant_id, item_id),
                )
                conn.execute(
                    "DELETE FROM content_items WHERE tenant_id = ? AND item_id = ?",
                    (tenant_id, item_id),
                )

    async def put_version(self, tenant_id: str, version: ContentItemVersion) -> ContentItemVersion:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "put_version") as conn:
            conn.execute(
                """
                INSERT INTO content_item_versions
                (tenant_id, version_id, item_id, created_at, version_json)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    tenant_id,
                    version.id,
                    version.content_item_id,
                    version.created_at,
                    json.dumps(version.to_dict()),
                ),
            )
        return version

    async def list_versions(self, tenant_id: str, item_id: str) -> list[ContentItemVersion]:
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "list_versions") as conn:
            rows = conn.execute(
                """
                SELECT version_json FROM content_item_versions
                WHERE tenant_id = ? AND item_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (tenant_id, item_id),
            ).fetchall()
        return [version_from_dict(json.loads(r["version_json"])) for r in rows]

    async def get_stats(self, tenant_id: str) -> dict[str, int]:
        """Get record counts for a tenant."""
        await self.initialize_tenant(tenant_id)
        with self._connect(tenant_id, "get_stats") as conn:
            stats = {}
            for table in ("schemas", "content_items", "content_item_versions"):
                cursor = conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE tenant_id = ?", (tenant_id,)
                )
                stats[table] = cursor.fetchone()[0]
            return stats
