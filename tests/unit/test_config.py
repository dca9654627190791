"""
Unit tests for configuration, store selection and logging setup.
"""

import json
import logging

import json_log_formatter
import pytest
from pydantic import ValidationError

from cms.contentdb.config import Settings, StorageBackend
from cms.contentdb.engine import ContentEngine
from cms.contentdb.logging_config import setup_logging
from cms.contentdb.store import HttpStore, InMemoryStore, SqliteStore, create_stores


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CONTENTDB_STORAGE_BACKEND", raising=False)
        settings = Settings()
        assert settings.storage_backend == StorageBackend.MEMORY
        assert settings.purge_concurrency == 8
        assert settings.allow_direct_publish is False
        assert settings.log_format == "text"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CONTENTDB_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("CONTENTDB_PURGE_CONCURRENCY", "3")
        monkeypatch.setenv("CONTENTDB_ALLOW_DIRECT_PUBLISH", "true")

        settings = Settings()

        assert settings.storage_backend == StorageBackend.SQLITE
        assert settings.purge_concurrency == 3
        assert settings.allow_direct_publish is True

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            Settings(log_format="xml")
        with pytest.raises(ValidationError):
            Settings(purge_concurrency=0)

    def test_safe_dict_masks_secrets(self):
        settings = Settings(http_api_key="abc", gateway_api_key="def")
        data = settings.to_safe_dict()
        assert data["http_api_key"] == "***"
        assert data["gateway_api_key"] == "***"
        assert "abc" not in json.dumps(data)


class TestCreateStores:
    """Tests for create_stores()."""

    def test_memory(self):
        schema_store, item_store = create_stores(Settings(storage_backend="memory"))
        assert isinstance(schema_store, InMemoryStore)
        assert schema_store is item_store

    def test_sqlite(self, tmp_path):
        schema_store, _ = create_stores(
            Settings(storage_backend="sqlite", data_dir=str(tmp_path), sqlite_wal_mode=False)
        )
        assert isinstance(schema_store, SqliteStore)
        assert schema_store.wal_mode is False

    @pytest.mark.asyncio
    async def test_http(self):
        schema_store, _ = create_stores(
            Settings(storage_backend="http", http_base_url="http://store.internal:9000")
        )
        assert isinstance(schema_store, HttpStore)
        await schema_store.close()

    @pytest.mark.asyncio
    async def test_seeded_memory_engine(self):
        engine = ContentEngine.from_settings(Settings(seed_examples=True, purge_concurrency=2))
        assert engine.mutations.purge_concurrency == 2
        assert [s.id for s in await engine.export_schemas("demo")] == ["blog-post", "homepage"]


class TestLogging:
    """Tests for setup_logging()."""

    def test_json_format(self, restore_logging):
        setup_logging(Settings(log_format="json", log_level="debug"))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_format(self, restore_logging):
        setup_logging(Settings(log_format="text", log_level="WARNING"))
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
