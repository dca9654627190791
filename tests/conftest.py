"""Shared fixtures for the ContentDB tests."""

import logging

import pytest

from cms.contentdb.engine import ContentEngine
from cms.contentdb.store.memory import InMemoryStore


@pytest.fixture
def store():
    """Fresh in-memory store."""
    return InMemoryStore()


@pytest.fixture
def engine(store):
    """Engine over the in-memory store."""
    return ContentEngine(store, store, purge_concurrency=4)


@pytest.fixture
def restore_logging():
    """Put the root logger back after tests that configure logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
