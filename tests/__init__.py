"""
ContentDB Test Suite.

This package contains:
- unit/: Unit tests (in-memory and temporary SQLite stores)
- integration/: Integration tests (store gateway over httpx, end-to-end scenarios)
"""
