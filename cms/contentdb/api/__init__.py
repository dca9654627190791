"""
Store gateway for ContentDB.

Serves the store contracts over HTTP for HttpStore clients.
"""

from .app import create_app

__all__ = ["create_app"]
