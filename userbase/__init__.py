"""Record management service for user profiles backed by SQLite."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .service import UserService


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP API application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "UserService",
    "resolve_database_path",
    "create_app",
]
