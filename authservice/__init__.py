"""Account authentication and password recovery service."""

from __future__ import annotations

from typing import Any

from .database import AccountStore, Database, resolve_database_path


def create_application(*args: Any, **kwargs: Any):
    """Factory function that returns the configured ASGI application."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "AccountStore",
    "Database",
    "resolve_database_path",
    "create_application",
]
