"""Database utilities and session management."""

from bookmark_hub.db.base import Base, TimestampMixin
from bookmark_hub.db.session import (
    AsyncSessionLocal,
    check_db_health,
    close_db,
    create_engine,
    engine,
    session_scope,
)

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Session management
    "engine",
    "create_engine",
    "AsyncSessionLocal",
    "session_scope",
    "close_db",
    "check_db_health",
]
