"""
Database Base Classes and Common Utilities

This module provides the foundation for all database models in the application.

Key Concepts:
--------------
1. DeclarativeBase: SQLAlchemy's base class that enables ORM functionality
2. TimestampMixin: created_at / updated_at columns shared by every table
3. orm_registry: Central registry that tracks all models and their metadata

Unlike a classic auto-increment design, every table here owns its primary key:
- bookmark_task.task_id and rag_session.session_id are server-generated UUIDs
- bookmark uses the deterministic content hash together with the user id
- bookmark_chunk.chunk_id is a server-generated UUID
"""

from datetime import datetime, timezone
from sqlalchemy import DateTime, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, registry


# ================================
# Naming Convention for Constraints
# ================================
# Consistent constraint names let Alembic track changes reliably.
#
# Format examples:
# - ix_bookmark_user_id: Index on 'bookmark' table, 'user_id' column
# - uq_bookmark_url: Unique constraint on 'bookmark' starting at 'url'
# - pk_bookmark_task: Primary key on 'bookmark_task' table
convention = {
    "ix": "ix_%(column_0_label)s",  # Index
    "uq": "uq_%(table_name)s_%(column_0_name)s",  # Unique constraint
    "ck": "ck_%(table_name)s_%(constraint_name)s",  # Check constraint
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",  # Foreign key
    "pk": "pk_%(table_name)s",  # Primary key
}

# Create metadata with naming conventions
metadata = MetaData(naming_convention=convention)

# Create ORM registry - this tracks all our models
orm_registry = registry(metadata=metadata)


# ================================
# Base DeclarativeBase Class
# ================================
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        class BookmarkTask(Base, TimestampMixin):
            __tablename__ = "bookmark_task"
            task_id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    """

    registry = orm_registry
    metadata = metadata

    # Type checking: Tell mypy that all models have these attributes
    __tablename__: str


# ================================
# Timestamp Mixin
# ================================
class TimestampMixin:
    """
    Mixin that provides created_at / updated_at to a model.

    Both are TIMESTAMP WITH TIME ZONE and default to the current UTC time.
    The database default (now()) covers rows written with raw SQL; the Python
    default covers ORM inserts. updated_at is bumped on every ORM update, and
    explicitly (updated_at = now()) by the bulk UPDATE statements in the stores.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when record was last updated (UTC)"
    )
