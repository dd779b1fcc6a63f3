"""
Database Models

Import models from this module to ensure they're registered with SQLAlchemy:

    from bookmark_hub.models import Bookmark, BookmarkChunk, BookmarkTask, RagSession

This ensures that Alembic can detect all models for migrations.
"""

from bookmark_hub.models.bookmark import Bookmark, BookmarkChunk
from bookmark_hub.models.bookmark_task import BookmarkTask, TaskStatus
from bookmark_hub.models.rag import RagSession

__all__ = [
    "Bookmark",
    "BookmarkChunk",
    "BookmarkTask",
    "RagSession",
    "TaskStatus",
]
