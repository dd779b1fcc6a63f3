"""
Persistence layer.

Each store wraps an AsyncSession owned by the caller; none of them commit.
"""

from bookmark_hub.services.store.bookmarks import (
    BookmarkNotFoundError,
    BookmarkStore,
    DuplicateBookmarkError,
)
from bookmark_hub.services.store.chunks import ChunkMismatchError, ChunkStore
from bookmark_hub.services.store.rag_sessions import RagSessionNotFoundError, RagSessionStore
from bookmark_hub.services.store.search import BookmarkSearch
from bookmark_hub.services.store.task_queue import TaskQueue

__all__ = [
    "BookmarkNotFoundError",
    "BookmarkSearch",
    "BookmarkStore",
    "ChunkMismatchError",
    "ChunkStore",
    "DuplicateBookmarkError",
    "RagSessionNotFoundError",
    "RagSessionStore",
    "TaskQueue",
]
