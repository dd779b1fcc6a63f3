"""
Pydantic schemas for request/response validation.

Import all schemas here for easy access.
"""

from bookmark_hub.schemas.bookmark import (
    BookmarkResponse,
    BookmarkTaskResponse,
    BookmarkTaskSearchRequest,
    NewBookmarkRequest,
    TagCount,
    TagOperation,
)
from bookmark_hub.schemas.rag import (
    BookmarkChunkResponse,
    RagChunkMatch,
    RagHistoryRequest,
    RagHistoryResponse,
    RagQueryRequest,
    RagQueryResponse,
    RagSessionDetailResponse,
    RagSessionResponse,
)
from bookmark_hub.schemas.search import (
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    TagFilter,
    TagFilterMode,
)

__all__ = [
    # Bookmarks and tasks
    "BookmarkResponse",
    "BookmarkTaskResponse",
    "BookmarkTaskSearchRequest",
    "NewBookmarkRequest",
    "TagCount",
    "TagOperation",
    # Search
    "SearchRequest",
    "SearchResponse",
    "SearchResultItem",
    "TagFilter",
    "TagFilterMode",
    # RAG
    "BookmarkChunkResponse",
    "RagChunkMatch",
    "RagHistoryRequest",
    "RagHistoryResponse",
    "RagQueryRequest",
    "RagQueryResponse",
    "RagSessionDetailResponse",
    "RagSessionResponse",
]
