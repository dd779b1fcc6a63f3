"""
Bookmark Service

The API the outer layers (HTTP handlers, CLI, tests) call into. Every method
opens its own transaction, works through the stores and returns pydantic
schemas, never ORM objects.

Submission is asynchronous: create_task() only records the URL and wakes the
ingestion worker; the outcome is visible later through search_tasks().
"""

import uuid
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookmark_hub.core.config import settings
from bookmark_hub.core.logging import get_logger
from bookmark_hub.db.redis import get_redis
from bookmark_hub.db.session import AsyncSessionLocal, session_scope
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
    RagHistoryRequest,
    RagHistoryResponse,
    RagQueryRequest,
    RagQueryResponse,
    RagSessionDetailResponse,
    RagSessionResponse,
)
from bookmark_hub.schemas.search import SearchRequest, SearchResponse
from bookmark_hub.services.llm.ollama import get_ollama_client
from bookmark_hub.services.rag.engine import RagEngine
from bookmark_hub.services.store.bookmarks import BookmarkStore
from bookmark_hub.services.store.chunks import ChunkStore
from bookmark_hub.services.store.rag_sessions import RagSessionStore
from bookmark_hub.services.store.search import BookmarkSearch
from bookmark_hub.services.store.task_queue import TaskQueue
from bookmark_hub.workers.signals import publish_wakeup

logger = get_logger(__name__)


# ========================================
# Custom Exceptions
# ========================================


class ServiceError(Exception):
    """Base exception for service errors."""
    pass


class ValidationError(ServiceError):
    """Raised when request input is invalid (e.g. blank URL)."""
    pass


class AIUnavailableError(ServiceError):
    """Raised when an AI feature is used without a configured text model."""
    pass


# ========================================
# Notifier
# ========================================


class TaskNotifier:
    """Wakes the ingestion worker through Redis pub/sub. Never raises."""

    def __init__(self, redis: Optional[Redis] = None, channel: Optional[str] = None):
        self.redis = redis
        self.channel = channel or settings.REDIS_NEW_TASK_CHANNEL

    async def notify_new_task(self) -> None:
        try:
            redis = self.redis or await get_redis()
        except Exception as e:
            logger.warning("new_task_notify_failed", channel=self.channel, error=str(e))
            return
        await publish_wakeup(redis, self.channel)


def clean_tags(tags: Optional[List[str]]) -> List[str]:
    return [tag.strip() for tag in (tags or []) if tag and tag.strip()]


# ========================================
# Service
# ========================================


class BookmarkService:
    """
    Usage:
    ------
    service = BookmarkService()
    task = await service.create_task(user_id, "https://example.com/post", tags=["db"])
    hits = await service.search(user_id, SearchRequest(query="postgres vacuum"))
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        notifier: Optional[TaskNotifier] = None,
        rag_engine: Optional[RagEngine] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or TaskNotifier()
        self._rag_engine = rag_engine

    # ========================================
    # Tasks
    # ========================================

    async def create_task(
        self,
        user_id: uuid.UUID,
        url: str,
        tags: Optional[List[str]] = None,
    ) -> BookmarkTaskResponse:
        """
        Queue a URL for ingestion.

        Raises:
            ValidationError: Blank or oversized URL
        """
        try:
            request = NewBookmarkRequest(url=url or "", tags=clean_tags(tags))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid bookmark request: {e.errors()[0]['msg']}") from e

        async with session_scope(self.session_factory) as db:
            task = await TaskQueue(db).create(user_id, request.url, request.tags)
            response = BookmarkTaskResponse.model_validate(task)

        await self.notifier.notify_new_task()
        return response

    async def search_tasks(
        self,
        user_id: uuid.UUID,
        request: Optional[BookmarkTaskSearchRequest] = None,
    ) -> List[BookmarkTaskResponse]:
        async with session_scope(self.session_factory) as db:
            tasks = await TaskQueue(db).search(user_id, request)
            return [BookmarkTaskResponse.model_validate(task) for task in tasks]

    # ========================================
    # Bookmarks
    # ========================================

    async def get_bookmark(self, user_id: uuid.UUID, bookmark_id: str) -> BookmarkResponse:
        """
        Raises:
            BookmarkNotFoundError: The user has no such bookmark
        """
        async with session_scope(self.session_factory) as db:
            bookmark = await BookmarkStore(db).get(user_id, bookmark_id)
            return BookmarkResponse.model_validate(bookmark)

    async def list_bookmarks(self, user_id: uuid.UUID) -> List[BookmarkResponse]:
        async with session_scope(self.session_factory) as db:
            bookmarks = await BookmarkStore(db).list_for_user(user_id)
            return [BookmarkResponse.model_validate(b) for b in bookmarks]

    async def list_bookmarks_by_tag(self, user_id: uuid.UUID, tag: str) -> List[BookmarkResponse]:
        async with session_scope(self.session_factory) as db:
            bookmarks = await BookmarkStore(db).list_by_tag(user_id, tag)
            return [BookmarkResponse.model_validate(b) for b in bookmarks]

    async def tag_counts(self, user_id: uuid.UUID) -> List[TagCount]:
        async with session_scope(self.session_factory) as db:
            return await BookmarkStore(db).tag_counts(user_id)

    async def set_tags(
        self, user_id: uuid.UUID, bookmark_id: str, tags: List[str]
    ) -> BookmarkResponse:
        return await self._update_tags(user_id, bookmark_id, tags, TagOperation.SET)

    async def append_tags(
        self, user_id: uuid.UUID, bookmark_id: str, tags: List[str]
    ) -> BookmarkResponse:
        return await self._update_tags(user_id, bookmark_id, tags, TagOperation.APPEND)

    async def _update_tags(self, user_id, bookmark_id, tags, operation) -> BookmarkResponse:
        async with session_scope(self.session_factory) as db:
            bookmark = await BookmarkStore(db).update_tags(
                user_id, bookmark_id, clean_tags(tags), operation
            )
            response = BookmarkResponse.model_validate(bookmark)

        logger.info(
            "bookmark_tags_updated",
            bookmark_id=bookmark_id,
            operation=operation.value,
            tags=len(response.tags or []),
        )
        return response

    async def search(self, user_id: uuid.UUID, request: SearchRequest) -> SearchResponse:
        async with session_scope(self.session_factory) as db:
            return await BookmarkSearch(db).search(user_id, request)

    # ========================================
    # RAG
    # ========================================

    @property
    def rag_engine(self) -> RagEngine:
        if self._rag_engine is None:
            self._rag_engine = RagEngine(get_ollama_client(), self.session_factory)
        return self._rag_engine

    async def rag_query(self, user_id: uuid.UUID, request: RagQueryRequest) -> RagQueryResponse:
        """
        Raises:
            AIUnavailableError: No text model configured
        """
        if not settings.ai_enabled:
            raise AIUnavailableError("RAG requires OLLAMA_TEXT_MODEL to be configured")

        return await self.rag_engine.process_query(
            user_id,
            request.question,
            max_chunks=request.max_chunks,
            similarity_threshold=request.similarity_threshold,
        )

    async def rag_history(
        self,
        user_id: uuid.UUID,
        request: Optional[RagHistoryRequest] = None,
    ) -> RagHistoryResponse:
        request = request or RagHistoryRequest()
        limit = min(
            request.limit or settings.RAG_HISTORY_PAGE_SIZE,
            settings.RAG_HISTORY_MAX_PAGE_SIZE,
        )

        async with session_scope(self.session_factory) as db:
            sessions, total = await RagSessionStore(db).history(
                user_id, limit, request.offset or 0
            )
            return RagHistoryResponse(
                sessions=[RagSessionResponse.model_validate(s) for s in sessions],
                total_count=total,
            )

    async def rag_session(
        self, user_id: uuid.UUID, session_id: uuid.UUID
    ) -> RagSessionDetailResponse:
        """
        One past session with its supporting chunks, in the order they were stored.

        Raises:
            RagSessionNotFoundError: The user has no such session
        """
        async with session_scope(self.session_factory) as db:
            session = await RagSessionStore(db).get(session_id, user_id)
            chunks = await ChunkStore(db).get_chunks_by_ids(user_id, session.relevant_chunks)
            return RagSessionDetailResponse(
                session=RagSessionResponse.model_validate(session),
                chunks=[BookmarkChunkResponse.model_validate(c) for c in chunks],
            )
