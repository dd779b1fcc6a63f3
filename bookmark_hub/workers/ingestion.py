"""
Ingestion Worker

Drains the task queue: every leased task is turned into a bookmark (or found
to be a duplicate) and completed as DONE, retried, or FAIL.

Per task:
---------
1. Normalize the URL and derive the bookmark id
2. Duplicate check on (normalized url, user): an existing bookmark completes
   the task without fetching anything (lease redelivery is harmless)
3. Fetch, extract and localize images (ContentProcessor)
4. Write static content (index.html + images)
5. Insert the bookmark row
6. Complete the task; any exception from 1-5 counts as a failed attempt
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookmark_hub.core.logging import get_logger
from bookmark_hub.db.session import AsyncSessionLocal, session_scope
from bookmark_hub.models.bookmark import Bookmark
from bookmark_hub.models.bookmark_task import BookmarkTask, TaskStatus
from bookmark_hub.services.processors.content_processor import ContentProcessor
from bookmark_hub.services.processors.static_storage import StaticStorage
from bookmark_hub.services.store.bookmarks import BookmarkStore, DuplicateBookmarkError
from bookmark_hub.services.store.task_queue import TaskQueue

logger = get_logger(__name__)


class IngestionWorker:

    def __init__(
        self,
        processor: ContentProcessor,
        storage: StaticStorage,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        max_retries: Optional[int] = None,
    ):
        self.processor = processor
        self.storage = storage
        self.session_factory = session_factory
        self.max_retries = max_retries

    async def drain(self) -> int:
        """
        Dequeue and process until the queue has nothing eligible.

        Returns:
            Number of new bookmarks stored
        """
        stored = 0
        while True:
            async with session_scope(self.session_factory) as db:
                tasks = await TaskQueue(db).dequeue()
            if not tasks:
                break

            for task in tasks:
                if await self.process_task(task):
                    stored += 1

        if stored:
            logger.info("ingestion_drained", bookmarks_stored=stored)
        return stored

    async def process_task(self, task: BookmarkTask) -> bool:
        """Process one leased task and record the outcome; True if a bookmark was stored."""
        error: Optional[Exception] = None
        stored = False
        try:
            stored = await self.ingest(task)
        except Exception as e:
            error = e
            logger.error(
                "task_processing_failed",
                task_id=str(task.task_id),
                url=task.url,
                retries=task.retries or 0,
                error=str(e),
                error_type=type(e).__name__,
            )

        async with session_scope(self.session_factory) as db:
            status = await TaskQueue(db).complete(task, error, self.max_retries)

        if status == TaskStatus.FAIL:
            logger.warning("task_failed_permanently", task_id=str(task.task_id), reason=task.fail_reason)
        return stored

    async def ingest(self, task: BookmarkTask) -> bool:
        identity = self.processor.identify(task.url)

        async with session_scope(self.session_factory) as db:
            existing = await BookmarkStore(db).get_by_url_and_user(identity.url, task.user_id)
        if existing is not None:
            logger.info(
                "bookmark_already_exists",
                task_id=str(task.task_id),
                bookmark_id=existing.bookmark_id,
            )
            return False

        content = await self.processor.process(identity, task.user_id)

        await self.storage.save(
            task.user_id, content.bookmark_id, content.html_content, content.images
        )

        bookmark = Bookmark(
            bookmark_id=content.bookmark_id,
            user_id=task.user_id,
            url=content.url,
            domain=content.domain,
            title=content.title,
            tags=list(task.tags) if task.tags else None,
            summary=task.summary,
        )
        try:
            async with session_scope(self.session_factory) as db:
                await BookmarkStore(db).save(bookmark, content.text_content)
        except DuplicateBookmarkError:
            # Another worker stored it between our check and insert
            logger.info("bookmark_stored_concurrently", task_id=str(task.task_id))
            return False

        logger.info(
            "bookmark_stored",
            task_id=str(task.task_id),
            bookmark_id=content.bookmark_id,
            user_id=str(task.user_id),
        )
        return True
