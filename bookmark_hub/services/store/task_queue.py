"""
Task Queue Store

The bookmark_task table used as a durable, at-least-once work queue.

Dequeue leases rows instead of removing them: inside one transaction it locks
up to `limit` eligible rows with FOR UPDATE SKIP LOCKED and pushes their
next_delivery forward by the lease window. Concurrent dequeuers skip each
other's locked rows, so no task is handed to two callers while its lease is
live. A worker that dies mid-task lets the lease expire and the task is
delivered again, which is why ingestion is idempotent (duplicate check by
normalized URL).
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_hub.core.config import settings
from bookmark_hub.core.logging import get_logger
from bookmark_hub.models.bookmark_task import BookmarkTask, TaskStatus
from bookmark_hub.schemas.bookmark import BookmarkTaskSearchRequest

logger = get_logger(__name__)


class TaskQueue:
    """
    Queue operations over bookmark_task.

    All methods run on the caller's session; the caller owns the transaction
    (see db.session.session_scope). Dequeue must be committed before the
    leased tasks are processed, otherwise the row locks are held for the
    whole processing time.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: uuid.UUID,
        url: str,
        tags: Optional[List[str]] = None,
    ) -> BookmarkTask:
        """Insert a PENDING task that is immediately eligible for dequeue."""
        task = BookmarkTask(
            task_id=uuid.uuid4(),
            user_id=user_id,
            url=url,
            status=TaskStatus.PENDING,
            tags=tags or None,
            next_delivery=datetime.now(timezone.utc),
        )
        self.db.add(task)
        await self.db.flush()
        await self.db.refresh(task)

        logger.info("task_created", task_id=str(task.task_id), user_id=str(user_id))
        return task

    async def dequeue(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        lease: Optional[timedelta] = None,
    ) -> List[BookmarkTask]:
        """
        Lease up to `limit` pending tasks whose next_delivery has passed.

        Args:
            now: Reference time (default: current UTC time)
            limit: Max tasks to lease (default: settings.TASK_DEQUEUE_LIMIT)
            lease: Lease window (default: settings.TASK_LEASE_SECONDS)

        Returns:
            Leased tasks, oldest delivery first
        """
        now = now or datetime.now(timezone.utc)
        limit = limit or settings.TASK_DEQUEUE_LIMIT
        lease = lease or timedelta(seconds=settings.TASK_LEASE_SECONDS)

        stmt = (
            select(BookmarkTask)
            .where(
                and_(
                    BookmarkTask.status == TaskStatus.PENDING,
                    BookmarkTask.next_delivery <= now,
                )
            )
            .order_by(BookmarkTask.next_delivery)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        tasks = list((await self.db.scalars(stmt)).all())

        lease_until = now + lease
        for task in tasks:
            task.next_delivery = lease_until
        await self.db.flush()

        if tasks:
            logger.info("tasks_leased", count=len(tasks), lease_until=lease_until.isoformat())
        return tasks

    async def complete(
        self,
        task: BookmarkTask,
        error: Optional[BaseException] = None,
        max_retries: Optional[int] = None,
    ) -> TaskStatus:
        """
        Record the outcome of processing a leased task.

        - no error: DONE
        - error, ceiling not reached: PENDING with retries + 1 (redelivered
          once the current lease expires)
        - error, ceiling reached: FAIL with fail_reason = str(error)

        Returns:
            The status written
        """
        max_retries = max_retries or settings.TASK_MAX_RETRIES
        now = datetime.now(timezone.utc)

        if error is None:
            values = {"status": TaskStatus.DONE, "updated_at": now}
        elif task.should_retry(max_retries):
            values = {
                "status": TaskStatus.PENDING,
                "retries": (task.retries or 0) + 1,
                "updated_at": now,
            }
        else:
            values = {
                "status": TaskStatus.FAIL,
                "retries": (task.retries or 0) + 1,
                "fail_reason": str(error) or type(error).__name__,
                "updated_at": now,
            }

        await self.db.execute(
            update(BookmarkTask)
            .where(BookmarkTask.task_id == task.task_id)
            .values(**values)
        )

        # Keep the in-memory object in line with the row
        for key, value in values.items():
            setattr(task, key, value)

        logger.info(
            "task_completed",
            task_id=str(task.task_id),
            status=str(values["status"]),
            retries=values.get("retries", task.retries),
        )
        return values["status"]

    async def search(
        self,
        user_id: uuid.UUID,
        request: Optional[BookmarkTaskSearchRequest] = None,
    ) -> List[BookmarkTask]:
        """List a user's tasks, filtered and keyset-paginated by task_id."""
        request = request or BookmarkTaskSearchRequest()

        stmt = select(BookmarkTask).where(BookmarkTask.user_id == user_id)

        if request.url:
            # Substring match; % and _ in the filter are literal
            stmt = stmt.where(BookmarkTask.url.contains(request.url, autoescape=True))
        if request.tags:
            stmt = stmt.where(BookmarkTask.tags.contains(request.tags))
        if request.status is not None:
            stmt = stmt.where(BookmarkTask.status == request.status)
        if request.last_task_id is not None:
            stmt = stmt.where(BookmarkTask.task_id > request.last_task_id)

        if request.from_created_at and request.to_created_at:
            stmt = stmt.where(
                BookmarkTask.created_at.between(request.from_created_at, request.to_created_at)
            )
        elif request.from_created_at:
            stmt = stmt.where(BookmarkTask.created_at > request.from_created_at)
        elif request.to_created_at:
            stmt = stmt.where(BookmarkTask.created_at < request.to_created_at)

        stmt = stmt.order_by(BookmarkTask.task_id).limit(
            request.page_size or settings.TASK_SEARCH_PAGE_SIZE
        )
        return list((await self.db.scalars(stmt)).all())
