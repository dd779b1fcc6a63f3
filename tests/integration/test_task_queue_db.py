"""
Integration tests for the task queue.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookmark_hub.models.bookmark_task import BookmarkTask, TaskStatus
from bookmark_hub.schemas.bookmark import BookmarkTaskSearchRequest
from bookmark_hub.services.store.task_queue import TaskQueue


pytestmark = pytest.mark.integration


# ================================
# Dequeue
# ================================

@pytest.mark.asyncio
async def test_concurrent_dequeue_never_hands_out_the_same_task(test_engine, user_id):
    """Two open transactions dequeue disjoint sets thanks to SKIP LOCKED."""
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as db:
        for i in range(6):
            await TaskQueue(db).create(user_id, f"https://example.com/{i}")
        await db.commit()

    now = datetime.now(timezone.utc) + timedelta(seconds=1)
    async with factory() as first, factory() as second:
        leased_first = await TaskQueue(first).dequeue(now=now, limit=3)
        # first still holds its row locks here
        leased_second = await TaskQueue(second).dequeue(now=now, limit=10)
        await first.commit()
        await second.commit()

    first_ids = {task.task_id for task in leased_first}
    second_ids = {task.task_id for task in leased_second}
    assert len(first_ids) == 3
    assert len(second_ids) == 3
    assert first_ids.isdisjoint(second_ids)


@pytest.mark.asyncio
async def test_concurrent_dequeue_with_gather(test_engine, user_id):
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as db:
        for i in range(10):
            await TaskQueue(db).create(user_id, f"https://example.com/{i}")
        await db.commit()

    now = datetime.now(timezone.utc) + timedelta(seconds=1)

    async def lease():
        async with factory() as db:
            tasks = await TaskQueue(db).dequeue(now=now, limit=4)
            await db.commit()
            return [task.task_id for task in tasks]

    results = await asyncio.gather(*(lease() for _ in range(4)))

    leased = [task_id for batch in results for task_id in batch]
    assert len(leased) == len(set(leased))


@pytest.mark.asyncio
async def test_lease_hides_task_until_it_expires(db_session, user_id):
    queue = TaskQueue(db_session)
    task = await queue.create(user_id, "https://example.com/a")
    now = datetime.now(timezone.utc) + timedelta(seconds=1)

    leased = await queue.dequeue(now=now, limit=10, lease=timedelta(seconds=60))
    assert [t.task_id for t in leased] == [task.task_id]

    assert await queue.dequeue(now=now + timedelta(seconds=30), limit=10) == []

    redelivered = await queue.dequeue(now=now + timedelta(seconds=61), limit=10)
    assert [t.task_id for t in redelivered] == [task.task_id]


@pytest.mark.asyncio
async def test_only_pending_tasks_are_dequeued(db_session, user_id):
    queue = TaskQueue(db_session)
    done = await queue.create(user_id, "https://example.com/done")
    failed = await queue.create(user_id, "https://example.com/fail")
    pending = await queue.create(user_id, "https://example.com/pending")
    await queue.complete(done)
    await db_session.execute(
        update(BookmarkTask).where(BookmarkTask.task_id == failed.task_id).values(status=TaskStatus.FAIL)
    )

    leased = await queue.dequeue(now=datetime.now(timezone.utc) + timedelta(seconds=1), limit=10)

    assert [t.task_id for t in leased] == [pending.task_id]


@pytest.mark.asyncio
async def test_dequeue_orders_by_next_delivery(db_session, user_id):
    queue = TaskQueue(db_session)
    now = datetime.now(timezone.utc)
    later = await queue.create(user_id, "https://example.com/later")
    earlier = await queue.create(user_id, "https://example.com/earlier")
    later.next_delivery = now - timedelta(minutes=1)
    earlier.next_delivery = now - timedelta(minutes=5)
    await db_session.flush()

    leased = await queue.dequeue(now=now, limit=1)

    assert [t.task_id for t in leased] == [earlier.task_id]


# ================================
# Complete
# ================================

@pytest.mark.asyncio
async def test_retry_ceiling_persists_fail(db_session, user_id):
    queue = TaskQueue(db_session)
    task = await queue.create(user_id, "https://example.com/broken")

    for _ in range(5):
        await queue.complete(task, RuntimeError("HTTP 503"), max_retries=5)

    await db_session.refresh(task)
    assert task.status == TaskStatus.FAIL
    assert task.retries == 5
    assert task.fail_reason == "HTTP 503"


# ================================
# Search
# ================================

@pytest.mark.asyncio
async def test_search_filters(db_session, user_id):
    queue = TaskQueue(db_session)
    tagged = await queue.create(user_id, "https://blog.example.com/post", ["db", "postgres"])
    await queue.create(user_id, "https://news.example.org/item", ["db"])
    await queue.create(uuid.uuid4(), "https://blog.example.com/other-user", ["db", "postgres"])
    await queue.complete(tagged)

    by_url = await queue.search(user_id, BookmarkTaskSearchRequest(url="blog.example"))
    by_tags = await queue.search(user_id, BookmarkTaskSearchRequest(tags=["db", "postgres"]))
    by_status = await queue.search(user_id, BookmarkTaskSearchRequest(status=TaskStatus.DONE))

    assert [t.task_id for t in by_url] == [tagged.task_id]
    assert [t.task_id for t in by_tags] == [tagged.task_id]
    assert [t.task_id for t in by_status] == [tagged.task_id]


@pytest.mark.asyncio
async def test_search_keyset_pagination(db_session, user_id):
    queue = TaskQueue(db_session)
    for i in range(5):
        await queue.create(user_id, f"https://example.com/{i}")

    first_page = await queue.search(user_id, BookmarkTaskSearchRequest(page_size=2))
    second_page = await queue.search(
        user_id,
        BookmarkTaskSearchRequest(page_size=2, last_task_id=first_page[-1].task_id),
    )
    everything = await queue.search(user_id, BookmarkTaskSearchRequest(page_size=10))

    assert [t.task_id for t in first_page + second_page] == [t.task_id for t in everything[:4]]


@pytest.mark.asyncio
async def test_search_created_at_bounds(db_session, user_id):
    queue = TaskQueue(db_session)
    task = await queue.create(user_id, "https://example.com/a")
    created = task.created_at

    after = await queue.search(user_id, BookmarkTaskSearchRequest(from_created_at=created))
    before = await queue.search(user_id, BookmarkTaskSearchRequest(to_created_at=created))
    open_from = await queue.search(
        user_id, BookmarkTaskSearchRequest(from_created_at=created - timedelta(seconds=1))
    )
    open_to = await queue.search(
        user_id, BookmarkTaskSearchRequest(to_created_at=created + timedelta(seconds=1))
    )
    inclusive = await queue.search(
        user_id,
        BookmarkTaskSearchRequest(from_created_at=created, to_created_at=created),
    )

    assert after == []
    assert before == []
    assert [t.task_id for t in open_from] == [task.task_id]
    assert [t.task_id for t in open_to] == [task.task_id]
    assert [t.task_id for t in inclusive] == [task.task_id]


@pytest.mark.asyncio
async def test_search_url_wildcards_are_literal(db_session, user_id):
    queue = TaskQueue(db_session)
    literal = await queue.create(user_id, "https://example.com/100%_off")
    await queue.create(user_id, "https://example.com/100-xoff")

    by_percent = await queue.search(user_id, BookmarkTaskSearchRequest(url="100%_off"))
    by_underscore = await queue.search(user_id, BookmarkTaskSearchRequest(url="_off"))

    assert [t.task_id for t in by_percent] == [literal.task_id]
    assert [t.task_id for t in by_underscore] == [literal.task_id]
