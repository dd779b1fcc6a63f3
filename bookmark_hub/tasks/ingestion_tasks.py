"""
Celery task draining the bookmark task queue.
"""

import logging

import httpx

from bookmark_hub.core.config import settings
from bookmark_hub.services.processors.content_processor import ContentProcessor
from bookmark_hub.services.processors.static_storage import StaticStorage
from bookmark_hub.tasks.runtime import run_async, task_session_factory
from bookmark_hub.workers.celery_app import celery_app
from bookmark_hub.workers.ingestion import IngestionWorker

logger = logging.getLogger(__name__)


async def _drain_queue() -> int:
    async with task_session_factory() as session_factory:
        async with httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            headers={"User-Agent": settings.USER_AGENT},
        ) as http:
            worker = IngestionWorker(
                ContentProcessor(http),
                StaticStorage(),
                session_factory=session_factory,
            )
            return await worker.drain()


@celery_app.task(name='ingestion.drain_queue', ignore_result=False)
def drain_queue() -> dict:
    """
    Drain the task queue, then kick the enrichment tasks if anything was stored.

    Returns:
        {'bookmarks_stored': int}
    """
    stored = run_async(_drain_queue())
    logger.info(f"Queue drained, {stored} bookmarks stored")

    if stored and settings.ai_enabled:
        from bookmark_hub.tasks.enrichment_tasks import (
            embed_bookmarks,
            summarize_bookmarks,
            tag_bookmarks,
        )

        tag_bookmarks.delay()
        summarize_bookmarks.delay()
        embed_bookmarks.delay()

    return {'bookmarks_stored': stored}
