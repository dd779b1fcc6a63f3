"""
Celery tasks for the enrichment workers (tags, summary, embeddings).

Every task is a no-op when no text model is configured.
"""

import logging
from typing import Type

from bookmark_hub.core.config import settings
from bookmark_hub.services.llm.ollama import OllamaClient
from bookmark_hub.tasks.runtime import run_async, task_session_factory
from bookmark_hub.workers.celery_app import celery_app
from bookmark_hub.workers.enrichment import (
    EmbeddingWorker,
    EnrichmentWorker,
    SummaryWorker,
    TagWorker,
)

logger = logging.getLogger(__name__)


async def _drain(worker_class: Type[EnrichmentWorker]) -> int:
    # A client per task: its connection pool belongs to this task's event loop
    llm = OllamaClient()
    try:
        async with task_session_factory() as session_factory:
            worker = worker_class(llm, session_factory=session_factory)
            return await worker.drain()
    finally:
        await llm.close()


def _run(worker_class: Type[EnrichmentWorker]) -> dict:
    if not settings.ai_enabled:
        logger.info(f"[{worker_class.name}] AI disabled, skipping")
        return {'enriched': 0, 'skipped': True}

    if worker_class.name not in settings.enrichment_workers_list:
        logger.info(f"[{worker_class.name}] Not in ENRICHMENT_WORKERS, skipping")
        return {'enriched': 0, 'skipped': True}

    enriched = run_async(_drain(worker_class))
    return {'enriched': enriched, 'skipped': False}


@celery_app.task(name='enrichment.tag_bookmarks')
def tag_bookmarks() -> dict:
    return _run(TagWorker)


@celery_app.task(name='enrichment.summarize_bookmarks')
def summarize_bookmarks() -> dict:
    return _run(SummaryWorker)


@celery_app.task(name='enrichment.embed_bookmarks')
def embed_bookmarks() -> dict:
    return _run(EmbeddingWorker)
