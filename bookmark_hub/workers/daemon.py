"""
Worker daemon.

One asyncio process running every worker loop:

    python -m bookmark_hub.workers.daemon

- ingestion: wakes on `new_task` (fed from Redis pub/sub) or every
  WORKER_IDLE_SECONDS, drains the task queue, then signals `new_bookmark`
  locally and on Redis when bookmarks were stored
- tag / summary / embedding (only when OLLAMA_TEXT_MODEL is set): wake on
  `new_bookmark` or the idle timer, drain their cursor
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

import httpx

from bookmark_hub.core.config import settings
from bookmark_hub.core.logging import setup_logging
from bookmark_hub.db.redis import check_redis_health, close_redis, init_redis
from bookmark_hub.db.session import check_db_health, close_db
from bookmark_hub.services.llm.ollama import close_ollama_client, get_ollama_client
from bookmark_hub.services.processors.content_processor import ContentProcessor
from bookmark_hub.services.processors.static_storage import StaticStorage
from bookmark_hub.workers.enrichment import build_enrichment_workers
from bookmark_hub.workers.ingestion import IngestionWorker
from bookmark_hub.workers.signals import WakeupSignal, bridge_redis_channel, publish_wakeup

logger = logging.getLogger(__name__)


async def worker_loop(
    name: str,
    drain: Callable[[], Awaitable[int]],
    wakeup: WakeupSignal,
    idle_seconds: float,
    on_progress: Optional[Callable[[], Awaitable[None]]] = None,
) -> None:
    """
    Drain, then sleep until woken or the idle timer fires. Runs until cancelled.

    A failing drain pass is logged; the loop carries on with the next wake-up.
    """
    seen = wakeup.version
    logger.info(f"[{name}] Worker loop started (idle {idle_seconds}s)")

    while True:
        try:
            processed = await drain()
            if processed and on_progress is not None:
                await on_progress()
        except Exception as e:
            logger.exception(f"[{name}] Drain pass failed: {e}")

        seen = await wakeup.wait(seen, idle_seconds)


async def check_dependencies() -> bool:
    """Log whether Postgres and Redis answer. Never raises."""
    database_ok = await check_db_health()
    redis_ok = await check_redis_health()

    if database_ok and redis_ok:
        logger.info("Database and Redis reachable")
    else:
        logger.warning(f"Startup health check: database={database_ok} redis={redis_ok}")
    return database_ok and redis_ok


async def run_daemon() -> None:
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} worker daemon ({settings.APP_ENV})")
    await check_dependencies()

    redis = await init_redis()
    new_task = WakeupSignal("new_task")
    new_bookmark = WakeupSignal("new_bookmark")
    idle = settings.WORKER_IDLE_SECONDS

    async def bookmarks_stored() -> None:
        await new_bookmark.notify()
        await publish_wakeup(redis, settings.REDIS_NEW_BOOKMARK_CHANNEL)

    async with httpx.AsyncClient(
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        headers={"User-Agent": settings.USER_AGENT},
    ) as http:
        ingestion = IngestionWorker(ContentProcessor(http), StaticStorage())

        loops: List[Awaitable[None]] = [
            bridge_redis_channel(redis, settings.REDIS_NEW_TASK_CHANNEL, new_task),
            worker_loop("ingestion", ingestion.drain, new_task, idle, bookmarks_stored),
        ]

        if settings.ai_enabled:
            for worker in build_enrichment_workers(get_ollama_client()):
                loops.append(worker_loop(worker.name, worker.drain, new_bookmark, idle))
        else:
            logger.warning("OLLAMA_TEXT_MODEL not set, enrichment workers disabled")

        try:
            await asyncio.gather(*loops)
        finally:
            await close_ollama_client()
            await close_redis()
            await close_db()


def main() -> None:
    try:
        asyncio.run(run_daemon())
    except KeyboardInterrupt:
        logger.info("Worker daemon stopped")


if __name__ == "__main__":
    main()
