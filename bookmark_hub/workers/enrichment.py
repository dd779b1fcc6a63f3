"""
Enrichment Workers

Three workers share one loop and differ only in what they produce:

- TagWorker: tags per token window, union, one consolidation call
- SummaryWorker: one sentence per window, one consolidation call
- EmbeddingWorker: one embedding per window, stored as the bookmark's chunks

A bookmark is picked up while its enrichment is missing (NULL/empty tags, NULL
summary, no chunks). Failures are logged and the bookmark stays missing, so it
is tried again on a later pass. There is no retry ceiling.

Drain:
------
Batches are fetched until one makes no progress (zero successes). Bookmarks
that keep failing therefore cannot keep the loop spinning; they wait for the
next wake-up or timer tick.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookmark_hub.core.config import settings
from bookmark_hub.db.session import AsyncSessionLocal, session_scope
from bookmark_hub.models.bookmark import Bookmark
from bookmark_hub.schemas.bookmark import TagOperation
from bookmark_hub.services.llm.ollama import OllamaClient
from bookmark_hub.services.processors.tokenizer import windowed_chunks
from bookmark_hub.services.store.bookmarks import BookmarkStore
from bookmark_hub.services.store.chunks import ChunkStore

logger = logging.getLogger(__name__)


class EnrichmentWorker:
    """Base class: subclasses implement next_batch() and enrich()."""

    name = "enrichment"
    default_batch_size = 10

    def __init__(
        self,
        llm: OllamaClient,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        batch_size: Optional[int] = None,
        min_text_length: Optional[int] = None,
    ):
        self.llm = llm
        self.session_factory = session_factory
        self.batch_size = batch_size or self.default_batch_size
        self.min_text_length = (
            settings.ENRICHMENT_MIN_TEXT_LENGTH if min_text_length is None else min_text_length
        )

    async def next_batch(self, db: AsyncSession) -> List[Bookmark]:
        raise NotImplementedError

    async def enrich(self, bookmark: Bookmark, windows: List[str]) -> bool:
        """Produce and store the enrichment; False if nothing was written."""
        raise NotImplementedError

    async def drain(self) -> int:
        """Run batches while they make progress; returns bookmarks enriched."""
        total = 0
        while True:
            enriched = await self.run_batch()
            total += enriched
            if enriched == 0:
                break

        if total:
            logger.info(f"[{self.name}] Enriched {total} bookmarks")
        return total

    async def run_batch(self) -> int:
        async with session_scope(self.session_factory) as db:
            batch = await self.next_batch(db)

        enriched = 0
        for bookmark in batch:
            try:
                if await self.process_bookmark(bookmark):
                    enriched += 1
            except Exception as e:
                logger.error(
                    f"[{self.name}] Failed to enrich bookmark {bookmark.bookmark_id} "
                    f"(user {bookmark.user_id}): {type(e).__name__}: {e}"
                )
        return enriched

    async def process_bookmark(self, bookmark: Bookmark) -> bool:
        async with session_scope(self.session_factory) as db:
            text = await BookmarkStore(db).get_text_content(bookmark.user_id, bookmark.bookmark_id)

        if not text or len(text) < self.min_text_length:
            logger.info(f"[{self.name}] Skipping {bookmark.bookmark_id}: text too short")
            return False

        windows = windowed_chunks(text)
        logger.debug(f"[{self.name}] {bookmark.bookmark_id}: {len(windows)} windows")
        return await self.enrich(bookmark, windows)


class TagWorker(EnrichmentWorker):

    name = "tag"

    def __init__(self, llm: OllamaClient, **kwargs):
        kwargs.setdefault("batch_size", settings.TAG_BATCH_SIZE)
        super().__init__(llm, **kwargs)

    async def next_batch(self, db: AsyncSession) -> List[Bookmark]:
        return await BookmarkStore(db).untagged(self.batch_size, self.min_text_length)

    async def enrich(self, bookmark: Bookmark, windows: List[str]) -> bool:
        found = set()
        for window in windows:
            found.update(tag.strip() for tag in await self.llm.tags(window) if tag.strip())

        if not found:
            logger.info(f"[tag] No tags found for {bookmark.bookmark_id}")
            return False

        consolidated = await self.llm.consolidate_tags(sorted(found))
        tags = sorted({tag.strip() for tag in consolidated if tag.strip()})
        if not tags:
            logger.info(f"[tag] Consolidation returned no tags for {bookmark.bookmark_id}")
            return False

        async with session_scope(self.session_factory) as db:
            await BookmarkStore(db).update_tags(
                bookmark.user_id, bookmark.bookmark_id, tags, TagOperation.SET
            )
        logger.info(f"[tag] {bookmark.bookmark_id}: {tags}")
        return True


class SummaryWorker(EnrichmentWorker):

    name = "summary"

    def __init__(self, llm: OllamaClient, **kwargs):
        kwargs.setdefault("batch_size", settings.SUMMARY_BATCH_SIZE)
        super().__init__(llm, **kwargs)

    async def next_batch(self, db: AsyncSession) -> List[Bookmark]:
        return await BookmarkStore(db).without_summary(self.batch_size, self.min_text_length)

    async def enrich(self, bookmark: Bookmark, windows: List[str]) -> bool:
        summaries = []
        for window in windows:
            summary = (await self.llm.summary(window)).strip()
            if summary:
                summaries.append(summary)

        if not summaries:
            logger.info(f"[summary] No summary produced for {bookmark.bookmark_id}")
            return False

        summary = (await self.llm.consolidate_summary(summaries)).strip()
        if not summary:
            return False

        async with session_scope(self.session_factory) as db:
            await BookmarkStore(db).update_summary(bookmark.user_id, bookmark.bookmark_id, summary)
        return True


class EmbeddingWorker(EnrichmentWorker):

    name = "embedding"

    def __init__(self, llm: OllamaClient, **kwargs):
        kwargs.setdefault("batch_size", settings.EMBEDDING_BATCH_SIZE)
        super().__init__(llm, **kwargs)

    async def next_batch(self, db: AsyncSession) -> List[Bookmark]:
        return await ChunkStore(db).bookmarks_without_chunks(self.batch_size, self.min_text_length)

    async def enrich(self, bookmark: Bookmark, windows: List[str]) -> bool:
        embeddings = [await self.llm.embed(window) for window in windows]

        async with session_scope(self.session_factory) as db:
            await ChunkStore(db).replace_chunks(
                bookmark.bookmark_id, bookmark.user_id, windows, embeddings
            )
        return True


ENRICHMENT_WORKERS = {
    TagWorker.name: TagWorker,
    SummaryWorker.name: SummaryWorker,
    EmbeddingWorker.name: EmbeddingWorker,
}


def build_enrichment_workers(
    llm: OllamaClient,
    names: Optional[List[str]] = None,
    **kwargs,
) -> List[EnrichmentWorker]:
    """Instantiate the configured workers (default: settings.ENRICHMENT_WORKERS)."""
    names = names if names is not None else settings.enrichment_workers_list
    return [ENRICHMENT_WORKERS[name](llm, **kwargs) for name in names]
