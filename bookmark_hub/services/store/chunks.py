"""
Chunk Store

Embedded bookmark chunks and the vector similarity search used by RAG.

A bookmark's chunk set is only ever replaced as a whole, so readers never see
a mix of chunks from two different embedding runs.
"""

import uuid
from typing import List, Sequence

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_hub.core.logging import get_logger
from bookmark_hub.models.bookmark import Bookmark, BookmarkChunk
from bookmark_hub.schemas.bookmark import BookmarkResponse
from bookmark_hub.schemas.rag import BookmarkChunkResponse, RagChunkMatch
from bookmark_hub.services.store.bookmarks import has_min_text_length

logger = get_logger(__name__)


class ChunkMismatchError(Exception):
    """Raised when chunk texts and embeddings differ in length."""
    pass


_chunk_belongs_to_bookmark = and_(
    BookmarkChunk.bookmark_id == Bookmark.bookmark_id,
    BookmarkChunk.user_id == Bookmark.user_id,
)


class ChunkStore:
    """Chunk persistence and nearest-neighbour search."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def replace_chunks(
        self,
        bookmark_id: str,
        user_id: uuid.UUID,
        texts: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> List[BookmarkChunk]:
        """
        Replace every chunk of a bookmark.

        Delete and insert run in the caller's transaction, so either the old
        set or the complete new set is visible, never a mix.

        Raises:
            ChunkMismatchError: len(texts) != len(embeddings)
        """
        if len(texts) != len(embeddings):
            raise ChunkMismatchError(
                f"Got {len(texts)} chunk texts but {len(embeddings)} embeddings"
            )

        await self.db.execute(
            delete(BookmarkChunk).where(
                BookmarkChunk.bookmark_id == bookmark_id,
                BookmarkChunk.user_id == user_id,
            )
        )

        chunks = [
            BookmarkChunk(
                chunk_id=uuid.uuid4(),
                bookmark_id=bookmark_id,
                user_id=user_id,
                chunk_text=text,
                chunk_index=index,
                embedding=list(embedding),
            )
            for index, (text, embedding) in enumerate(zip(texts, embeddings))
        ]
        self.db.add_all(chunks)
        await self.db.flush()

        logger.info("chunks_replaced", bookmark_id=bookmark_id, count=len(chunks))
        return chunks

    async def search_similar_chunks(
        self,
        user_id: uuid.UUID,
        embedding: Sequence[float],
        limit: int,
        threshold: float,
    ) -> List[RagChunkMatch]:
        """
        Nearest chunks of one user by cosine distance.

        similarity = 1 - cosine_distance; only chunks with
        similarity >= threshold are returned, closest first.
        """
        distance = BookmarkChunk.embedding.cosine_distance(list(embedding))
        similarity = (1 - distance).label("similarity")

        stmt = (
            select(BookmarkChunk, Bookmark, similarity)
            .join(Bookmark, _chunk_belongs_to_bookmark)
            .where(
                BookmarkChunk.user_id == user_id,
                BookmarkChunk.embedding.is_not(None),
                (1 - distance) >= threshold,
            )
            .order_by(distance)
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).all()

        return [
            RagChunkMatch(
                chunk=BookmarkChunkResponse.model_validate(chunk),
                bookmark=BookmarkResponse.model_validate(bookmark),
                similarity_score=float(score),
            )
            for chunk, bookmark, score in rows
        ]

    async def get_chunks_by_ids(
        self, user_id: uuid.UUID, chunk_ids: Sequence[uuid.UUID]
    ) -> List[BookmarkChunk]:
        if not chunk_ids:
            return []
        result = await self.db.scalars(
            select(BookmarkChunk).where(
                BookmarkChunk.user_id == user_id,
                BookmarkChunk.chunk_id.in_(list(chunk_ids)),
            )
        )
        by_id = {chunk.chunk_id: chunk for chunk in result.all()}
        # Caller order; ids of since-replaced chunks are skipped
        return [by_id[chunk_id] for chunk_id in chunk_ids if chunk_id in by_id]

    async def bookmarks_without_chunks(self, limit: int, min_text_length: int) -> List[Bookmark]:
        """Random sample of bookmarks that have no chunks yet."""
        result = await self.db.scalars(
            select(Bookmark)
            .outerjoin(BookmarkChunk, _chunk_belongs_to_bookmark)
            .where(
                BookmarkChunk.chunk_id.is_(None),
                has_min_text_length(min_text_length),
            )
            .order_by(func.random())
            .limit(limit)
        )
        return list(result.all())
