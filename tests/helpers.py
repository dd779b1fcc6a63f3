"""
Shared helpers for unit tests.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from bookmark_hub.schemas.bookmark import BookmarkResponse
from bookmark_hub.schemas.rag import BookmarkChunkResponse, RagChunkMatch


def make_session_scope(db):
    """Stand-in for db.session.session_scope that always yields `db`."""

    @asynccontextmanager
    async def _session_scope(*args, **kwargs):
        yield db

    return _session_scope


def make_match(
    score: float,
    chunk_id: Optional[uuid.UUID] = None,
    text: str = "chunk text",
    user_id: Optional[uuid.UUID] = None,
) -> RagChunkMatch:
    """A retrieved chunk shaped like ChunkStore.search_similar_chunks results."""
    now = datetime.now(timezone.utc)
    user_id = user_id or uuid.uuid4()
    return RagChunkMatch(
        chunk=BookmarkChunkResponse(
            chunk_id=chunk_id or uuid.uuid4(),
            bookmark_id="bm1",
            user_id=user_id,
            chunk_text=text,
            chunk_index=0,
            created_at=now,
        ),
        bookmark=BookmarkResponse(
            bookmark_id="bm1",
            user_id=user_id,
            url="https://example.com/a",
            domain="example.com",
            title="Example",
            created_at=now,
        ),
        similarity_score=score,
    )
