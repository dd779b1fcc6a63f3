"""
RAG Session Store

One row per question. Created unanswered before any LLM call and updated once
with the answer and the ordered ids of the supporting chunks.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_hub.models.rag import RagSession


class RagSessionNotFoundError(Exception):
    """Raised when a RAG session does not exist for the given user."""
    pass


class RagSessionStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: uuid.UUID, question: str) -> RagSession:
        session = RagSession(
            session_id=uuid.uuid4(),
            user_id=user_id,
            question=question,
            answer=None,
            relevant_chunks=[],
        )
        self.db.add(session)
        await self.db.flush()
        await self.db.refresh(session)
        return session

    async def update(
        self,
        session_id: uuid.UUID,
        user_id: uuid.UUID,
        answer: str,
        relevant_chunks: Sequence[uuid.UUID],
    ) -> None:
        await self.db.execute(
            update(RagSession)
            .where(
                RagSession.session_id == session_id,
                RagSession.user_id == user_id,
            )
            .values(
                answer=answer,
                relevant_chunks=list(relevant_chunks),
                updated_at=datetime.now(timezone.utc),
            )
        )

    async def get(self, session_id: uuid.UUID, user_id: uuid.UUID) -> RagSession:
        """
        Raises:
            RagSessionNotFoundError: If the user has no such session
        """
        result = await self.db.scalars(
            select(RagSession).where(
                RagSession.session_id == session_id,
                RagSession.user_id == user_id,
            )
        )
        session = result.first()
        if session is None:
            raise RagSessionNotFoundError(f"RAG session {session_id} not found")
        return session

    async def history(
        self, user_id: uuid.UUID, limit: int, offset: int = 0
    ) -> Tuple[List[RagSession], int]:
        """
        A page of the user's sessions, newest first.

        Returns:
            (sessions, total_count) where total_count ignores paging
        """
        result = await self.db.scalars(
            select(RagSession)
            .where(RagSession.user_id == user_id)
            .order_by(RagSession.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await self.db.scalar(
            select(func.count()).select_from(RagSession).where(RagSession.user_id == user_id)
        )
        return list(result.all()), total or 0
