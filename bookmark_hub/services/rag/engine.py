"""
RAG Engine

Answers a free-form question from the user's embedded bookmarks.

Pipeline:
---------
1. Persist an unanswered RagSession (a crash leaves a truthful record)
2. Expand the question into paraphrases (fail-open: original only)
3. Embed every variation and vector-search the user's chunks
   (2 x max_chunks candidates each, similarity >= threshold)
4. Merge, sort by similarity, drop duplicate chunk ids, keep max_chunks
5. Ask the LLM whether each chunk is relevant; drop the irrelevant ones,
   keep a chunk whose assessment failed (fail-open)
6. Re-sort by similarity
7. No chunks left: canned answer, no LLM call. Otherwise synthesize an answer
8. Store answer and ordered chunk ids on the session
"""

import asyncio
import logging
import uuid
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookmark_hub.core.config import settings
from bookmark_hub.db.session import AsyncSessionLocal, session_scope
from bookmark_hub.schemas.rag import RagChunkMatch, RagQueryResponse
from bookmark_hub.services.llm.ollama import OllamaClient
from bookmark_hub.services.store.chunks import ChunkStore
from bookmark_hub.services.store.rag_sessions import RagSessionStore

logger = logging.getLogger(__name__)

NO_RELEVANT_INFORMATION_ANSWER = (
    "I couldn't find any relevant information in your bookmarks to answer this question."
)
RELEVANCE_UNKNOWN = "Could not assess relevance"


def merge_candidates(candidates: List[RagChunkMatch], max_chunks: int) -> List[RagChunkMatch]:
    """Best score first, one entry per chunk id, at most max_chunks entries."""
    ranked = sorted(candidates, key=lambda match: match.similarity_score, reverse=True)

    seen = set()
    unique = []
    for match in ranked:
        if match.chunk.chunk_id in seen:
            continue
        seen.add(match.chunk.chunk_id)
        unique.append(match)

    return unique[:max_chunks]


class RagEngine:
    """
    Question answering over bookmark chunks.

    Usage:
    ------
    engine = RagEngine(get_ollama_client())
    response = await engine.process_query(user_id, "How does MVCC work?")
    """

    def __init__(
        self,
        llm: OllamaClient,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ):
        self.llm = llm
        self.session_factory = session_factory

    async def process_query(
        self,
        user_id: uuid.UUID,
        question: str,
        max_chunks: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
    ) -> RagQueryResponse:
        max_chunks = max_chunks or settings.RAG_MAX_CHUNKS
        threshold = (
            settings.RAG_SIMILARITY_THRESHOLD
            if similarity_threshold is None
            else similarity_threshold
        )

        # Step 1: Session first, committed before any LLM call
        async with session_scope(self.session_factory) as db:
            session = await RagSessionStore(db).create(user_id, question)
        logger.info(f"RAG session {session.session_id} started for user {user_id}")

        # Step 2-4: Expand, retrieve, merge
        variations = await self.expand_question(question)
        candidates: List[RagChunkMatch] = []
        for variation in variations:
            candidates.extend(
                await self.retrieve(user_id, variation, max_chunks * 2, threshold)
            )
        top_chunks = merge_candidates(candidates, max_chunks)
        logger.info(
            f"Retrieved {len(candidates)} candidates from {len(variations)} variations, "
            f"{len(top_chunks)} after dedup"
        )

        # Step 5-6: Relevance filter
        relevant = await self.filter_relevant(question, top_chunks)
        relevant.sort(key=lambda match: match.similarity_score, reverse=True)

        # Step 7: Answer
        if not relevant:
            answer = NO_RELEVANT_INFORMATION_ANSWER
        else:
            answer = await self.llm.answer_with_context(
                question, [match.chunk.chunk_text for match in relevant]
            )

        # Step 8: Close the session
        chunk_ids = [match.chunk.chunk_id for match in relevant]
        async with session_scope(self.session_factory) as db:
            await RagSessionStore(db).update(
                session.session_id, user_id, answer, chunk_ids
            )

        logger.info(f"RAG session {session.session_id} answered with {len(chunk_ids)} chunks")

        return RagQueryResponse(
            session_id=session.session_id,
            question=question,
            answer=answer,
            relevant_chunks=relevant,
            created_at=session.created_at,
        )

    async def expand_question(self, question: str) -> List[str]:
        """Original question followed by its paraphrases."""
        try:
            paraphrases = await self.llm.similar_questions(question)
        except Exception as e:
            logger.warning(f"Question expansion failed, using the original question only: {e}")
            return [question]

        variations = [question]
        for paraphrase in paraphrases:
            paraphrase = paraphrase.strip()
            if paraphrase and paraphrase not in variations:
                variations.append(paraphrase)
        return variations

    async def retrieve(
        self,
        user_id: uuid.UUID,
        text: str,
        limit: int,
        threshold: float,
    ) -> List[RagChunkMatch]:
        embedding = await self.llm.embed(text)
        async with session_scope(self.session_factory) as db:
            return await ChunkStore(db).search_similar_chunks(user_id, embedding, limit, threshold)

    async def filter_relevant(
        self, question: str, matches: List[RagChunkMatch]
    ) -> List[RagChunkMatch]:
        """
        Keep chunks the LLM judges relevant, plus those it failed to judge.

        Assessments run concurrently; one failing does not affect the others.
        """
        verdicts = await asyncio.gather(
            *(self.llm.assess_relevance(question, match.chunk.chunk_text) for match in matches),
            return_exceptions=True,
        )

        kept = []
        for match, verdict in zip(matches, verdicts):
            if isinstance(verdict, BaseException):
                logger.warning(
                    f"Relevance check failed for chunk {match.chunk.chunk_id}, keeping it: {verdict}"
                )
                kept.append(match.model_copy(update={"relevance_explanation": RELEVANCE_UNKNOWN}))
            elif verdict.relevant:
                kept.append(match.model_copy(update={"relevance_explanation": verdict.explanation}))
            else:
                logger.debug(f"Chunk {match.chunk.chunk_id} judged irrelevant: {verdict.explanation}")
        return kept
