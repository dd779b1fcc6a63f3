"""
Pydantic schemas for RAG queries and history.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bookmark_hub.schemas.bookmark import BookmarkResponse


class RagQueryRequest(BaseModel):
    """Request schema for asking a question against the user's bookmarks."""

    question: str = Field(description="Free-form question", min_length=1, max_length=4000)
    max_chunks: Optional[int] = Field(default=None, ge=1, le=100)
    similarity_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class BookmarkChunkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    chunk_id: uuid.UUID
    bookmark_id: str
    user_id: uuid.UUID
    chunk_text: str
    chunk_index: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class RagChunkMatch(BaseModel):
    """A retrieved chunk with its bookmark, similarity and relevance verdict."""

    chunk: BookmarkChunkResponse
    bookmark: BookmarkResponse
    similarity_score: float = Field(description="1 - cosine distance")
    relevance_explanation: Optional[str] = None


class RagQueryResponse(BaseModel):
    session_id: uuid.UUID
    question: str
    answer: str
    relevant_chunks: List[RagChunkMatch]
    created_at: datetime


class RagHistoryRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    offset: Optional[int] = Field(default=None, ge=0)


class RagSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: uuid.UUID
    user_id: uuid.UUID
    question: str
    answer: Optional[str] = None
    relevant_chunks: List[uuid.UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None


class RagHistoryResponse(BaseModel):
    sessions: List[RagSessionResponse]
    total_count: int


class RagSessionDetailResponse(BaseModel):
    """One session with the chunks it was answered from, most similar first."""

    session: RagSessionResponse
    chunks: List[BookmarkChunkResponse]
