"""
RAG Session Model

One row per question asked. The row is written *before* any LLM call with
answer = NULL, so a crash mid-query leaves a truthful "unanswered" record,
then updated exactly once with the answer and the ordered chunk ids that
supported it.
"""

import uuid
from typing import Optional

from sqlalchemy import Index, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from bookmark_hub.db.base import Base, TimestampMixin


class RagSession(Base, TimestampMixin):
    """Question, answer and supporting chunk references."""

    __tablename__ = "rag_session"

    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("uuid_generate_v4()"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    question: Mapped[str] = mapped_column(Text, nullable=False)

    answer: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="NULL until the query finished",
    )

    relevant_chunks: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)),
        nullable=False,
        default=list,
        server_default=text("'{}'"),
        comment="Chunk ids used for the answer, most similar first",
    )
    # No foreign key: chunks are replaced on re-embedding and the session
    # keeps the ids it was answered with

    __table_args__ = (
        Index("ix_rag_session_user", "user_id", text("created_at DESC")),
    )

    def __repr__(self) -> str:
        return f"RagSession(session_id={self.session_id}, user_id={self.user_id})"
