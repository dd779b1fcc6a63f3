"""
Bookmark Models

Models Included:
----------------
1. Bookmark - Extracted article owned by one user
2. BookmarkChunk - Embedded slice of a bookmark's text, the unit of RAG retrieval

Database Tables:
----------------
- bookmark: one row per (user, normalized URL)
- bookmark_chunk: one row per (bookmark, chunk index)

Relationships:
--------------
- Bookmark (1) ←→ (Many) BookmarkChunk, cascade delete through the
  composite foreign key (bookmark_id, user_id)

Enrichment columns (tags, summary) and the chunk set start empty and are filled
independently by the enrichment workers; "missing" is simply NULL / no rows.
"""

import uuid
from typing import Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    DDL,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, TSVECTOR, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookmark_hub.core.config import settings
from bookmark_hub.db.base import Base, TimestampMixin


class Bookmark(Base, TimestampMixin):
    """
    An extracted article saved by a user.

    Table: bookmark
    ---------------
    bookmark_id is the deterministic content id (MurmurHash3 of host + path,
    base64url encoded), so the same normalized URL always maps to the same id.
    Two users saving the same page get two rows with the same bookmark_id,
    hence the composite primary key.

    Full-Text Search:
    -----------------
    search_tokens is maintained by a trigger (see the DDL below the class):
    - title: weight A
    - text_content: weight B
    - tags: weight C
    """

    __tablename__ = "bookmark"

    # ================================
    # Identity
    # ================================

    bookmark_id: Mapped[str] = mapped_column(
        String(512),
        primary_key=True,
        comment="Deterministic content hash of the normalized URL",
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
    )

    # ================================
    # Content
    # ================================

    url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Normalized URL (scheme + host + path)",
    )

    domain: Mapped[str] = mapped_column(Text, nullable=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)

    text_content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        deferred=True,
        comment="Plain text extracted by readability, source for enrichment",
    )
    # deferred: listing bookmarks never needs the (large) article text

    # ================================
    # Enrichment
    # ================================

    tags: Mapped[Optional[list[str]]] = mapped_column(ARRAY(Text), nullable=True)
    # NULL or empty array = not tagged yet

    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # NULL = not summarized yet

    search_tokens = mapped_column(TSVECTOR, nullable=True, deferred=True)

    # ================================
    # Relationships
    # ================================

    chunks: Mapped[list["BookmarkChunk"]] = relationship(
        "BookmarkChunk",
        back_populates="bookmark",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BookmarkChunk.chunk_index",
        lazy="noload",
    )

    __table_args__ = (
        UniqueConstraint("url", "user_id", name="bookmark_url_user_unique"),
        Index("ix_bookmark_user_created_at", "user_id", text("created_at DESC")),
        Index("ix_bookmark_user_domain", "user_id", "domain"),
        Index("ix_bookmark_search_tokens", "search_tokens", postgresql_using="gin"),
        Index("ix_bookmark_tags", "tags", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return f"Bookmark(bookmark_id={self.bookmark_id}, user_id={self.user_id}, url='{self.url}')"


# Search vector trigger, created together with the table
_create_search_function = DDL("""
CREATE OR REPLACE FUNCTION update_bookmark_search_tokens()
RETURNS TRIGGER AS $$
BEGIN
    NEW.search_tokens := setweight(to_tsvector('english', coalesce(NEW.title, '')), 'A') ||
                         setweight(to_tsvector('english', coalesce(NEW.text_content, '')), 'B') ||
                         setweight(to_tsvector('english', coalesce(array_to_string(NEW.tags, ' '), '')), 'C');
    RETURN NEW;
END;
$$ LANGUAGE plpgsql
""")

_create_search_trigger = DDL("""
CREATE TRIGGER update_bookmark_search_tokens_trigger
    BEFORE INSERT OR UPDATE ON bookmark
    FOR EACH ROW EXECUTE FUNCTION update_bookmark_search_tokens()
""")

event.listen(Bookmark.__table__, "after_create", _create_search_function.execute_if(dialect="postgresql"))
event.listen(Bookmark.__table__, "after_create", _create_search_trigger.execute_if(dialect="postgresql"))


class BookmarkChunk(Base, TimestampMixin):
    """
    Embedded slice of a bookmark's text.

    Table: bookmark_chunk
    ---------------------
    The chunk set of a bookmark is only ever replaced as a whole
    (delete all, then insert) by the embedding worker, so chunk_index is
    always a dense 0..N-1 sequence for a given (bookmark_id, user_id).

    Vector Search:
    --------------
    embedding is compared with pgvector's cosine distance operator (<=>);
    similarity = 1 - distance. HNSW index with vector_cosine_ops (migration).
    """

    __tablename__ = "bookmark_chunk"

    chunk_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("uuid_generate_v4()"),
    )

    bookmark_id: Mapped[str] = mapped_column(String(512), nullable=False)

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    chunk_text: Mapped[str] = mapped_column(Text, nullable=False)

    chunk_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Order of this chunk within the bookmark (0-indexed)",
    )

    embedding = mapped_column(
        Vector(settings.EMBEDDING_DIMENSION),
        nullable=True,
        comment="Embedding vector for semantic search",
    )

    bookmark: Mapped["Bookmark"] = relationship("Bookmark", back_populates="chunks")

    __table_args__ = (
        ForeignKeyConstraint(
            ["bookmark_id", "user_id"],
            ["bookmark.bookmark_id", "bookmark.user_id"],
            ondelete="CASCADE",
            name="fk_bookmark_chunk_bookmark",
        ),
        UniqueConstraint(
            "bookmark_id",
            "user_id",
            "chunk_index",
            name="bookmark_chunk_unique",
        ),
        Index("ix_bookmark_chunk_bookmark", "bookmark_id", "user_id"),
    )

    def __repr__(self) -> str:
        preview = self.chunk_text[:50] + "..." if self.chunk_text else ""
        return (
            f"BookmarkChunk(chunk_id={self.chunk_id}, bookmark_id={self.bookmark_id}, "
            f"index={self.chunk_index}, text='{preview}')"
        )
