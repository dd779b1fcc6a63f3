"""
Bookmark Store

Reads and writes on the bookmark table, including the "missing enrichment"
cursors polled by the tag and summary workers.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Text, func, literal, or_, select, update
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_hub.models.bookmark import Bookmark
from bookmark_hub.schemas.bookmark import TagCount, TagOperation

logger = logging.getLogger(__name__)

# Same (id, user) or same (url, user): both mean the bookmark already exists
DUPLICATE_CONSTRAINTS = ("pk_bookmark", "bookmark_url_user_unique")


# ========================================
# Custom Exceptions
# ========================================


class BookmarkNotFoundError(Exception):
    """Raised when a bookmark does not exist for the given user."""
    pass


class DuplicateBookmarkError(Exception):
    """Raised when the user already has a bookmark for the normalized URL."""
    pass


def has_min_text_length(min_length: int):
    """Cursor predicate: article text is long enough to enrich."""
    return func.length(Bookmark.text_content) >= min_length


def is_untagged():
    return or_(Bookmark.tags.is_(None), func.cardinality(Bookmark.tags) == 0)


class BookmarkStore:
    """Bookmark persistence scoped to the caller's session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================
    # Lookups
    # ========================================

    async def get(self, user_id: uuid.UUID, bookmark_id: str) -> Bookmark:
        """
        Get one bookmark.

        Raises:
            BookmarkNotFoundError: If the user has no such bookmark
        """
        bookmark = await self.db.get(Bookmark, (bookmark_id, user_id))
        if bookmark is None:
            raise BookmarkNotFoundError(f"Bookmark {bookmark_id} not found")
        return bookmark

    async def get_by_url_and_user(self, url: str, user_id: uuid.UUID) -> Optional[Bookmark]:
        """Find the user's bookmark for a normalized URL, if any."""
        result = await self.db.scalars(
            select(Bookmark).where(Bookmark.url == url, Bookmark.user_id == user_id)
        )
        return result.first()

    async def get_text_content(self, user_id: uuid.UUID, bookmark_id: str) -> Optional[str]:
        result = await self.db.scalars(
            select(Bookmark.text_content).where(
                Bookmark.bookmark_id == bookmark_id,
                Bookmark.user_id == user_id,
            )
        )
        return result.first()

    async def list_for_user(self, user_id: uuid.UUID) -> List[Bookmark]:
        """All of a user's bookmarks, oldest first."""
        result = await self.db.scalars(
            select(Bookmark)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at)
        )
        return list(result.all())

    async def list_by_tag(self, user_id: uuid.UUID, tag: str) -> List[Bookmark]:
        result = await self.db.scalars(
            select(Bookmark)
            .where(Bookmark.user_id == user_id, Bookmark.tags.contains([tag]))
            .order_by(Bookmark.created_at)
        )
        return list(result.all())

    async def tag_counts(self, user_id: uuid.UUID) -> List[TagCount]:
        """Number of bookmarks per tag, most used first."""
        tags = (
            select(func.unnest(Bookmark.tags).label("tag"))
            .where(Bookmark.user_id == user_id)
            .subquery()
        )
        count = func.count().label("count")
        rows = await self.db.execute(
            select(tags.c.tag, count)
            .group_by(tags.c.tag)
            .order_by(count.desc(), tags.c.tag)
        )
        return [TagCount(tag=tag, count=n) for tag, n in rows.all()]

    # ========================================
    # Writes
    # ========================================

    async def save(self, bookmark: Bookmark, text_content: str) -> Bookmark:
        """
        Insert a new bookmark with its article text.

        Raises:
            DuplicateBookmarkError: (url, user_id) already exists
        """
        bookmark.text_content = text_content
        now = datetime.now(timezone.utc)
        bookmark.created_at = bookmark.created_at or now
        bookmark.updated_at = bookmark.updated_at or now
        self.db.add(bookmark)

        try:
            await self.db.flush()
        except IntegrityError as e:
            if any(name in str(e.orig) for name in DUPLICATE_CONSTRAINTS):
                raise DuplicateBookmarkError(
                    f"Bookmark for {bookmark.url} already exists"
                ) from e
            raise

        logger.info(f"Saved bookmark {bookmark.bookmark_id} for user {bookmark.user_id}")
        return bookmark

    async def update_tags(
        self,
        user_id: uuid.UUID,
        bookmark_id: str,
        tags: List[str],
        operation: TagOperation = TagOperation.SET,
    ) -> Bookmark:
        """
        Replace (SET) or extend (APPEND) a bookmark's tags.

        Raises:
            BookmarkNotFoundError: If the user has no such bookmark
        """
        new_tags = literal(list(tags), type_=ARRAY(Text))
        if operation == TagOperation.APPEND:
            new_tags = func.array_cat(Bookmark.tags, new_tags)

        return await self._update(
            user_id,
            bookmark_id,
            tags=new_tags,
            updated_at=datetime.now(timezone.utc),
        )

    async def update_summary(
        self, user_id: uuid.UUID, bookmark_id: str, summary: str
    ) -> Bookmark:
        return await self._update(
            user_id,
            bookmark_id,
            summary=summary,
            updated_at=datetime.now(timezone.utc),
        )

    async def _update(self, user_id: uuid.UUID, bookmark_id: str, **values) -> Bookmark:
        result = await self.db.scalars(
            update(Bookmark)
            .where(Bookmark.bookmark_id == bookmark_id, Bookmark.user_id == user_id)
            .values(**values)
            .returning(Bookmark),
            execution_options={"synchronize_session": False, "populate_existing": True},
        )
        bookmark = result.first()
        if bookmark is None:
            raise BookmarkNotFoundError(f"Bookmark {bookmark_id} not found")
        return bookmark

    # ========================================
    # Enrichment cursors
    # ========================================

    async def untagged(self, limit: int, min_text_length: int) -> List[Bookmark]:
        """Random sample of bookmarks with no tags and enough text to tag."""
        result = await self.db.scalars(
            select(Bookmark)
            .where(is_untagged(), has_min_text_length(min_text_length))
            .order_by(func.random())
            .limit(limit)
        )
        return list(result.all())

    async def without_summary(self, limit: int, min_text_length: int) -> List[Bookmark]:
        """Random sample of bookmarks with no summary and enough text to summarize."""
        result = await self.db.scalars(
            select(Bookmark)
            .where(Bookmark.summary.is_(None), has_min_text_length(min_text_length))
            .order_by(func.random())
            .limit(limit)
        )
        return list(result.all())
