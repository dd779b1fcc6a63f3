"""
Keyword Search

PostgreSQL full-text search over bookmarks.

Document weights (maintained by the update_bookmark_search_tokens trigger):
- title: A
- text_content: B
- tags: C

Query Syntax:
-------------
websearch_to_tsquery understands what users type into search engines:
- "exact phrase"
- word1 OR word2
- -excluded
"""

import uuid
from typing import Optional

from sqlalchemy import func, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_hub.core.config import settings
from bookmark_hub.models.bookmark import Bookmark
from bookmark_hub.schemas.bookmark import BookmarkResponse, TagCount
from bookmark_hub.schemas.search import (
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    TagFilter,
    TagFilterMode,
)

# Text search configuration, as a literal so it is typed regconfig
TS_CONFIG = literal_column("'english'::regconfig")

HEADLINE_OPTIONS = "StartSel=<mark>, StopSel=</mark>"


def tag_filter_clause(tags_filter: Optional[TagFilter]):
    """SQL condition for a tag filter, or None when nothing is filtered."""
    if tags_filter is None or tags_filter.mode == TagFilterMode.ANY:
        return None
    if tags_filter.mode == TagFilterMode.AND:
        return Bookmark.tags.contains(tags_filter.tags)
    if tags_filter.mode == TagFilterMode.OR:
        return Bookmark.tags.overlap(tags_filter.tags)
    return or_(Bookmark.tags.is_(None), func.cardinality(Bookmark.tags) == 0)


class BookmarkSearch:
    """Full-text and tag filtered search over one user's bookmarks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def search(self, user_id: uuid.UUID, request: SearchRequest) -> SearchResponse:
        """
        Search bookmarks.

        Items, tag counts and total are computed over the same conditions.
        Run it inside one session_scope so all three see the same snapshot.
        """
        conditions = [Bookmark.user_id == user_id]

        query = (request.query or "").strip()
        tsquery = func.websearch_to_tsquery(TS_CONFIG, query) if query else None
        if tsquery is not None:
            conditions.append(Bookmark.search_tokens.op("@@")(tsquery))

        tag_clause = tag_filter_clause(request.tags_filter)
        if tag_clause is not None:
            conditions.append(tag_clause)

        # Items
        if tsquery is not None:
            snippet = func.ts_headline(
                TS_CONFIG, Bookmark.text_content, tsquery, HEADLINE_OPTIONS
            ).label("search_match")
            items_stmt = select(Bookmark, snippet).order_by(
                func.ts_rank(Bookmark.search_tokens, tsquery).desc()
            )
        else:
            items_stmt = select(Bookmark, literal_column("NULL").label("search_match")).order_by(
                Bookmark.created_at.desc()
            )

        items_stmt = (
            items_stmt.where(*conditions)
            .limit(request.limit or settings.SEARCH_PAGE_SIZE)
            .offset(request.offset or 0)
        )
        rows = (await self.db.execute(items_stmt)).all()
        items = [
            SearchResultItem(
                bookmark=BookmarkResponse.model_validate(bookmark),
                search_match=match,
            )
            for bookmark, match in rows
        ]

        # Tag counts over every match, not just this page
        tags = select(func.unnest(Bookmark.tags).label("tag")).where(*conditions).subquery()
        count = func.count().label("count")
        tag_rows = await self.db.execute(
            select(tags.c.tag, count).group_by(tags.c.tag).order_by(count.desc(), tags.c.tag)
        )

        total = await self.db.scalar(
            select(func.count()).select_from(Bookmark).where(*conditions)
        )

        return SearchResponse(
            items=items,
            tags=[TagCount(tag=tag, count=n) for tag, n in tag_rows.all()],
            total=total or 0,
        )
