"""
Pydantic schemas for keyword search.
"""

import enum
from typing import List, Optional

from pydantic import BaseModel, Field

from bookmark_hub.schemas.bookmark import BookmarkResponse, TagCount


class TagFilterMode(str, enum.Enum):
    """
    Tag filter applied on top of the text query.

    - AND: bookmark carries every given tag
    - OR: bookmark carries at least one given tag
    - UNTAGGED: bookmark has an empty tag list
    - ANY: no tag filter
    """

    AND = "and"
    OR = "or"
    UNTAGGED = "untagged"
    ANY = "any"


class TagFilter(BaseModel):
    mode: TagFilterMode = TagFilterMode.ANY
    tags: List[str] = Field(default_factory=list)


class SearchRequest(BaseModel):
    """Request schema for searching bookmarks."""

    query: Optional[str] = Field(
        default=None,
        description="Web-search style query (quotes, OR, -exclusion)",
    )
    tags_filter: Optional[TagFilter] = None
    limit: Optional[int] = Field(default=None, ge=1, le=500)
    offset: Optional[int] = Field(default=None, ge=0)


class SearchResultItem(BaseModel):
    """A matching bookmark, with a highlighted snippet when a query was given."""

    bookmark: BookmarkResponse
    search_match: Optional[str] = None


class SearchResponse(BaseModel):
    """Matching items, tag counts over all matches, and the total count."""

    items: List[SearchResultItem]
    tags: List[TagCount]
    total: int
