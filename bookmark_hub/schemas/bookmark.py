"""
Pydantic schemas for bookmarks and bookmark tasks.
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookmark_hub.models.bookmark_task import TaskStatus


# ========================================
# Task Schemas
# ========================================

class NewBookmarkRequest(BaseModel):
    """Request schema for submitting a URL."""

    url: str = Field(description="URL to save", min_length=1, max_length=4096)
    tags: Optional[List[str]] = Field(default=None, description="Initial tags")

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must not be blank")
        return v

    @field_validator("tags")
    @classmethod
    def drop_blank_tags(cls, v: Optional[List[str]]) -> List[str]:
        """Trim tags and drop the empty ones."""
        return [tag.strip() for tag in (v or []) if tag.strip()]


class BookmarkTaskResponse(BaseModel):
    """Response schema for a bookmark task."""

    model_config = ConfigDict(from_attributes=True)

    task_id: uuid.UUID
    user_id: uuid.UUID
    url: str
    status: TaskStatus
    tags: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    next_delivery: datetime
    retries: Optional[int] = None
    fail_reason: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class BookmarkTaskSearchRequest(BaseModel):
    """
    Filters for listing a user's tasks.

    from_created_at / to_created_at are exclusive bounds when only one is
    given and an inclusive range when both are given.
    """

    url: Optional[str] = Field(default=None, description="Substring of the submitted URL")
    tags: Optional[List[str]] = Field(default=None, description="Tasks must carry all of these")
    status: Optional[TaskStatus] = None
    last_task_id: Optional[uuid.UUID] = Field(default=None, description="Keyset cursor")
    from_created_at: Optional[datetime] = None
    to_created_at: Optional[datetime] = None
    page_size: Optional[int] = Field(default=None, ge=1, le=500)


# ========================================
# Bookmark Schemas
# ========================================

class BookmarkResponse(BaseModel):
    """Response schema for a bookmark (without its article text)."""

    model_config = ConfigDict(from_attributes=True)

    bookmark_id: str
    user_id: uuid.UUID
    url: str
    domain: str
    title: str
    tags: Optional[List[str]] = None
    summary: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class TagOperation(str, enum.Enum):
    """How UpdateTags combines the given tags with the stored ones."""

    SET = "set"  # replace
    APPEND = "append"  # array concatenation


class TagCount(BaseModel):
    """How many of a user's bookmarks carry a tag."""

    tag: str
    count: int
