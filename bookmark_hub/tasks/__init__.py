"""
Celery tasks for background processing.
"""

from bookmark_hub.tasks.enrichment_tasks import (
    embed_bookmarks,
    summarize_bookmarks,
    tag_bookmarks,
)
from bookmark_hub.tasks.ingestion_tasks import drain_queue

__all__ = [
    "drain_queue",
    "embed_bookmarks",
    "summarize_bookmarks",
    "tag_bookmarks",
]
