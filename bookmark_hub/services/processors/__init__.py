"""
Content processors: URL identity, fetching, extraction, token windows and
static storage.
"""

from bookmark_hub.services.processors.content_processor import (
    ContentProcessor,
    FetchedImage,
    ProcessedContent,
    UrlIdentity,
)
from bookmark_hub.services.processors.exceptions import (
    ContentProcessingError,
    ExtractionError,
    FetchError,
    InvalidUrlError,
)
from bookmark_hub.services.processors.static_storage import StaticStorage
from bookmark_hub.services.processors.tokenizer import windowed_chunks
from bookmark_hub.services.processors.url import domain_from_url, make_content_id, normalize_url

__all__ = [
    "ContentProcessingError",
    "ContentProcessor",
    "ExtractionError",
    "FetchError",
    "FetchedImage",
    "InvalidUrlError",
    "ProcessedContent",
    "StaticStorage",
    "UrlIdentity",
    "domain_from_url",
    "make_content_id",
    "normalize_url",
    "windowed_chunks",
]
