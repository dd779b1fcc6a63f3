"""
Content processing errors.

Any of these fails the ingestion attempt of a task, which is then retried or
marked FAIL by the task queue. A failed image download is not an error: the
image is logged and left pointing at its original source.
"""


class ContentProcessingError(Exception):
    """Base exception for content processing errors."""
    pass


class InvalidUrlError(ContentProcessingError):
    """Raised when a URL cannot be parsed or has no host."""
    pass


class FetchError(ContentProcessingError):
    """Raised when the page itself cannot be downloaded."""
    pass


class ExtractionError(ContentProcessingError):
    """Raised when article extraction fails or returns a malformed response."""
    pass
