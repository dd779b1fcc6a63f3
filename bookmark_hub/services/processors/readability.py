"""
Article extraction.

Two interchangeable extractors return the same ReadabilityResult:

- ReadabilityClient: POSTs the raw HTML to an external readability service
  that answers {"title", "content", "textContent"}
- LocalReadability: runs readability-lxml in a worker thread, used when no
  READABILITY_URL is configured
"""

import asyncio
import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from readability import Document

from bookmark_hub.core.config import settings
from bookmark_hub.services.processors.exceptions import ExtractionError

logger = logging.getLogger(__name__)


class ReadabilityResult(BaseModel):
    """Extracted article: title, cleaned HTML and plain text."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    content: str
    text_content: str = Field(alias="textContent")


class ReadabilityClient:
    """Client for the external readability service."""

    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self.http = http
        self.base_url = base_url

    async def extract(self, raw_html: str) -> ReadabilityResult:
        """
        Extract the article from raw HTML.

        Raises:
            ExtractionError: Transport error, non-2xx status or malformed body
        """
        try:
            response = await self.http.post(
                self.base_url,
                content=raw_html.encode("utf-8"),
                headers={"Content-Type": "text/html; charset=utf-8"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExtractionError(f"Readability request failed: {e}") from e

        try:
            return ReadabilityResult.model_validate_json(response.content)
        except ValidationError as e:
            raise ExtractionError(f"Malformed readability response: {e}") from e


class LocalReadability:
    """In-process extraction with readability-lxml."""

    async def extract(self, raw_html: str) -> ReadabilityResult:
        return await asyncio.to_thread(self._extract, raw_html)

    def _extract(self, raw_html: str) -> ReadabilityResult:
        try:
            document = Document(raw_html)
            content = document.summary(html_partial=True)
            title = document.short_title() or document.title()
        except Exception as e:
            raise ExtractionError(f"Readability failed to parse the page: {e}") from e

        text = BeautifulSoup(content, "lxml").get_text(separator="\n", strip=True)
        if not text:
            raise ExtractionError("Readability found no article text")

        return ReadabilityResult(title=title or "", content=content, text_content=text)


def create_extractor(http: httpx.AsyncClient, readability_url: Optional[str] = None):
    """Pick the external service when configured, local extraction otherwise."""
    readability_url = readability_url or settings.READABILITY_URL
    if readability_url:
        logger.info(f"Using readability service at {readability_url}")
        return ReadabilityClient(http, readability_url)
    logger.info("READABILITY_URL not set, extracting articles locally")
    return LocalReadability()
