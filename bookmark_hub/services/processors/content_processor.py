"""
Content Processor

Turns a submitted URL into an article ready to be stored.

Pipeline:
---------
1. identify(): normalize the URL, derive bookmark id and domain
   (the ingestion worker runs its duplicate check between 1 and 2)
2. fetch the raw page HTML
3. extract title / article HTML / plain text with readability
4. find <img src> in the article, resolve relative sources against the page
5. download every image concurrently; a failing image is logged and skipped
6. rewrite the src of downloaded images to
   {STATIC_URL_PREFIX}/{user_id}/{bookmark_id}/{image_id}
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from bookmark_hub.core.config import settings
from bookmark_hub.services.processors.exceptions import FetchError, InvalidUrlError
from bookmark_hub.services.processors.readability import create_extractor
from bookmark_hub.services.processors.url import domain_from_url, make_content_id, normalize_url

logger = logging.getLogger(__name__)


# ========================================
# Data Containers
# ========================================

@dataclass
class UrlIdentity:
    url: str
    bookmark_id: str
    domain: str


@dataclass
class ImageFound:
    image_id: str
    src: str  # attribute value as written in the article
    url: str  # resolved absolute URL


@dataclass
class FetchedImage:
    image_id: str
    src: str
    url: str
    content_type: str
    data: bytes


@dataclass
class ProcessedContent:
    """Everything ingestion needs to persist a bookmark."""

    bookmark_id: str
    url: str
    domain: str
    title: str
    html_content: str
    text_content: str
    images: List[FetchedImage] = field(default_factory=list)


# ========================================
# Content Processor
# ========================================

class ContentProcessor:
    """
    Fetch, extract and localize one article.

    Usage:
    ------
    async with httpx.AsyncClient() as http:
        processor = ContentProcessor(http)
        identity = processor.identify("https://example.com/a?utm=1")
        content = await processor.process(identity, user_id)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        extractor=None,
        static_url_prefix: Optional[str] = None,
    ):
        self.http = http
        self.extractor = extractor or create_extractor(http)
        self.static_url_prefix = (static_url_prefix or settings.STATIC_URL_PREFIX).rstrip("/")

    def identify(self, raw_url: str) -> UrlIdentity:
        """
        Raises:
            InvalidUrlError: URL cannot be parsed or has no host
        """
        url = normalize_url(raw_url)
        return UrlIdentity(url=url, bookmark_id=make_content_id(url), domain=domain_from_url(url))

    async def process(self, identity: UrlIdentity, user_id: uuid.UUID) -> ProcessedContent:
        """
        Fetch and extract the article behind a normalized URL.

        Raises:
            FetchError: The page could not be downloaded
            ExtractionError: Readability failed
        """
        raw_html = await self.fetch_html(identity.url)
        article = await self.extractor.extract(raw_html)

        found = self.find_images(identity.url, article.content)
        fetched = await self.fetch_images(found)
        html_content = self.rewrite_images(
            article.content, fetched, user_id, identity.bookmark_id
        )

        logger.info(
            f"Processed {identity.url}: {len(fetched)}/{len(found)} images localized, "
            f"{len(article.text_content)} chars of text"
        )

        return ProcessedContent(
            bookmark_id=identity.bookmark_id,
            url=identity.url,
            domain=identity.domain,
            title=article.title,
            html_content=html_content,
            text_content=article.text_content,
            images=list(fetched.values()),
        )

    async def fetch_html(self, url: str) -> str:
        try:
            response = await self.http.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e
        return response.text

    # ========================================
    # Images
    # ========================================

    def find_images(self, base_url: str, html: str) -> List[ImageFound]:
        """Every distinct <img src> of the article, resolved against the page URL."""
        soup = BeautifulSoup(html, "lxml")
        images: Dict[str, ImageFound] = {}

        for img in soup.find_all("img", src=True):
            src = img["src"].strip()
            if not src or src in images:
                continue

            resolved = urljoin(base_url, src)
            if urlsplit(resolved).scheme not in ("http", "https"):
                logger.warning(f"Skipping image with unsupported source: {src[:100]}")
                continue
            try:
                image_id = make_content_id(resolved)
            except InvalidUrlError as e:
                logger.warning(f"Skipping image, cannot parse source {src[:100]}: {e}")
                continue

            images[src] = ImageFound(image_id=image_id, src=src, url=resolved)

        return list(images.values())

    async def fetch_images(self, images: List[ImageFound]) -> Dict[str, FetchedImage]:
        """
        Download images concurrently.

        Returns:
            Successfully downloaded images keyed by their original src
        """
        results = await asyncio.gather(
            *(self._fetch_image(image) for image in images),
            return_exceptions=True,
        )

        fetched: Dict[str, FetchedImage] = {}
        for image, result in zip(images, results):
            if isinstance(result, BaseException):
                logger.warning(f"Image {image.url} could not be fetched, keeping original src: {result}")
                continue
            fetched[image.src] = result
        return fetched

    async def _fetch_image(self, image: ImageFound) -> FetchedImage:
        response = await self.http.get(image.url, follow_redirects=True)
        response.raise_for_status()
        return FetchedImage(
            image_id=image.image_id,
            src=image.src,
            url=image.url,
            content_type=response.headers.get("Content-Type", "application/octet-stream"),
            data=response.content,
        )

    def rewrite_images(
        self,
        html: str,
        fetched: Dict[str, FetchedImage],
        user_id: uuid.UUID,
        bookmark_id: str,
    ) -> str:
        """Point downloaded images at their static copy, leave the others untouched."""
        soup = BeautifulSoup(html, "lxml")
        for img in soup.find_all("img", src=True):
            image = fetched.get(img["src"].strip())
            if image is not None:
                img["src"] = f"{self.static_url_prefix}/{user_id}/{bookmark_id}/{image.image_id}"
        return str(soup)
