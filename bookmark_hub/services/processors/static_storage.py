"""
Static content storage.

Layout under DATA_DIR:

    {user_id}/{bookmark_id}/index.html
    {user_id}/{bookmark_id}/{image_id}

Images are content-addressed by id, so an existing file is never rewritten.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Iterable, Optional

from bookmark_hub.core.config import settings
from bookmark_hub.services.processors.content_processor import FetchedImage

logger = logging.getLogger(__name__)


class StaticStorage:

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.DATA_DIR)

    def bookmark_dir(self, user_id: uuid.UUID, bookmark_id: str) -> Path:
        return self.root / str(user_id) / bookmark_id

    async def save(
        self,
        user_id: uuid.UUID,
        bookmark_id: str,
        html_content: str,
        images: Iterable[FetchedImage],
    ) -> Path:
        """Write index.html and the images; returns the bookmark directory."""
        return await asyncio.to_thread(
            self._save, user_id, bookmark_id, html_content, list(images)
        )

    def _save(self, user_id, bookmark_id, html_content, images) -> Path:
        directory = self.bookmark_dir(user_id, bookmark_id)
        directory.mkdir(parents=True, exist_ok=True)

        (directory / "index.html").write_text(html_content, encoding="utf-8")

        written = 0
        for image in images:
            path = directory / image.image_id
            if path.exists():
                continue
            path.write_bytes(image.data)
            written += 1

        logger.info(f"Stored static content in {directory} ({written} new images)")
        return directory
