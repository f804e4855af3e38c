from __future__ import annotations

import io
import logging
import posixpath
import zipfile
from datetime import date
from typing import Iterable, Optional, Set

import httpx

from app.models import GalleryImage
from app.services.gallery import display_name

logger = logging.getLogger("gallery")


def archive_file_name(today: Optional[date] = None) -> str:
    return f"galeria-{(today or date.today()).isoformat()}.zip"


def _unique_name(name: str, taken: Set[str]) -> str:
    if name not in taken:
        return name
    stem, ext = posixpath.splitext(name)
    counter = 2
    while f"{stem} ({counter}){ext}" in taken:
        counter += 1
    return f"{stem} ({counter}){ext}"


class BulkExporter:
    """Bundles gallery images into a single ZIP archive.

    Best effort: an image that cannot be fetched is logged and left out, and
    the archive still holds everything fetched before and after it.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client
        self.skipped: list[str] = []

    async def _fetch(self, image: GalleryImage) -> Optional[bytes]:
        try:
            response = await self.http_client.get(image.url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("event=export_skipped name=%s url=%s error=%s", image.name, image.url, exc)
            return None
        return response.content

    async def export_all(self, images: Iterable[GalleryImage]) -> bytes:
        self.skipped = []
        buffer = io.BytesIO()
        taken: Set[str] = set()
        added = 0
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, image in enumerate(images, start=1):
                content = await self._fetch(image)
                if content is None:
                    self.skipped.append(image.name)
                    continue
                name = _unique_name(display_name(image.name) or f"image-{index}", taken)
                taken.add(name)
                archive.writestr(name, content)
                added += 1
        logger.info("event=export_finished added=%s skipped=%s", added, len(self.skipped))
        return buffer.getvalue()
