from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import httpx

from app.models import GalleryImage
from app.services.export import BulkExporter, archive_file_name
from app.services.gallery import Page, paginate

logger = logging.getLogger("gallery.client")


class GalleryError(Exception):
    pass


class GalleryClient:
    """Reads the gallery from ``/api/images`` and pages through it locally."""

    def __init__(self, http_client: httpx.AsyncClient, page_size: int = 20):
        self.http_client = http_client
        self.page_size = page_size
        self.images: List[GalleryImage] = []

    async def refresh(self) -> List[GalleryImage]:
        try:
            response = await self.http_client.get("/api/images")
        except httpx.HTTPError as exc:
            raise GalleryError("Could not connect to the server") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise GalleryError(f"Unexpected response ({response.status_code})") from exc
        if response.is_error:
            raise GalleryError(payload.get("error") or "Could not load images")
        self.images = [GalleryImage.model_validate(item) for item in payload.get("images", [])]
        return self.images

    def page(self, number: int) -> Page[GalleryImage]:
        return paginate(self.images, number, self.page_size)

    async def download_all(self, destination: Optional[Path] = None) -> Path:
        """Write every image into one ZIP in ``destination`` (cwd by default)."""
        exporter = BulkExporter(self.http_client)
        archive = await exporter.export_all(self.images)
        target = Path(destination or Path.cwd()) / archive_file_name()
        target.write_bytes(archive)
        if exporter.skipped:
            logger.warning("event=archive_incomplete skipped=%s", len(exporter.skipped))
        logger.info("event=archive_written path=%s images=%s", target, len(self.images) - len(exporter.skipped))
        return target
