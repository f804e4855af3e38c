from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, List, Optional, Sequence, TypeVar

from fastapi.concurrency import run_in_threadpool

from app.models import GalleryImage
from app.storage import StorageBackend

logger = logging.getLogger("gallery")

IMAGE_NAME_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
KEY_TIMESTAMP_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z_")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

T = TypeVar("T")


def is_image_name(name: Optional[str]) -> bool:
    return bool(name) and IMAGE_NAME_PATTERN.search(name) is not None


def display_name(object_name: str) -> str:
    """File name as the guest uploaded it: no folder, no timestamp prefix."""
    base = object_name.rsplit("/", 1)[-1]
    return KEY_TIMESTAMP_PREFIX.sub("", base) or base


def _sort_key(image: GalleryImage) -> datetime:
    moment = image.last_modified
    if not isinstance(moment, datetime):
        return EPOCH
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def sort_newest_first(images: Sequence[GalleryImage]) -> List[GalleryImage]:
    return sorted(images, key=_sort_key, reverse=True)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def paginate(items: Sequence[T], page: int, page_size: int = 20) -> Page[T]:
    """Slice one 1-based page out of an already ordered sequence."""
    if page_size < 1:
        raise ValueError("page_size must be positive")
    page = max(page, 1)
    start = (page - 1) * page_size
    return Page(items=list(items[start:start + page_size]), page=page, page_size=page_size, total=len(items))


class GalleryService:
    def __init__(self, storage: StorageBackend):
        self.storage = storage

    async def list_images(self, prefix: str) -> List[GalleryImage]:
        """Every image under ``prefix``, newest first.

        Storage errors propagate untouched; there are no partial results.
        """
        objects = await run_in_threadpool(self.storage.list_objects, prefix)
        images = [
            GalleryImage(
                id=obj.name,
                name=obj.name,
                url=self.storage.view_url(obj.name),
                size=obj.size,
                last_modified=obj.last_modified,
                etag=obj.etag,
            )
            for obj in objects
            if is_image_name(obj.name)
        ]
        logger.info(
            "event=gallery_listed prefix=%s objects=%s images=%s",
            prefix,
            len(objects),
            len(images),
        )
        return sort_newest_first(images)
