from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi.concurrency import run_in_threadpool

from app.core.exceptions import UploadValidationError
from app.services.stats import human_bytes
from app.storage import StorageBackend

logger = logging.getLogger("gallery")

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif"})


def validate_image_upload(file_name: Optional[str], content_type: Optional[str], size: Optional[int], max_size: int) -> None:
    """Reject uploads the gallery does not accept, before any backend call."""
    if not file_name or not content_type:
        raise UploadValidationError("File name and type are required.")
    if "/" in file_name or "\\" in file_name or file_name in {".", ".."}:
        raise UploadValidationError("File name must not contain path separators.")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise UploadValidationError("File type not allowed. Use JPG, PNG or GIF only.")
    if size is not None:
        if size < 0:
            raise UploadValidationError("File size must not be negative.")
        if size > max_size:
            raise UploadValidationError(f"File too large. Maximum allowed size is {human_bytes(max_size)}.")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_key_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and ``:``/``.`` replaced by ``-``.

    ``2024-05-01T12:00:00.123Z`` becomes ``2024-05-01T12-00-00-123Z``.
    """
    moment = moment.astimezone(timezone.utc)
    iso = moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{moment.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


class ObjectKeyFactory:
    """Issues ``<folder>/<timestamp>_<file name>`` keys.

    Timestamps are strictly increasing at millisecond resolution within the
    process, so two keys issued here never share a timestamp.
    """

    def __init__(self, folder: str, clock: Optional[Callable[[], datetime]] = None):
        self.folder = folder.rstrip("/")
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._last: Optional[datetime] = None

    def _next_timestamp(self) -> datetime:
        now = self._clock().astimezone(timezone.utc)
        now = now.replace(microsecond=(now.microsecond // 1000) * 1000)
        with self._lock:
            if self._last is not None and now <= self._last:
                now = self._last + timedelta(milliseconds=1)
            self._last = now
        return now

    def build(self, file_name: str) -> str:
        stamp = format_key_timestamp(self._next_timestamp())
        if self.folder:
            return f"{self.folder}/{stamp}_{file_name}"
        return f"{stamp}_{file_name}"


@dataclass(frozen=True)
class UploadResult:
    object_name: str
    view_url: str
    size: int


@dataclass(frozen=True)
class PresignResult:
    object_name: str
    upload_url: str
    view_url: str
    expires_at: datetime


class UploadService:
    """Server half of both upload protocols."""

    def __init__(
        self,
        storage: StorageBackend,
        keys: ObjectKeyFactory,
        *,
        proxy_max_size: int,
        direct_max_size: int,
        presign_ttl_seconds: int,
    ):
        self.storage = storage
        self.keys = keys
        self.proxy_max_size = proxy_max_size
        self.direct_max_size = direct_max_size
        self.presign_ttl_seconds = presign_ttl_seconds

    async def upload(self, file_name: Optional[str], content_type: Optional[str], data: bytes) -> UploadResult:
        validate_image_upload(file_name, content_type, len(data), self.proxy_max_size)
        key = self.keys.build(file_name)
        stored = await run_in_threadpool(self.storage.put_object, key, data, content_type, len(data))
        logger.info(
            "event=upload_success object_name=%s size_bytes=%s content_type=%s",
            stored.name,
            len(data),
            content_type,
        )
        return UploadResult(object_name=stored.name, view_url=self.storage.view_url(stored.name), size=len(data))

    async def presign(self, file_name: Optional[str], content_type: Optional[str], size: Optional[int]) -> PresignResult:
        validate_image_upload(file_name, content_type, size, self.direct_max_size)
        key = self.keys.build(file_name)
        presigned = await run_in_threadpool(self.storage.create_presigned_upload, key, self.presign_ttl_seconds)
        logger.info(
            "event=presign_issued object_name=%s size_bytes=%s expires_at=%s",
            key,
            size,
            presigned.expires_at.isoformat(),
        )
        return PresignResult(
            object_name=key,
            upload_url=presigned.upload_url,
            view_url=self.storage.view_url(key),
            expires_at=presigned.expires_at,
        )
