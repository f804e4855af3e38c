"""Client half of the upload protocols.

Tracks one ``UploadTask`` per selected file and drives it through either the
direct flow (presigned URL, then a PUT straight to storage) or the proxied
flow (multipart POST to ``/api/upload``).
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import httpx

logger = logging.getLogger("gallery.client")


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class UploadMode(str, Enum):
    DIRECT = "direct"
    PROXIED = "proxied"


class UploadFailed(Exception):
    pass


@dataclass
class LocalFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path) -> "LocalFile":
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=path.name, content_type=content_type, data=path.read_bytes())


@dataclass
class UploadTask:
    file: LocalFile
    status: UploadStatus = UploadStatus.PENDING
    object_name: Optional[str] = None
    view_url: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (UploadStatus.SUCCESS, UploadStatus.ERROR)

    @property
    def is_eligible(self) -> bool:
        return self.status in (UploadStatus.PENDING, UploadStatus.ERROR)


def _error_from_response(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return fallback
    if isinstance(payload, dict):
        return payload.get("error") or payload.get("detail") or fallback
    return fallback


@dataclass
class UploadOrchestrator:
    """Uploads batches of files against a gallery server.

    ``http_client`` must be able to reach both the gallery API (relative URLs
    resolve against its ``base_url``) and the storage host named in presigned
    URLs.
    """

    http_client: httpx.AsyncClient
    mode: UploadMode = UploadMode.DIRECT
    on_complete: Optional[Callable[[UploadTask], None]] = None
    on_error: Optional[Callable[[UploadTask], None]] = None
    tasks: List[UploadTask] = field(default_factory=list)

    def add_files(self, files: Iterable[LocalFile]) -> List[UploadTask]:
        new_tasks = [UploadTask(file=f) for f in files]
        self.tasks.extend(new_tasks)
        logger.info("event=files_selected count=%s", len(new_tasks))
        return new_tasks

    def remove(self, task: UploadTask) -> None:
        """Stop tracking ``task``. An in-flight request is not aborted."""
        self.tasks.remove(task)

    def clear_successful(self) -> None:
        self.tasks = [t for t in self.tasks if t.status != UploadStatus.SUCCESS]

    @property
    def all_done(self) -> bool:
        return bool(self.tasks) and all(t.is_terminal for t in self.tasks)

    @property
    def eligible(self) -> List[UploadTask]:
        return [t for t in self.tasks if t.is_eligible]

    async def upload_all(self) -> List[UploadTask]:
        batch = self.eligible
        if not batch:
            return []
        logger.info("event=batch_started count=%s mode=%s", len(batch), self.mode.value)
        await asyncio.gather(*(self._run(task) for task in batch))
        succeeded = sum(1 for t in batch if t.status == UploadStatus.SUCCESS)
        logger.info("event=batch_finished success=%s error=%s", succeeded, len(batch) - succeeded)
        return batch

    async def _run(self, task: UploadTask) -> None:
        task.status = UploadStatus.UPLOADING
        task.error_message = None
        try:
            if self.mode == UploadMode.DIRECT:
                await self._upload_direct(task)
            else:
                await self._upload_proxied(task)
        except (UploadFailed, httpx.HTTPError) as exc:
            self._fail(task, str(exc) or type(exc).__name__)
            return
        except Exception as exc:
            logger.exception("event=upload_crashed file=%s", task.file.name)
            self._fail(task, f"Unexpected error: {exc}")
            return
        task.status = UploadStatus.SUCCESS
        logger.info("event=upload_done file=%s object_name=%s", task.file.name, task.object_name)
        self._notify(self.on_complete, task)

    def _fail(self, task: UploadTask, message: str) -> None:
        task.status = UploadStatus.ERROR
        task.error_message = message
        logger.warning("event=upload_failed file=%s error=%s", task.file.name, message)
        self._notify(self.on_error, task)

    def _notify(self, callback: Optional[Callable[[UploadTask], None]], task: UploadTask) -> None:
        if callback is None:
            return
        try:
            callback(task)
        except Exception:
            logger.exception("event=callback_failed file=%s status=%s", task.file.name, task.status.value)

    async def _upload_direct(self, task: UploadTask) -> None:
        presign = await self.http_client.post(
            "/api/presigned-url",
            json={
                "fileName": task.file.name,
                "fileType": task.file.content_type,
                "fileSize": task.file.size,
            },
        )
        if presign.is_error:
            raise UploadFailed(_error_from_response(presign, "Could not get an upload URL"))
        try:
            payload = presign.json()
        except ValueError as exc:
            raise UploadFailed("Malformed presigned URL response") from exc
        upload_url = payload.get("uploadUrl") if isinstance(payload, dict) else None
        if not upload_url or not isinstance(upload_url, str):
            raise UploadFailed("Presigned URL response has no uploadUrl")

        put = await self.http_client.put(
            upload_url,
            content=task.file.data,
            headers={"Content-Type": task.file.content_type},
        )
        if put.is_error:
            raise UploadFailed(f"Upload failed: {put.status_code} {put.reason_phrase}")
        task.object_name = payload.get("objectName")
        task.view_url = payload.get("viewUrl")

    async def _upload_proxied(self, task: UploadTask) -> None:
        response = await self.http_client.post(
            "/api/upload",
            files={"file": (task.file.name, task.file.data, task.file.content_type)},
        )
        if response.is_error:
            raise UploadFailed(_error_from_response(response, f"Upload failed: {response.status_code}"))
        try:
            payload = response.json()
        except ValueError as exc:
            raise UploadFailed("Malformed upload response") from exc
        if not isinstance(payload, dict):
            raise UploadFailed("Malformed upload response")
        task.object_name = payload.get("fileName")
        task.view_url = payload.get("viewLink")
