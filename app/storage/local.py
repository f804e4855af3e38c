"""Local-disk storage backend used for development and tests.

Objects live under a root directory using their key as a relative path.
Presigned uploads are random tokens held in memory and redeemed through
``PUT /storage/upload/{token}`` until they expire.
"""

from __future__ import annotations

import logging
import os
import secrets
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

from app.core.exceptions import AuthError, BackendNotFound, BackendUnavailable
from .base import PresignedUpload, StoredObject

logger = logging.getLogger("gallery.storage")

_TOKEN_BYTES = 24


class UnknownUploadToken(BackendNotFound):
    pass


class ExpiredUploadToken(AuthError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalStorageBackend:
    def __init__(self, root: str, public_base_url: str, clock: Optional[Callable[[], datetime]] = None):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        self._clock = clock or _utcnow
        self._pending: Dict[str, Tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def path_for(self, key: str) -> Optional[Path]:
        """Absolute path of ``key`` or None when it would escape the root."""
        try:
            path = (self.root / key).resolve()
            path.relative_to(self.root)
        except (ValueError, RuntimeError):
            return None
        if path == self.root:
            return None
        return path

    def _require_path(self, key: str) -> Path:
        path = self.path_for(key)
        if path is None:
            raise ValueError(f"Invalid object key: {key!r}")
        return path

    def _stat(self, key: str, path: Path) -> StoredObject:
        info = path.stat()
        return StoredObject(
            name=key,
            size=info.st_size,
            last_modified=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
            etag=f"{info.st_mtime_ns:x}-{info.st_size:x}",
        )

    def list_objects(self, prefix: str) -> List[StoredObject]:
        if not self.root.is_dir():
            raise BackendNotFound(f"Storage directory {self.root} does not exist")
        objects = []
        try:
            for path in self.root.rglob("*"):
                if not path.is_file() or path.name.startswith(".upload-"):
                    continue
                key = path.relative_to(self.root).as_posix()
                if key.startswith(prefix):
                    objects.append(self._stat(key, path))
        except OSError as exc:
            raise BackendUnavailable(f"Could not read storage directory: {exc}") from exc
        objects.sort(key=lambda obj: obj.name)
        return objects

    def put_object(self, key: str, data: bytes, content_type: str, size: Optional[int] = None) -> StoredObject:
        path = self._require_path(key)
        tmp_path = path.with_name(f".upload-{secrets.token_hex(8)}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise BackendUnavailable(f"Could not write {key}: {exc}") from exc
        return self._stat(key, path)

    def create_presigned_upload(self, key: str, ttl_seconds: int) -> PresignedUpload:
        self._require_path(key)
        token = secrets.token_urlsafe(_TOKEN_BYTES)
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._pending[token] = (key, expires_at)
        return PresignedUpload(
            upload_url=f"{self.public_base_url}/storage/upload/{token}",
            expires_at=expires_at,
        )

    def redeem_presigned_upload(self, token: str, data: bytes, content_type: str) -> StoredObject:
        """Write ``data`` to the key bound to ``token``.

        The token stays valid until it expires so a failed client can retry.
        """
        now = self._clock()
        with self._lock:
            entry = self._pending.get(token)
            if entry is not None and now >= entry[1]:
                del self._pending[token]
                raise ExpiredUploadToken("Upload URL has expired")
        if entry is None:
            raise UnknownUploadToken("Unknown upload URL")
        key, _ = entry
        return self.put_object(key, data, content_type, len(data))

    def purge_expired_uploads(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [token for token, (_, expires_at) in self._pending.items() if now >= expires_at]
            for token in expired:
                del self._pending[token]
        return len(expired)

    def view_url(self, key: str) -> str:
        return f"{self.public_base_url}/storage/o/{quote(key, safe='')}"

    def check(self) -> Dict[str, Any]:
        objects = self.list_objects("")
        return {
            "backend": "local",
            "root": str(self.root),
            "writable": os.access(self.root, os.W_OK),
            "objects": {"count": len(objects), "sample": [obj.name for obj in objects[:3]]},
        }
