"""Storage interfaces and shared dataclasses for object storage backends."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol


@dataclass(frozen=True)
class StoredObject:
    """One object resident in the backend."""

    name: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


@dataclass(frozen=True)
class PresignedUpload:
    """Write-only capability for a single object key."""

    upload_url: str
    expires_at: datetime


class StorageBackend(Protocol):
    """Operations the rest of the app needs from an object store.

    Implementations raise subclasses of ``app.core.exceptions.StorageError``
    and never return partial listings.
    """

    def list_objects(self, prefix: str) -> List[StoredObject]:
        ...

    def put_object(self, key: str, data: bytes, content_type: str, size: Optional[int] = None) -> StoredObject:
        ...

    def create_presigned_upload(self, key: str, ttl_seconds: int) -> PresignedUpload:
        ...

    def view_url(self, key: str) -> str:
        ...

    def check(self) -> Dict[str, Any]:
        ...
