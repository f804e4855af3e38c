"""Object storage backends."""

from .base import PresignedUpload, StorageBackend, StoredObject
from .factory import build_storage_backend
from .local import ExpiredUploadToken, LocalStorageBackend, UnknownUploadToken
from .oracle import OracleStorageBackend, object_view_url

__all__ = [
    "ExpiredUploadToken",
    "LocalStorageBackend",
    "OracleStorageBackend",
    "PresignedUpload",
    "StorageBackend",
    "StoredObject",
    "UnknownUploadToken",
    "build_storage_backend",
    "object_view_url",
]
