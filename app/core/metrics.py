from __future__ import annotations

import threading
from typing import Dict


class MetricsStore:
    """Thread-safe in-memory metrics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {
            "uploads": 0,
            "presigned_urls": 0,
            "direct_uploads": 0,
            "downloads": 0,
            "listings": 0,
            "bytes_uploaded": 0,
        }

    def record_upload(self, size_bytes: int) -> None:
        with self._lock:
            self._counters["uploads"] += 1
            self._counters["bytes_uploaded"] += size_bytes

    def record_presign(self) -> None:
        with self._lock:
            self._counters["presigned_urls"] += 1

    def record_direct_upload(self, size_bytes: int) -> None:
        with self._lock:
            self._counters["direct_uploads"] += 1
            self._counters["bytes_uploaded"] += size_bytes

    def record_download(self) -> None:
        with self._lock:
            self._counters["downloads"] += 1

    def record_listing(self) -> None:
        with self._lock:
            self._counters["listings"] += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)


metrics = MetricsStore()
