import os
import sys
import tempfile
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Configuration is read once at import time, so pin it before the app loads.
os.environ["STORAGE_BACKEND"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="gallery-tests-")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["ENABLE_CLEANER"] = "false"
os.environ["RATE_LIMIT_PER_MINUTE"] = "1000"
os.environ["REDIS_URL"] = ""

from app.storage import LocalStorageBackend  # noqa: E402


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class CountingBackend(LocalStorageBackend):
    """Local backend that records how often each operation was called."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = Counter()

    def list_objects(self, prefix):
        self.calls["list_objects"] += 1
        return super().list_objects(prefix)

    def put_object(self, key, data, content_type, size=None):
        self.calls["put_object"] += 1
        return super().put_object(key, data, content_type, size)

    def create_presigned_upload(self, key, ttl_seconds):
        self.calls["create_presigned_upload"] += 1
        return super().create_presigned_upload(key, ttl_seconds)


def _prepare_client(tmp_path, monkeypatch, *, backend=None, clock=None, raise_server_exceptions=True):
    from app import main

    if backend is None:
        backend = CountingBackend(
            root=str(tmp_path / "objects"),
            public_base_url="http://testserver",
            clock=clock,
        )
    monkeypatch.setattr(main.app.state, "storage", backend)

    test_client = TestClient(main.app, raise_server_exceptions=raise_server_exceptions)
    test_client.storage = backend  # type: ignore[attr-defined]
    return test_client


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def client(tmp_path, monkeypatch):
    test_client = _prepare_client(tmp_path, monkeypatch)
    with test_client as c:
        yield c


@pytest.fixture
def storage(client):
    return client.storage
