import io
import zipfile
from datetime import date

import httpx
import pytest

from app.models import GalleryImage
from app.services.export import BulkExporter, archive_file_name


def _image(name):
    return GalleryImage(id=name, name=name, url=f"https://cdn.test/{name}")


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("broken.jpg"):
        return httpx.Response(404)
    if path.endswith("offline.jpg"):
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(200, content=path.encode())


@pytest.mark.asyncio
async def test_export_skips_failures_and_strips_prefixes():
    images = [
        _image("casamento/2024-05-01T12-00-00-000Z_first.jpg"),
        _image("casamento/2024-05-01T12-00-00-001Z_broken.jpg"),
        _image("casamento/2024-05-01T12-00-00-002Z_offline.jpg"),
        _image("casamento/2024-05-01T12-00-00-003Z_last.png"),
    ]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as http:
        exporter = BulkExporter(http)
        archive = await exporter.export_all(images)

    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        assert zf.namelist() == ["first.jpg", "last.png"]
        assert zf.read("first.jpg") == b"/casamento/2024-05-01T12-00-00-000Z_first.jpg"
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())
    assert len(exporter.skipped) == 2


@pytest.mark.asyncio
async def test_export_deduplicates_names():
    images = [
        _image("casamento/2024-05-01T12-00-00-000Z_bolo.jpg"),
        _image("casamento/2024-05-01T12-00-00-001Z_bolo.jpg"),
        _image("casamento/2024-05-01T12-00-00-002Z_bolo.jpg"),
    ]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as http:
        archive = await BulkExporter(http).export_all(images)

    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        assert zf.namelist() == ["bolo.jpg", "bolo (2).jpg", "bolo (3).jpg"]


@pytest.mark.asyncio
async def test_export_of_nothing_is_an_empty_archive():
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as http:
        archive = await BulkExporter(http).export_all([])
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        assert zf.namelist() == []


def test_archive_file_name():
    assert archive_file_name(date(2024, 5, 1)) == "galeria-2024-05-01.zip"
