from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import AuthError
from app.models import GalleryImage
from app.services.gallery import GalleryService, display_name, is_image_name, paginate, sort_newest_first
from app.storage import StoredObject, object_view_url

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


class StaticBackend:
    """Returns a fixed listing, addressed like an OCI bucket."""

    def __init__(self, objects=None, error=None):
        self.objects = objects or []
        self.error = error
        self.prefixes = []

    def list_objects(self, prefix):
        self.prefixes.append(prefix)
        if self.error:
            raise self.error
        return list(self.objects)

    def view_url(self, key):
        return object_view_url("sa-saopaulo-1", "ns", "wedding", key)


@pytest.mark.asyncio
async def test_only_images_survive():
    backend = StaticBackend([StoredObject("x/a.png"), StoredObject("x/b.txt"), StoredObject("x/c.jpg")])
    images = await GalleryService(backend).list_images("x/")
    assert sorted(image.name for image in images) == ["x/a.png", "x/c.jpg"]
    assert backend.prefixes == ["x/"]


@pytest.mark.parametrize(
    "name,expected",
    [
        ("x/a.JPG", True),
        ("x/a.Jpeg", True),
        ("x/a.webp", True),
        ("x/a.gif", True),
        ("x/a.png.txt", False),
        ("x/jpg", False),
        ("x/a.heic", False),
        ("", False),
        (None, False),
    ],
)
def test_is_image_name(name, expected):
    assert is_image_name(name) is expected


@pytest.mark.asyncio
async def test_urls_are_derived_from_name():
    backend = StaticBackend([StoredObject("casamento/2024-05-01T12-00-00-000Z_a b.jpg")])
    images = await GalleryService(backend).list_images("casamento/")
    assert images[0].url == (
        "https://objectstorage.sa-saopaulo-1.oraclecloud.com/n/ns/b/wedding/o/"
        "casamento%2F2024-05-01T12-00-00-000Z_a%20b.jpg"
    )
    assert images[0].id == images[0].name


@pytest.mark.asyncio
async def test_sorted_newest_first_with_missing_timestamps_last():
    objects = [
        StoredObject("x/old.jpg", last_modified=BASE),
        StoredObject("x/unknown.jpg", last_modified=None),
        StoredObject("x/new.jpg", last_modified=BASE + timedelta(days=2)),
        StoredObject("x/mid.jpg", last_modified=(BASE + timedelta(days=1)).replace(tzinfo=None)),
    ]
    images = await GalleryService(StaticBackend(objects)).list_images("x/")
    assert [image.name for image in images] == ["x/new.jpg", "x/mid.jpg", "x/old.jpg", "x/unknown.jpg"]


def test_sort_is_monotonic():
    images = [
        GalleryImage(id=str(i), name=f"{i}.jpg", url="u", last_modified=BASE + timedelta(minutes=(i * 37) % 11))
        for i in range(30)
    ]
    ordered = sort_newest_first(images)
    for a, b in zip(ordered, ordered[1:]):
        assert a.last_modified >= b.last_modified


@pytest.mark.asyncio
async def test_backend_errors_propagate():
    service = GalleryService(StaticBackend(error=AuthError("nope")))
    with pytest.raises(AuthError):
        await service.list_images("x/")


@pytest.mark.parametrize("total", [0, 1, 19, 20, 21, 40, 45])
@pytest.mark.parametrize("page_size", [1, 7, 20])
def test_pages_concatenate_to_full_list(total, page_size):
    items = list(range(total))
    first = paginate(items, 1, page_size)
    pages = [paginate(items, number, page_size) for number in range(1, first.total_pages + 1)]

    assert [item for page in pages for item in page.items] == items
    if total:
        expected_last = total % page_size or page_size
        assert len(pages[-1].items) == expected_last
    assert paginate(items, first.total_pages + 1, page_size).items == []


def test_page_navigation_flags():
    page = paginate(list(range(45)), 2, 20)
    assert page.total_pages == 3
    assert page.has_previous and page.has_next
    assert not paginate(list(range(45)), 3, 20).has_next


def test_display_name_strips_folder_and_timestamp():
    assert display_name("casamento/2024-05-01T12-00-00-123Z_bolo.jpg") == "bolo.jpg"
    assert display_name("casamento/bolo.jpg") == "bolo.jpg"
    assert display_name("2024-05-01T12-00-00-123Z_") == "2024-05-01T12-00-00-123Z_"
