from typing import Iterable

from app.models import GalleryImage


def gallery_totals(images: Iterable[GalleryImage]) -> dict[str, int]:
    total_files = 0
    total_bytes = 0
    for image in images:
        total_files += 1
        total_bytes += image.size or 0
    return {
        "total_files": total_files,
        "total_bytes": total_bytes,
    }


def human_bytes(value: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(max(value, 0))
    for unit in units:
        if size < 1024 or unit == units[-1]:
            formatted = f"{size:.1f}".rstrip("0").rstrip(".")
            return f"{formatted or '0'} {unit}"
        size /= 1024
    return "0 B"
