from __future__ import annotations

import html
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from app.config import (
    CACHE_MAX_AGE_SECONDS,
    DIRECT_MAX_FILE_SIZE,
    GALLERY_PAGE_SIZE,
    GALLERY_PREFIX,
    PRESIGN_TTL_SECONDS,
    PROXY_MAX_FILE_SIZE,
    RATE_LIMIT_PER_MINUTE,
)
from app.core.exceptions import RateLimitExceeded, StorageError, UploadValidationError, describe_storage_error
from app.core.metrics import metrics
from app.core.rate_limit import RateLimiter
from app.core.templates import render_template
from app.models import ImageListResponse, PresignRequest
from app.services.gallery import GalleryService, display_name, paginate
from app.services.stats import gallery_totals, human_bytes
from app.services.uploads import ObjectKeyFactory, UploadService, validate_image_upload
from app.storage import (
    ExpiredUploadToken,
    LocalStorageBackend,
    OracleStorageBackend,
    StorageBackend,
    UnknownUploadToken,
)

router = APIRouter()

logger = logging.getLogger("gallery")

rate_limiter = RateLimiter(RATE_LIMIT_PER_MINUTE)
object_keys = ObjectKeyFactory(GALLERY_PREFIX)

HEALTH_SUGGESTIONS = {
    "not_found": [
        "Check that the bucket exists in Oracle Cloud",
        "Check the bucket name in ORACLE_BUCKET_NAME",
        "Check that the configured user may access the bucket",
    ],
    "auth": [
        "Check the credentials in ~/.oci/config or the ORACLE_* environment variables",
        "Check that the user has the required policies",
        "Check the private key and its fingerprint",
    ],
    "config": [
        "Set every required environment variable",
        "Set ORACLE_USE_ENV_VARS=true when using environment variables",
    ],
}


def get_storage(request: Request) -> StorageBackend:
    return request.app.state.storage


def get_upload_service(storage: StorageBackend = Depends(get_storage)) -> UploadService:
    return UploadService(
        storage,
        object_keys,
        proxy_max_size=PROXY_MAX_FILE_SIZE,
        direct_max_size=DIRECT_MAX_FILE_SIZE,
        presign_ttl_seconds=PRESIGN_TTL_SECONDS,
    )


def get_gallery_service(storage: StorageBackend = Depends(get_storage)) -> GalleryService:
    return GalleryService(storage)


async def enforce_rate_limit(request: Request):
    client = request.client.host if request.client else "unknown"
    allowed, retry_after = rate_limiter.hit(client)
    if not allowed:
        raise RateLimitExceeded(retry_after)


def _storage_config_summary(storage: StorageBackend) -> dict:
    if isinstance(storage, OracleStorageBackend):
        return {
            "namespaceName": storage.namespace or "NOT CONFIGURED",
            "bucketName": storage.bucket or "NOT CONFIGURED",
            "region": storage.region,
            "authMethod": storage.auth_method,
            "hasEnvVars": {
                name: bool(storage.credentials.get(field))
                for field, name in (
                    ("tenancy", "ORACLE_TENANCY_OCID"),
                    ("user", "ORACLE_USER_OCID"),
                    ("fingerprint", "ORACLE_KEY_FINGERPRINT"),
                    ("key_content", "ORACLE_PRIVATE_KEY"),
                )
            },
        }
    if isinstance(storage, LocalStorageBackend):
        return {"backend": "local", "root": str(storage.root), "publicBaseUrl": storage.public_base_url}
    return {"backend": type(storage).__name__}


@router.get("/", include_in_schema=False)
async def home():
    page = render_template(
        "pages/home.html",
        {
            "direct_max_text": human_bytes(DIRECT_MAX_FILE_SIZE),
            "direct_max_bytes": DIRECT_MAX_FILE_SIZE,
            "year": datetime.utcnow().year,
        },
    )
    return HTMLResponse(content=page)


def _gallery_cards(images) -> str:
    cards = []
    for image in images:
        name = html.escape(display_name(image.name))
        url = html.escape(image.url, quote=True)
        cards.append(
            "<figure class='card'>"
            f"<a href='{url}' target='_blank' rel='noopener'><img src='{url}' alt='{name}' loading='lazy'></a>"
            f"<figcaption>{name} <a class='download' href='{url}' download='{name}'>Download</a></figcaption>"
            "</figure>"
        )
    return "\n".join(cards)


def _pagination_links(current) -> str:
    if current.total_pages <= 1:
        return ""
    parts = []
    if current.has_previous:
        parts.append(f"<a href='/galeria?page={current.page - 1}'>&larr; Previous</a>")
    parts.append(f"<span>Page {current.page} of {current.total_pages}</span>")
    if current.has_next:
        parts.append(f"<a href='/galeria?page={current.page + 1}'>Next &rarr;</a>")
    return " ".join(parts)


@router.get("/galeria", include_in_schema=False)
async def gallery_page(
    page: int = 1,
    gallery: GalleryService = Depends(get_gallery_service),
):
    error = ""
    images = []
    try:
        images = await gallery.list_images(GALLERY_PREFIX)
    except StorageError as exc:
        logger.error("event=gallery_page_failed category=%s error=%s", exc.category, exc.message)
        error = describe_storage_error(exc, "/api/images")
    current = paginate(images, page, GALLERY_PAGE_SIZE)
    totals = gallery_totals(images)
    body = render_template(
        "pages/gallery.html",
        {
            "count": totals["total_files"],
            "storage_human": human_bytes(totals["total_bytes"]),
            "error": error,
            "cards": _gallery_cards(current.items),
            "pagination": _pagination_links(current),
        },
        raw=("cards", "pagination"),
    )
    return HTMLResponse(content=body, status_code=500 if error else 200)


@router.get("/api/images")
async def list_images(gallery: GalleryService = Depends(get_gallery_service)):
    images = await gallery.list_images(GALLERY_PREFIX)
    metrics.record_listing()
    return ImageListResponse(images=images, count=len(images)).to_json()


@router.post("/api/upload", dependencies=[Depends(enforce_rate_limit)])
async def upload(
    file: Optional[UploadFile] = File(None),
    uploads: UploadService = Depends(get_upload_service),
):
    if file is None:
        raise UploadValidationError("No file was sent.")
    # Declared size first, so oversize files are refused before they are read.
    validate_image_upload(file.filename, file.content_type, file.size, uploads.proxy_max_size)
    data = await file.read()
    result = await uploads.upload(file.filename, file.content_type, data)
    metrics.record_upload(result.size)
    return {
        "success": True,
        "message": "Photo uploaded successfully!",
        "fileId": result.object_name,
        "fileName": result.object_name,
        "viewLink": result.view_url,
    }


@router.post("/api/presigned-url", dependencies=[Depends(enforce_rate_limit)])
async def presigned_url(payload: PresignRequest, uploads: UploadService = Depends(get_upload_service)):
    result = await uploads.presign(payload.file_name, payload.file_type, payload.file_size)
    metrics.record_presign()
    return {
        "success": True,
        "uploadUrl": result.upload_url,
        "viewUrl": result.view_url,
        "objectName": result.object_name,
        "expiresAt": result.expires_at.isoformat(),
        "instructions": {
            "method": "PUT",
            "headers": {
                "Content-Type": payload.file_type,
                "Content-Length": str(payload.file_size or 0),
            },
        },
    }


@router.get("/api/storage/health")
async def storage_health(storage: StorageBackend = Depends(get_storage)):
    config_summary = _storage_config_summary(storage)
    try:
        report = await run_in_threadpool(storage.check)
    except StorageError as exc:
        logger.error("event=storage_health_failed category=%s error=%s", exc.category, exc.message)
        return JSONResponse(
            {
                "success": False,
                "error": describe_storage_error(exc),
                "suggestions": HEALTH_SUGGESTIONS.get(exc.category, []),
                "config": config_summary,
            },
            status_code=500,
        )
    return {"success": True, "message": "Object storage is reachable.", "tests": report, "config": config_summary}


@router.get("/metrics", dependencies=[Depends(enforce_rate_limit)])
def metrics_snapshot():
    response = JSONResponse(metrics.snapshot())
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response


def _local_storage(storage: StorageBackend) -> LocalStorageBackend:
    if not isinstance(storage, LocalStorageBackend):
        raise HTTPException(status_code=404, detail="Not found")
    return storage


@router.put("/storage/upload/{token}", include_in_schema=False)
async def redeem_upload(token: str, request: Request, storage: StorageBackend = Depends(get_storage)):
    local = _local_storage(storage)
    data = await request.body()
    content_type = request.headers.get("content-type", "application/octet-stream")
    try:
        stored = await run_in_threadpool(local.redeem_presigned_upload, token, data, content_type)
    except UnknownUploadToken:
        return JSONResponse({"error": "Unknown upload URL."}, status_code=404)
    except ExpiredUploadToken:
        logger.warning("event=presigned_upload_expired token=%s", token[:8])
        return JSONResponse({"error": "Upload URL has expired."}, status_code=403)
    metrics.record_direct_upload(len(data))
    logger.info("event=direct_upload_success object_name=%s size_bytes=%s", stored.name, len(data))
    return JSONResponse({"etag": stored.etag}, status_code=200, headers={"ETag": stored.etag or ""})


@router.get("/storage/o/{key:path}", include_in_schema=False)
def serve_object(key: str, storage: StorageBackend = Depends(get_storage)):
    local = _local_storage(storage)
    path = local.path_for(key)
    if path is None or not path.is_file():
        raise HTTPException(status_code=404, detail="Not found")

    metrics.record_download()
    logger.info("event=file_served key=%s", key)

    response = FileResponse(path)
    response.headers["Cache-Control"] = f"public, max-age={CACHE_MAX_AGE_SECONDS}"
    return response
