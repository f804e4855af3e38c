from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.templates import render_template

logger = logging.getLogger("gallery")


class UploadValidationError(Exception):
    """Client-correctable upload problem (bad type, oversize, missing field)."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        self.message = f"Rate limit exceeded. Try again in {retry_after} seconds."
        super().__init__(self.message)


class StorageError(Exception):
    """Base class for object storage failures."""

    category = "unknown"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ConfigError(StorageError):
    """Required backend credentials or identifiers are missing or invalid."""

    category = "config"


class BackendNotFound(StorageError):
    """The bucket/container (or namespace) does not exist."""

    category = "not_found"


ContainerNotFound = BackendNotFound


class AuthError(StorageError):
    """The backend rejected our credentials or request signature."""

    category = "auth"


class BackendUnavailable(StorageError):
    category = "unknown"


STORAGE_SETTINGS_HINT = "Check the ORACLE_* environment settings and ~/.oci/config."

GUIDANCE = {
    "not_found": "The bucket was not found or is not configured correctly. Check the object storage configuration.",
    "auth": "Authentication error. Check the Oracle Cloud credentials in ~/.oci/config or the ORACLE_* environment variables.",
}

FALLBACK_MESSAGES = {
    "/api/images": "Internal server error while fetching images.",
    "/api/upload": "Internal server error. Please try again in a few moments.",
    "/api/presigned-url": "Failed to generate the upload URL. Please try again.",
}
DEFAULT_FALLBACK = "Internal server error."


def describe_storage_error(exc: StorageError, path: str = "") -> str:
    """Human-readable message for a storage failure, safe to return to clients."""
    if exc.category == "config":
        return f"{exc.message} {STORAGE_SETTINGS_HINT}".strip()
    if exc.category in GUIDANCE:
        return GUIDANCE[exc.category]
    return FALLBACK_MESSAGES.get(path, DEFAULT_FALLBACK)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UploadValidationError)
    async def validation_handler(request: Request, exc: UploadValidationError):
        logger.warning("event=upload_rejected path=%s reason=%s", request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("event=request_invalid path=%s errors=%s", request.url.path, exc.errors())
        return JSONResponse({"error": "Invalid request body."}, status_code=400)

    @app.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError):
        logger.error(
            "event=storage_error path=%s category=%s error=%s",
            request.url.path,
            exc.category,
            exc.message,
        )
        message = describe_storage_error(exc, request.url.path)
        return JSONResponse({"error": message}, status_code=500)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("event=rate_limited path=%s retry_after=%s", request.url.path, exc.retry_after)
        return JSONResponse(
            {"error": exc.message},
            status_code=429,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.exception("event=unhandled_error path=%s error=%s", request.url.path, exc)
        return JSONResponse(
            {"error": FALLBACK_MESSAGES.get(request.url.path, DEFAULT_FALLBACK)},
            status_code=500,
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        accept = request.headers.get("accept", "")
        detail = exc.detail if hasattr(exc, "detail") else "Not Found"
        if request.url.path.startswith("/api/") or (
            "application/json" in accept and "text/html" not in accept
        ):
            return JSONResponse({"detail": detail}, status_code=404)
        detail_text = (
            detail
            if detail not in (None, "", "Not found", "Not Found")
            else "The page you were looking for isn't here. It may have been removed or its link is outdated."
        )
        html = render_template("errors/404.html", {"detail": detail_text})
        return HTMLResponse(content=html, status_code=404)
