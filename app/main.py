import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import router
from app.cleaner import start_cleaner
from app.config import CORS_ORIGINS, ENABLE_CLEANER, PRESIGN_TTL_SECONDS
from app.core.exceptions import register_exception_handlers
from app.storage import build_storage_backend

app = FastAPI(title="Wedding Gallery API", version="1.0.0")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("gallery")

origins = [origin.strip() for origin in CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One backend client for the whole process; handlers reach it through get_storage.
app.state.storage = build_storage_backend()

app.include_router(router)
register_exception_handlers(app)

if ENABLE_CLEANER:
    start_cleaner(app.state.storage, logger, PRESIGN_TTL_SECONDS)
