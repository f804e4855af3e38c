"""Build the process-wide storage backend from configuration."""

from __future__ import annotations

import logging

from app import config
from .base import StorageBackend
from .local import LocalStorageBackend
from .oracle import OracleStorageBackend

logger = logging.getLogger("gallery.storage")


def build_storage_backend() -> StorageBackend:
    backend = config.STORAGE_BACKEND
    if backend == "local":
        logger.info("Using local storage backend at %s", config.UPLOAD_DIR)
        return LocalStorageBackend(root=config.UPLOAD_DIR, public_base_url=config.PUBLIC_BASE_URL)
    if backend == "oracle":
        logger.info(
            "Using Oracle Cloud storage backend region=%s bucket=%s",
            config.ORACLE_REGION,
            config.ORACLE_BUCKET_NAME or "<unset>",
        )
        return OracleStorageBackend(
            namespace=config.ORACLE_NAMESPACE,
            bucket=config.ORACLE_BUCKET_NAME,
            region=config.ORACLE_REGION,
            use_env_credentials=config.ORACLE_USE_ENV_VARS,
            credentials={
                "tenancy": config.ORACLE_TENANCY_OCID,
                "user": config.ORACLE_USER_OCID,
                "fingerprint": config.ORACLE_KEY_FINGERPRINT,
                "key_content": config.ORACLE_PRIVATE_KEY,
                "pass_phrase": config.ORACLE_PRIVATE_KEY_PASSPHRASE,
            },
            config_file=config.ORACLE_CONFIG_FILE,
            config_profile=config.ORACLE_CONFIG_PROFILE,
        )
    raise ValueError(f"Unsupported STORAGE_BACKEND: {backend!r} (expected 'oracle' or 'local')")
