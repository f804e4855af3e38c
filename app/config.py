import os
from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.getenv("APP_ENV", "development")
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "oracle").lower()

UPLOAD_DIR = os.getenv(
    "UPLOAD_DIR", os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "uploads"))
)
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

GALLERY_PREFIX = os.getenv("GALLERY_PREFIX", "casamento/")
GALLERY_PAGE_SIZE = max(1, int(os.getenv("GALLERY_PAGE_SIZE", "20")))
PROXY_MAX_FILE_SIZE = int(os.getenv("PROXY_MAX_FILE_SIZE_BYTES", str(10 * 1024 * 1024)))
DIRECT_MAX_FILE_SIZE = int(os.getenv("DIRECT_MAX_FILE_SIZE_BYTES", str(20 * 1024 * 1024)))
PRESIGN_TTL_SECONDS = int(os.getenv("PRESIGN_TTL_SECONDS", str(15 * 60)))

ENABLE_CLEANER = os.getenv("ENABLE_CLEANER", "true").lower() in {"true", "1", "yes"}
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
CACHE_MAX_AGE_SECONDS = int(os.getenv("CACHE_MAX_AGE_SECONDS", "3600"))

# Oracle Cloud Object Storage
ORACLE_USE_ENV_VARS = APP_ENV == "production" or os.getenv(
    "ORACLE_USE_ENV_VARS", "false"
).lower() in {"true", "1", "yes"}
ORACLE_TENANCY_OCID = os.getenv("ORACLE_TENANCY_OCID", "")
ORACLE_USER_OCID = os.getenv("ORACLE_USER_OCID", "")
ORACLE_KEY_FINGERPRINT = os.getenv("ORACLE_KEY_FINGERPRINT", "")
ORACLE_PRIVATE_KEY = os.getenv("ORACLE_PRIVATE_KEY", "")
ORACLE_PRIVATE_KEY_PASSPHRASE = os.getenv("ORACLE_PRIVATE_KEY_PASSPHRASE", "")
ORACLE_CONFIG_FILE = os.getenv("ORACLE_CONFIG_FILE", "~/.oci/config")
ORACLE_CONFIG_PROFILE = os.getenv("ORACLE_CONFIG_PROFILE", "DEFAULT")
ORACLE_NAMESPACE = os.getenv("ORACLE_NAMESPACE", "")
ORACLE_BUCKET_NAME = os.getenv("ORACLE_BUCKET_NAME", "")
ORACLE_REGION = os.getenv("ORACLE_REGION", "us-ashburn-1")

# Redis Configuration
REDIS_URL = os.getenv("REDIS_URL", "")
