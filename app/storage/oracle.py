"""Oracle Cloud Infrastructure Object Storage backend."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from app.core.exceptions import AuthError, BackendNotFound, BackendUnavailable, ConfigError, StorageError
from .base import PresignedUpload, StoredObject

logger = logging.getLogger("gallery.storage")

LIST_FIELDS = "name,size,etag,timeCreated,timeModified"
NOT_FOUND_CODES = {"BucketNotFound", "NamespaceNotFound", "NotFound"}
REQUIRED_ENV_CREDENTIALS = {
    "tenancy": "ORACLE_TENANCY_OCID",
    "user": "ORACLE_USER_OCID",
    "fingerprint": "ORACLE_KEY_FINGERPRINT",
    "key_content": "ORACLE_PRIVATE_KEY",
}


def object_view_url(region: str, namespace: str, bucket: str, object_name: str) -> str:
    return (
        f"https://objectstorage.{region}.oraclecloud.com"
        f"/n/{namespace}/b/{bucket}/o/{quote(object_name, safe='')}"
    )


def _parse_http_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


class OracleStorageBackend:
    """Thin wrapper around ``oci.object_storage.ObjectStorageClient``.

    The SDK client is created on first use and shared by every request.
    """

    def __init__(
        self,
        *,
        namespace: str,
        bucket: str,
        region: str,
        use_env_credentials: bool = False,
        credentials: Optional[Dict[str, str]] = None,
        config_file: str = "~/.oci/config",
        config_profile: str = "DEFAULT",
        client: Any = None,
    ):
        self.namespace = namespace
        self.bucket = bucket
        self.region = region
        self.use_env_credentials = use_env_credentials
        self.credentials = credentials or {}
        self.config_file = config_file
        self.config_profile = config_profile
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def auth_method(self) -> str:
        return "environment" if self.use_env_credentials else "config-file"

    def _build_config(self, oci) -> Dict[str, Any]:
        if self.use_env_credentials:
            for field, env_name in REQUIRED_ENV_CREDENTIALS.items():
                if not self.credentials.get(field):
                    raise ConfigError(
                        f"Environment variable {env_name} is required when ORACLE_USE_ENV_VARS=true."
                    )
            config = {
                "tenancy": self.credentials["tenancy"],
                "user": self.credentials["user"],
                "fingerprint": self.credentials["fingerprint"],
                "key_content": self.credentials["key_content"].replace("\\n", "\n"),
                "region": self.region,
            }
            if self.credentials.get("pass_phrase"):
                config["pass_phrase"] = self.credentials["pass_phrase"]
        else:
            try:
                config = oci.config.from_file(self.config_file, self.config_profile)
            except oci.exceptions.ClientError as exc:
                raise ConfigError(f"Could not load OCI config file {self.config_file}: {exc}") from exc
            config.setdefault("region", self.region)
        try:
            oci.config.validate_config(config)
        except oci.exceptions.ClientError as exc:
            raise ConfigError(f"Invalid OCI configuration: {exc}") from exc
        return config

    def _get_client(self):
        if not self.namespace or not self.bucket:
            raise ConfigError(
                "Namespace and bucket name are required. Set ORACLE_NAMESPACE and ORACLE_BUCKET_NAME."
            )
        if self._client is not None:
            return self._client
        with self._client_lock:
            if self._client is None:
                try:
                    import oci
                except ImportError as exc:  # pragma: no cover - dependency missing
                    raise ConfigError("The oci package is not installed. Install it via 'pip install oci'.") from exc
                config = self._build_config(oci)
                # The SDK loads the private key here, so a bad key surfaces on construction.
                try:
                    self._client = oci.object_storage.ObjectStorageClient(config)
                except (oci.exceptions.ClientError, ValueError) as exc:
                    raise ConfigError(f"Could not load the OCI signing key: {exc}") from exc
                logger.info(
                    "event=oracle_client_ready region=%s namespace=%s bucket=%s auth=%s",
                    self.region,
                    self.namespace,
                    self.bucket,
                    self.auth_method,
                )
        return self._client

    @contextmanager
    def _translate_errors(self, operation: str):
        from oci.exceptions import ClientError, ServiceError

        try:
            yield
        except StorageError:
            raise
        except ServiceError as exc:
            logger.error(
                "event=oracle_service_error operation=%s status=%s code=%s request_id=%s",
                operation,
                exc.status,
                exc.code,
                getattr(exc, "request_id", None),
            )
            if exc.status == 404 or exc.code in NOT_FOUND_CODES:
                raise BackendNotFound(f"Bucket {self.bucket} not found in namespace {self.namespace}") from exc
            if exc.status in (401, 403):
                raise AuthError(f"Oracle Cloud rejected the request ({exc.code})") from exc
            raise BackendUnavailable(f"Oracle Cloud {operation} failed with status {exc.status}") from exc
        except ClientError as exc:
            raise ConfigError(f"Invalid OCI client configuration: {exc}") from exc
        except Exception as exc:
            logger.error("event=oracle_request_failed operation=%s error=%s", operation, exc)
            raise BackendUnavailable(f"Oracle Cloud {operation} failed") from exc

    def list_objects(self, prefix: str) -> List[StoredObject]:
        client = self._get_client()
        objects: List[StoredObject] = []
        start = None
        with self._translate_errors("list_objects"):
            while True:
                kwargs = {"prefix": prefix, "fields": LIST_FIELDS}
                if start:
                    kwargs["start"] = start
                response = client.list_objects(self.namespace, self.bucket, **kwargs)
                for summary in response.data.objects or []:
                    objects.append(
                        StoredObject(
                            name=summary.name,
                            size=summary.size,
                            last_modified=getattr(summary, "time_modified", None) or summary.time_created,
                            etag=summary.etag,
                        )
                    )
                start = response.data.next_start_with
                if not start:
                    break
        return objects

    def put_object(self, key: str, data: bytes, content_type: str, size: Optional[int] = None) -> StoredObject:
        client = self._get_client()
        length = len(data) if size is None else size
        with self._translate_errors("put_object"):
            response = client.put_object(
                self.namespace,
                self.bucket,
                key,
                data,
                content_length=length,
                content_type=content_type,
            )
        headers = response.headers or {}
        return StoredObject(
            name=key,
            size=length,
            last_modified=_parse_http_date(headers.get("last-modified")) or datetime.now(timezone.utc),
            etag=headers.get("etag"),
        )

    def create_presigned_upload(self, key: str, ttl_seconds: int) -> PresignedUpload:
        from oci.object_storage.models import CreatePreauthenticatedRequestDetails

        client = self._get_client()
        now = datetime.now(timezone.utc)
        details = CreatePreauthenticatedRequestDetails(
            name=f"upload-{now.strftime('%Y%m%dT%H%M%S%f')}",
            object_name=key,
            access_type=CreatePreauthenticatedRequestDetails.ACCESS_TYPE_OBJECT_WRITE,
            time_expires=now + timedelta(seconds=ttl_seconds),
        )
        with self._translate_errors("create_preauthenticated_request"):
            response = client.create_preauthenticated_request(self.namespace, self.bucket, details)
        request = response.data
        upload_url = getattr(request, "full_path", None)
        if not upload_url:
            upload_url = f"https://objectstorage.{self.region}.oraclecloud.com{request.access_uri}"
        return PresignedUpload(upload_url=upload_url, expires_at=request.time_expires)

    def view_url(self, key: str) -> str:
        return object_view_url(self.region, self.namespace, self.bucket, key)

    def check(self) -> Dict[str, Any]:
        client = self._get_client()
        with self._translate_errors("get_bucket"):
            bucket = client.get_bucket(self.namespace, self.bucket).data
            listing = client.list_objects(self.namespace, self.bucket, limit=5).data
        names = [obj.name for obj in listing.objects or []]
        return {
            "backend": "oracle",
            "bucket": {
                "name": bucket.name,
                "compartmentId": bucket.compartment_id,
                "namespace": bucket.namespace,
                "publicAccessType": bucket.public_access_type,
            },
            "objects": {"count": len(names), "sample": names[:3]},
        }
