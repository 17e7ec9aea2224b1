"""Google Cloud Storage adapter: object metadata, downloads, signed URLs, listing.

The google-cloud-storage SDK is synchronous; every call is pushed to a worker
thread so request handlers never block the event loop.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
from datetime import timedelta

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage
from google.oauth2 import service_account

from .config import AppConfig
from .errors import StorageError, StoredFileNotFound
from .models.files import StoredObjectInfo

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "video/mp4"


def _load_credentials(encoded_key: str) -> service_account.Credentials | None:
    """Decode a base64-encoded service account JSON key.

    Returns None when no key is configured (application default credentials).

    Raises:
        StorageError: If the key is not valid base64 JSON.
    """
    if not encoded_key:
        return None
    try:
        info = json.loads(base64.b64decode(encoded_key).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StorageError(
            "GOOGLE_SERVICE_ACCOUNT_KEY is not a valid base64-encoded JSON key",
            details="Failed to initialize Google Cloud Storage client.",
        ) from exc
    return service_account.Credentials.from_service_account_info(info)


class GCSStorage:
    """Object storage collaborator bound to a single bucket."""

    def __init__(
        self,
        client: storage.Client,
        bucket_name: str,
        *,
        read_url_ttl: int = 3600,
        write_url_ttl: int = 900,
    ) -> None:
        bucket_name = (bucket_name or "").strip()
        if not bucket_name:
            raise StorageError(
                "STORAGE_BUCKET environment variable is not set.",
                details="Failed to initialize Google Cloud Storage client.",
            )
        self._client = client
        self._bucket = client.bucket(bucket_name)
        self.read_url_ttl = read_url_ttl
        self.write_url_ttl = write_url_ttl

    @classmethod
    def from_config(cls, cfg: AppConfig) -> GCSStorage:
        """Build the storage client from config (called once at startup)."""
        credentials = _load_credentials(cfg.service_account_key)
        project = cfg.gcp_project or getattr(credentials, "project_id", None)
        try:
            client = storage.Client(project=project, credentials=credentials)
        except Exception as exc:
            logger.exception("Failed to initialize Google Cloud Storage")
            raise StorageError(
                f"Storage client init failed: {exc}",
                details="Failed to initialize Google Cloud Storage client.",
            ) from exc
        logger.info("Created storage client (project=%s, bucket=%s)", project, cfg.storage_bucket)
        return cls(
            client,
            cfg.storage_bucket,
            read_url_ttl=cfg.signed_read_url_ttl,
            write_url_ttl=cfg.signed_write_url_ttl,
        )

    @property
    def bucket_name(self) -> str:
        return self._bucket.name

    async def get_metadata(self, filename: str) -> StoredObjectInfo:
        """Return size and content type without downloading the body.

        Raises:
            StoredFileNotFound: If the object does not exist.
        """
        blob = await asyncio.to_thread(self._bucket.get_blob, filename)
        if blob is None:
            raise StoredFileNotFound(f"File not found in bucket: {filename}")
        return StoredObjectInfo(
            size_bytes=int(blob.size or 0),
            content_type=blob.content_type or DEFAULT_CONTENT_TYPE,
        )

    async def download_bytes(self, filename: str) -> bytes:
        """Download an object's body into memory."""
        blob = self._bucket.blob(filename)
        try:
            return await asyncio.to_thread(blob.download_as_bytes)
        except gcs_exceptions.NotFound as exc:
            raise StoredFileNotFound(f"File not found in bucket: {filename}") from exc

    async def signed_read_url(self, filename: str, ttl: int | None = None) -> str:
        """V4 signed GET URL (default lifetime one hour)."""
        blob = self._bucket.blob(filename)
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v4",
            method="GET",
            expiration=timedelta(seconds=ttl or self.read_url_ttl),
        )

    async def signed_write_url(self, filename: str, content_type: str, ttl: int | None = None) -> str:
        """V4 signed PUT URL bound to *content_type* (default lifetime 15 minutes)."""
        blob = self._bucket.blob(filename)
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v4",
            method="PUT",
            expiration=timedelta(seconds=ttl or self.write_url_ttl),
            content_type=content_type,
        )

    async def list_files(self) -> list[str]:
        """Names of every object in the bucket."""

        def _names() -> list[str]:
            return [blob.name for blob in self._client.list_blobs(self._bucket)]

        return await asyncio.to_thread(_names)

    def close(self) -> None:
        self._client.close()
