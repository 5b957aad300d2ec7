"""Blob storage backends for the session snapshot."""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from uuid import uuid4

import anyio
import requests
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from wa_relay.config import Settings
from wa_relay.logging_config import get_logger
from wa_relay.services.errors import StorageUnavailable

logger = get_logger("blob_storage")

GCS_ERRORS = (GoogleAPIError, GoogleAuthError, requests.RequestException, OSError)


class BlobStorage(ABC):
    """Object get/put by key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the object's bytes, or None if it does not exist."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any prior object."""


class GCSBlobStorage(BlobStorage):
    """Google Cloud Storage bucket backend."""

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None):
        self.bucket_name = bucket_name
        self._client = client

    def _bucket(self) -> storage.Bucket:
        if not self.bucket_name:
            raise StorageUnavailable("GCS bucket name is not configured (BUCKET_NAME env var not set)")
        if self._client is None:
            self._client = storage.Client()
        return self._client.bucket(self.bucket_name)

    async def get(self, key: str) -> Optional[bytes]:
        def _download() -> Optional[bytes]:
            try:
                return self._bucket().blob(key).download_as_bytes()
            except NotFound:
                return None

        try:
            data = await anyio.to_thread.run_sync(_download)
        except GCS_ERRORS as exc:
            logger.error(
                "GCS download failed",
                extra={"context": {"bucket": self.bucket_name, "key": key, "error": str(exc)}},
            )
            raise StorageUnavailable(f"Failed to download gs://{self.bucket_name}/{key}: {exc}") from exc

        if data is None:
            logger.info(f"{key} not found in bucket {self.bucket_name}")
        else:
            logger.info(f"{key} downloaded from {self.bucket_name}")
        return data

    async def put(self, key: str, data: bytes) -> None:
        def _upload() -> None:
            self._bucket().blob(key).upload_from_string(data, content_type="application/json")

        try:
            await anyio.to_thread.run_sync(_upload)
        except GCS_ERRORS as exc:
            logger.error(
                "GCS upload failed",
                extra={"context": {"bucket": self.bucket_name, "key": key, "error": str(exc)}},
            )
            raise StorageUnavailable(f"Failed to upload gs://{self.bucket_name}/{key}: {exc}") from exc

        logger.info(f"{key} uploaded to {self.bucket_name}")


class LocalBlobStorage(BlobStorage):
    """Directory backed storage, for local runs and tests."""

    def __init__(self, root_path: str | Path):
        self.root_path = Path(root_path)

    def _object_path(self, key: str) -> Path:
        return self.root_path / key

    async def get(self, key: str) -> Optional[bytes]:
        def _read() -> Optional[bytes]:
            path = self._object_path(key)
            try:
                return path.read_bytes()
            except FileNotFoundError:
                return None

        try:
            return await anyio.to_thread.run_sync(_read)
        except OSError as exc:
            raise StorageUnavailable(f"Failed to read {key} from {self.root_path}: {exc}") from exc

    async def put(self, key: str, data: bytes) -> None:
        def _write() -> None:
            target = self._object_path(key)
            target.parent.mkdir(parents=True, exist_ok=True)
            # Write then rename so readers never see a half-written object.
            staging = target.with_name(f".{target.name}.{uuid4().hex}.tmp")
            staging.write_bytes(data)
            os.replace(staging, target)

        try:
            await anyio.to_thread.run_sync(_write)
        except OSError as exc:
            raise StorageUnavailable(f"Failed to write {key} to {self.root_path}: {exc}") from exc


def build_blob_storage(settings: Settings) -> BlobStorage:
    if settings.session_storage_backend == "local":
        return LocalBlobStorage(settings.local_storage_dir)
    return GCSBlobStorage(settings.bucket_name or "")
