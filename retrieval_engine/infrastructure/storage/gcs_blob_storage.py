"""Google Cloud Storage blob storage.

Locators are ``gs://<bucket>/<object path>``; the ``gcs://`` spelling is
accepted too. Uploads go to the configured bucket under ``files/``.
The google-cloud-storage client is synchronous, so every call runs in a
worker thread.
"""

import asyncio
import logging
import mimetypes
from typing import Any
from urllib.parse import urlparse

from google.api_core.exceptions import NotFound
from google.cloud import storage

from retrieval_engine.application.interfaces.blob_storage import BlobStorage, StoredBlob
from retrieval_engine.domain.exceptions import BlobNotFoundError, UnsupportedLocatorError
from retrieval_engine.infrastructure.storage.local_file_storage import stamped_filename

logger = logging.getLogger(__name__)

GCS_SCHEMES = ("gs", "gcs")


def parse_gcs_locator(locator: str) -> tuple[str, str]:
    """Split a ``gs://bucket/path`` locator into (bucket, object path)."""
    parsed = urlparse(locator)
    object_path = parsed.path.lstrip("/")
    if parsed.scheme not in GCS_SCHEMES or not parsed.netloc or not object_path:
        raise UnsupportedLocatorError(locator)
    return parsed.netloc, object_path


class GCSBlobStorage(BlobStorage):
    """Infrastructure adapter for blob storage in Google Cloud Storage."""

    def __init__(
        self,
        project_id: str = "",
        bucket_name: str = "",
        *,
        client: Any = None,
    ):
        self._project_id = project_id.strip() or None
        self._bucket_name = bucket_name.strip()
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = storage.Client(project=self._project_id)
        return self._client

    def _blob(self, bucket_name: str, object_path: str) -> Any:
        return self._get_client().bucket(bucket_name).blob(object_path)

    def supports(self, locator: str) -> bool:
        try:
            parse_gcs_locator(locator)
        except UnsupportedLocatorError:
            return False
        return True

    async def store(self, content: bytes, filename: str) -> StoredBlob:
        """Upload content to ``gs://<bucket>/files/`` with a collision-free name."""
        if not self._bucket_name:
            raise ValueError("GCS uploads need a bucket name")

        stamped_name = stamped_filename(filename)
        object_path = f"files/{stamped_name}"
        mime_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        blob = self._blob(self._bucket_name, object_path)
        await asyncio.to_thread(blob.upload_from_string, content, content_type=mime_type)

        locator = f"gs://{self._bucket_name}/{object_path}"
        logger.info("Stored blob: %s (%d bytes)", locator, len(content))
        return StoredBlob(locator=locator, filename=stamped_name, size=len(content), mime_type=mime_type)

    async def download(self, locator: str) -> bytes:
        bucket_name, object_path = parse_gcs_locator(locator)
        blob = self._blob(bucket_name, object_path)
        try:
            content = await asyncio.to_thread(blob.download_as_bytes)
        except NotFound as exc:
            raise BlobNotFoundError(locator) from exc
        logger.debug("Downloaded %s (%d bytes)", locator, len(content))
        return content

    async def delete(self, locator: str) -> bool:
        bucket_name, object_path = parse_gcs_locator(locator)
        blob = self._blob(bucket_name, object_path)
        try:
            await asyncio.to_thread(blob.delete)
        except NotFound:
            logger.warning("Blob already gone: %s", locator)
            return False
        logger.info("Deleted blob: %s", locator)
        return True
