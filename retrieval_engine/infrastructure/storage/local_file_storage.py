"""Local filesystem blob storage.

Storage layout:
    <upload_dir>/files/<stem>_<YYYYMMDD_HHmmss>_<id>.<ext>

Locators are absolute ``file://`` URIs; plain filesystem paths are accepted
on download too.
"""

import logging
import mimetypes
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import unquote, urlparse

from retrieval_engine.application.interfaces.blob_storage import BlobStorage, StoredBlob
from retrieval_engine.domain.exceptions import BlobNotFoundError

logger = logging.getLogger(__name__)


def _datetime_stamp() -> str:
    """UTC datetime stamp suitable for filenames: YYYYMMDD_HHmmss."""
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def _sanitise(name: str, max_len: int = 80) -> str:
    """Replace non-word characters with underscores and truncate."""
    return re.sub(r"[^\w\-]", "_", name)[:max_len].strip("_") or "unnamed"


def stamped_filename(filename: str) -> str:
    """Collision-free name: <stem>_<YYYYMMDD_HHmmss>_<id>.<ext>."""
    stem = Path(filename).stem
    suffix = Path(filename).suffix
    return f"{_sanitise(stem)}_{_datetime_stamp()}_{uuid.uuid4().hex[:8]}{suffix}"


def locator_to_path(locator: str) -> Path:
    """Resolve a ``file://`` URI or a plain path to a filesystem path."""
    if locator.startswith("file://"):
        return Path(unquote(urlparse(locator).path))
    return Path(locator)


class LocalFileStorage(BlobStorage):
    """Infrastructure adapter for blob storage on the local filesystem."""

    def __init__(self, upload_dir: str):
        self._upload_dir = Path(upload_dir)
        self._upload_dir.mkdir(parents=True, exist_ok=True)

    def supports(self, locator: str) -> bool:
        return urlparse(locator).scheme in ("", "file")

    async def store(self, content: bytes, filename: str) -> StoredBlob:
        """Write content under ``<upload_dir>/files/`` with a collision-free name."""
        files_dir = self._upload_dir / "files"
        files_dir.mkdir(parents=True, exist_ok=True)

        stamped_name = stamped_filename(filename)

        dest_path = (files_dir / stamped_name).resolve()
        dest_path.write_bytes(content)

        mime_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        logger.info("Stored blob: %s (%d bytes)", dest_path, len(content))

        return StoredBlob(
            locator=dest_path.as_uri(),
            filename=stamped_name,
            size=len(content),
            mime_type=mime_type,
        )

    async def download(self, locator: str) -> bytes:
        path = locator_to_path(locator)
        if not path.is_file():
            raise BlobNotFoundError(locator)
        return path.read_bytes()

    async def delete(self, locator: str) -> bool:
        path = locator_to_path(locator)
        if not path.is_file():
            logger.warning("Blob already gone: %s", locator)
            return False
        path.unlink()
        logger.info("Deleted blob: %s", path)
        return True
