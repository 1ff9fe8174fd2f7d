"""Blob storage that dispatches each locator to the backend owning its scheme."""

from retrieval_engine.application.interfaces.blob_storage import BlobStorage, StoredBlob
from retrieval_engine.domain.exceptions import UnsupportedLocatorError


class SchemeRoutedBlobStorage(BlobStorage):
    """Routes download/delete by locator scheme; new blobs go to ``primary``.

    A locator no backend supports raises ``UnsupportedLocatorError``, which is
    a validation failure: ingesting it can never succeed.
    """

    def __init__(self, primary: BlobStorage, *others: BlobStorage):
        self._primary = primary
        self._backends = (primary, *others)

    def _backend_for(self, locator: str) -> BlobStorage:
        for backend in self._backends:
            if backend.supports(locator):
                return backend
        raise UnsupportedLocatorError(locator)

    def supports(self, locator: str) -> bool:
        return any(backend.supports(locator) for backend in self._backends)

    async def store(self, content: bytes, filename: str) -> StoredBlob:
        return await self._primary.store(content, filename)

    async def download(self, locator: str) -> bytes:
        return await self._backend_for(locator).download(locator)

    async def delete(self, locator: str) -> bool:
        return await self._backend_for(locator).delete(locator)
