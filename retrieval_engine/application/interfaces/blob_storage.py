"""Abstract interface (port) for blob storage."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class StoredBlob:
    """Result of storing a blob."""

    locator: str
    filename: str
    size: int
    mime_type: str


class BlobStorage(ABC):
    """Port for raw document content storage."""

    @abstractmethod
    async def store(self, content: bytes, filename: str) -> StoredBlob:
        """Store content and return a locator that ``download`` accepts."""
        ...

    @abstractmethod
    async def download(self, locator: str) -> bytes:
        """Fetch the bytes behind a locator.

        Raises:
            BlobNotFoundError: nothing is stored at the locator.
        """
        ...

    @abstractmethod
    async def delete(self, locator: str) -> bool:
        """Delete a stored blob. Returns False if it did not exist."""
        ...

    @abstractmethod
    def supports(self, locator: str) -> bool:
        """Whether ``download`` understands this locator's scheme."""
        ...
