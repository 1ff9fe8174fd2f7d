"""Abstract interface (port) for text extraction from various file formats."""

from abc import ABC, abstractmethod


class TextExtractor(ABC):
    """Port for text extraction — implemented in the infrastructure layer."""

    @abstractmethod
    async def extract(self, content: bytes, mime_type: str) -> str:
        """Extract text content from raw file bytes.

        Args:
            content: The raw blob.
            mime_type: MIME type of the blob.

        Returns:
            The extracted text.

        Raises:
            NoExtractableTextError: the source holds no usable text (e.g. a scan).
            ValueError: the MIME type is not supported.
        """
        ...

    @abstractmethod
    def can_extract(self, mime_type: str) -> bool:
        """Check if the extractor supports the given MIME type."""
        ...
