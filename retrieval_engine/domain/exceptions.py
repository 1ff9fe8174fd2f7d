"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class DocumentValidationError(Exception):
    """Raised when a document's content cannot be ingested at all.

    Validation failures are terminal: the document goes straight to FAILED
    and the ingestion job must not be retried.
    """


class NoExtractableTextError(DocumentValidationError):
    """Raised when text extraction yields no usable text (e.g. a scanned PDF)."""

    def __init__(
        self,
        message: str = (
            "No extractable text found. This might be a scanned image document "
            "(OCR is not supported) or a protected document."
        ),
    ):
        super().__init__(message)


class DocumentNotReadyError(Exception):
    """Raised when a query targets a document that has not finished ingestion."""

    def __init__(self, document_id: str, status: str):
        self.document_id = document_id
        self.status = status
        super().__init__(f"Document '{document_id}' is not ready (status={status})")


class EmbeddingProviderError(Exception):
    """Raised when an embedding provider fails or returns an unusable vector.

    Provider-agnostic — works for Vertex AI, OpenRouter, etc.
    """

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        prefix = f"[{provider}] {status_code}" if status_code is not None else f"[{provider}]"
        super().__init__(f"{prefix}: {message}")


class VectorSearchUnavailableError(Exception):
    """Raised when the backing store has no native vector-distance operator."""


class BlobNotFoundError(FileNotFoundError):
    """Raised when a blob locator does not resolve to stored content."""

    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"Blob not found: {locator}")


class UnsupportedLocatorError(DocumentValidationError):
    """Raised when no configured blob store understands a locator's scheme."""

    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"Unsupported blob locator: {locator}")
