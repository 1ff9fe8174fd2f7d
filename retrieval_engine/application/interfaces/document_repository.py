"""Abstract repository interface (port) for document lifecycle records."""

from abc import ABC, abstractmethod

from retrieval_engine.domain.entities.document import Document, DocumentStatus


class DocumentRepository(ABC):
    """Port for document persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def create(self, document: Document) -> Document:
        """Persist a new document and return it with the generated ID."""
        ...

    @abstractmethod
    async def get_by_id(self, document_id: str) -> Document | None:
        """Retrieve a single document by ID."""
        ...

    @abstractmethod
    async def list_all(self, skip: int = 0, limit: int = 100) -> list[Document]:
        """List documents, most recent first."""
        ...

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        *,
        error_message: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        """Atomically update a single document's status and error message.

        Raises:
            EntityNotFoundError: the document does not exist.
        """
        ...

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete a document record. Returns False if it did not exist."""
        ...
