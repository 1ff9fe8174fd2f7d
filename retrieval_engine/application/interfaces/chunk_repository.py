"""Abstract repository interface (port) for document chunks and vector search."""

from abc import ABC, abstractmethod

from retrieval_engine.domain.entities.chunk import Chunk, ScoredChunk


class ChunkRepository(ABC):
    """Port for chunk persistence and nearest-neighbour search."""

    @abstractmethod
    async def store_chunks(self, chunks: list[Chunk]) -> None:
        """Persist a batch of chunks (with their embeddings, where present)."""
        ...

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks for a document. Returns count of deleted rows."""
        ...

    @abstractmethod
    async def list_by_document(
        self,
        document_id: str,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Chunk]:
        """List a document's chunks ordered by chunk_index."""
        ...

    @abstractmethod
    async def count_by_document(self, document_id: str) -> int:
        """Count the chunks stored for a document."""
        ...

    @property
    @abstractmethod
    def supports_vector_search(self) -> bool:
        """Whether the backing store offers a native vector-distance operator."""
        ...

    @abstractmethod
    async def search_similar(
        self,
        document_id: str,
        query_embedding: list[float],
        *,
        limit: int = 20,
    ) -> list[ScoredChunk]:
        """Find a document's chunks most similar to the query embedding.

        Args:
            document_id: Only chunks of this document are considered.
            query_embedding: The query vector.
            limit: Maximum number of results.

        Returns:
            List of ScoredChunk ordered by descending cosine similarity.

        Raises:
            VectorSearchUnavailableError: the store cannot run vector queries.
        """
        ...
