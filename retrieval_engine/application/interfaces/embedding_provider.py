"""Abstract interface (port) for external embedding providers."""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Port for generating text embeddings — implemented in the infrastructure layer.

    Each implementation parses its own provider's response schema and
    normalizes it to a plain list of floats. Any failure, including an empty
    vector, is raised as ``EmbeddingProviderError``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier used in logs and errors."""
        ...

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate the embedding vector for a single text."""
        ...

    async def embed_query(self, text: str) -> list[float]:
        """Generate the embedding for a search query.

        Providers whose models distinguish queries from documents override this.
        """
        return await self.embed(text)
