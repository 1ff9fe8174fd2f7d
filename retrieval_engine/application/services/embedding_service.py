"""Embedding service — text to fixed-length vectors with a deterministic local fallback.

The external provider is optional. Whenever it is disabled, missing, failing,
or returns an unusable vector, the service falls back to a hash-derived
vector so that:

1. identical text always yields an identical vector,
2. the system stays functional without any external dependency,
3. dimensionality is constant across code paths.
"""

import asyncio
import hashlib
import logging

from retrieval_engine.application.interfaces.embedding_provider import EmbeddingProvider
from retrieval_engine.domain.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)

_DEFAULT_DIMENSIONS = 128


def fallback_embedding(text: str, dimensions: int = _DEFAULT_DIMENSIONS) -> list[float]:
    """Deterministic hash-based vector of exactly ``dimensions`` floats.

    Each sha256 digest byte maps to ``(b - 128) / 128`` (roughly [-1, 1]); the
    32 values repeat cyclically up to the target length.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    values = [(byte - 128) / 128 for byte in digest]
    return [values[i % len(values)] for i in range(dimensions)]


class EmbeddingService:
    """Application service that turns text into embedding vectors.

    The provider and the ``enabled`` flag are fixed at construction; nothing
    is checked lazily at call time.
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None = None,
        *,
        enabled: bool = False,
        dimensions: int = _DEFAULT_DIMENSIONS,
    ):
        self._provider = provider
        self._enabled = enabled and provider is not None
        self._dimensions = dimensions

        if enabled and provider is None:
            logger.warning(
                "Embeddings enabled but no provider is configured; falling back to hash-based vectors"
            )
        elif self._enabled:
            logger.info("Embeddings enabled via %s (dims=%d)", provider.name, dimensions)

    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        """Embed a single text. Never raises on provider failure."""
        return await self._embed(text, query=False)

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query. Same fallback rules as ``embed``."""
        return await self._embed(text, query=True)

    async def _embed(self, text: str, *, query: bool) -> list[float]:
        if not self._enabled:
            return fallback_embedding(text, self._dimensions)

        try:
            if query:
                vector = await self._provider.embed_query(text)
            else:
                vector = await self._provider.embed(text)
        except EmbeddingProviderError as exc:
            logger.warning("Embedding provider failed, using fallback: %s", exc)
            return fallback_embedding(text, self._dimensions)
        except Exception:
            logger.exception("Unexpected embedding provider error, using fallback")
            return fallback_embedding(text, self._dimensions)

        if not vector:
            logger.warning("Received empty embedding vector from %s, using fallback", self._provider.name)
            return fallback_embedding(text, self._dimensions)

        if len(vector) != self._dimensions:
            logger.warning(
                "Embedding from %s has %d dims (expected %d), using fallback",
                self._provider.name,
                len(vector),
                self._dimensions,
            )
            return fallback_embedding(text, self._dimensions)

        return [float(v) for v in vector]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts concurrently; output order matches input order."""
        if not texts:
            return []
        return list(await asyncio.gather(*(self.embed(text) for text in texts)))
