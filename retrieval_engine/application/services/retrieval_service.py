"""Retrieval service — ranks a document's chunks for a query.

Ranking is an ordered chain of strategies. Each strategy either returns a
scored list or ``None`` when it does not apply; the first non-empty result
wins:

1. StoreVectorSearchStrategy — nearest-neighbour query in the chunk store
2. CosineSimilarityStrategy  — in-process cosine against stored embeddings
3. KeywordOverlapStrategy    — token/bigram overlap, needs no embeddings

The winning list is capped at top_k and trimmed to a total character budget.
"""

import logging
from abc import ABC, abstractmethod

from retrieval_engine.application.interfaces.chunk_repository import ChunkRepository
from retrieval_engine.application.services.embedding_service import EmbeddingService
from retrieval_engine.application.services.scoring import (
    cosine_similarity,
    keyword_score,
    limit_context_by_length,
    sort_by_relevance,
)
from retrieval_engine.domain.entities.chunk import Chunk, ScoredChunk

logger = logging.getLogger(__name__)

_DEFAULT_TOP_K = 6
_DEFAULT_MAX_CONTEXT_CHARS = 24000
_DEFAULT_OVERFETCH = 2


class RetrievalStrategy(ABC):
    """One tier of the retrieval cascade."""

    name: str = "strategy"

    @abstractmethod
    async def search(
        self, query: str, candidates: list[Chunk], top_k: int
    ) -> list[ScoredChunk] | None:
        """Score candidates for the query, or return None if not applicable."""
        ...


class StoreVectorSearchStrategy(RetrievalStrategy):
    """Store-side nearest-neighbour search, over-fetching to survive trimming."""

    name = "vector_store"

    def __init__(
        self,
        embedder: EmbeddingService,
        chunk_repository: ChunkRepository,
        *,
        overfetch: int = _DEFAULT_OVERFETCH,
    ):
        self._embedder = embedder
        self._chunk_repo = chunk_repository
        self._overfetch = overfetch

    async def search(
        self, query: str, candidates: list[Chunk], top_k: int
    ) -> list[ScoredChunk] | None:
        if not self._embedder.is_enabled() or not self._chunk_repo.supports_vector_search:
            return None

        document_id = candidates[0].document_id
        candidate_ids = {c.id for c in candidates if c.id is not None}

        try:
            query_embedding = await self._embedder.embed_query(query)
            rows = await self._chunk_repo.search_similar(
                document_id,
                query_embedding,
                limit=top_k * self._overfetch,
            )
        except Exception as exc:
            logger.warning("Vector search failed for document %s, falling back: %s", document_id, exc)
            return None

        if candidate_ids:
            rows = [row for row in rows if row.chunk.id in candidate_ids]
        return rows


class CosineSimilarityStrategy(RetrievalStrategy):
    """In-process cosine similarity against precomputed chunk embeddings."""

    name = "cosine"

    def __init__(self, embedder: EmbeddingService):
        self._embedder = embedder

    async def search(
        self, query: str, candidates: list[Chunk], top_k: int
    ) -> list[ScoredChunk] | None:
        if not self._embedder.is_enabled():
            return None
        if not all(chunk.has_embedding for chunk in candidates):
            return None

        query_embedding = await self._embedder.embed_query(query)
        return [
            ScoredChunk(chunk=chunk, score=cosine_similarity(query_embedding, chunk.embedding))
            for chunk in candidates
        ]


class KeywordOverlapStrategy(RetrievalStrategy):
    """Keyword overlap scoring — the last resort, always applicable."""

    name = "keyword"

    async def search(
        self, query: str, candidates: list[Chunk], top_k: int
    ) -> list[ScoredChunk] | None:
        return [
            ScoredChunk(chunk=chunk, score=keyword_score(query, chunk.content))
            for chunk in candidates
        ]


class RetrievalService:
    """Application service that produces a relevance-ordered, length-budgeted chunk list."""

    def __init__(
        self,
        strategies: list[RetrievalStrategy],
        *,
        default_top_k: int = _DEFAULT_TOP_K,
        max_context_chars: int = _DEFAULT_MAX_CONTEXT_CHARS,
    ):
        self._strategies = strategies
        self._default_top_k = default_top_k
        self._max_context_chars = max_context_chars

    @classmethod
    def default_chain(
        cls,
        embedder: EmbeddingService,
        chunk_repository: ChunkRepository,
        *,
        overfetch: int = _DEFAULT_OVERFETCH,
        default_top_k: int = _DEFAULT_TOP_K,
        max_context_chars: int = _DEFAULT_MAX_CONTEXT_CHARS,
    ) -> "RetrievalService":
        """Build the standard vector → cosine → keyword cascade."""
        return cls(
            [
                StoreVectorSearchStrategy(embedder, chunk_repository, overfetch=overfetch),
                CosineSimilarityStrategy(embedder),
                KeywordOverlapStrategy(),
            ],
            default_top_k=default_top_k,
            max_context_chars=max_context_chars,
        )

    async def rank(
        self,
        query: str,
        chunks: list[Chunk],
        top_k: int | None = None,
    ) -> list[ScoredChunk]:
        """Rank candidate chunks for a query.

        Returns at most ``top_k`` chunks whose combined content fits the
        character budget (the best chunk is always returned, even if oversize).
        """
        if not chunks:
            return []
        k = top_k if top_k and top_k > 0 else self._default_top_k

        for strategy in self._strategies:
            scored = await strategy.search(query, chunks, k)
            if not scored:
                continue

            ranked = sort_by_relevance(scored)[:k]
            selected = limit_context_by_length(ranked, self._max_context_chars)
            logger.debug(
                "Ranked %d/%d chunks via %s strategy", len(selected), len(chunks), strategy.name
            )
            return selected

        return []
