"""SQLAlchemy implementation of ChunkRepository — pgvector-powered vector search."""

import logging
import uuid

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from retrieval_engine.application.interfaces import ChunkRepository
from retrieval_engine.domain.entities import Chunk, ScoredChunk
from retrieval_engine.domain.exceptions import VectorSearchUnavailableError
from retrieval_engine.infrastructure.database.models.chunk_models import ChunkModel

logger = logging.getLogger(__name__)


class SQLAlchemyChunkRepository(ChunkRepository):
    """Concrete chunk repository.

    Nearest-neighbour search needs PostgreSQL with the pgvector extension;
    on any other dialect ``supports_vector_search`` is False.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def supports_vector_search(self) -> bool:
        return self._session.get_bind().dialect.name == "postgresql"

    async def store_chunks(self, chunks: list[Chunk]) -> None:
        """Insert a batch of chunks with a single multi-row INSERT."""
        if not chunks:
            return

        rows = []
        for chunk in chunks:
            if not chunk.id:
                chunk.id = str(uuid.uuid4())
            rows.append(
                {
                    "id": chunk.id,
                    "document_id": chunk.document_id,
                    "chunk_index": chunk.chunk_index,
                    "content": chunk.content,
                    "content_hash": chunk.content_hash,
                    "start_char": chunk.start_char,
                    "end_char": chunk.end_char,
                    "embedding": list(chunk.embedding) if chunk.embedding else None,
                    "created_at": chunk.created_at,
                }
            )

        await self._session.execute(insert(ChunkModel), rows)
        await self._session.flush()
        logger.debug("Stored %d chunks for document %s", len(rows), chunks[0].document_id)

    async def delete_by_document(self, document_id: str) -> int:
        result = await self._session.execute(
            delete(ChunkModel).where(ChunkModel.document_id == document_id)
        )
        count = result.rowcount or 0
        if count > 0:
            logger.info("Deleted %d chunks for document %s", count, document_id)
        return count

    async def list_by_document(
        self,
        document_id: str,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Chunk]:
        query = (
            select(ChunkModel)
            .where(ChunkModel.document_id == document_id)
            .order_by(ChunkModel.chunk_index.asc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)

        result = await self._session.execute(query)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def count_by_document(self, document_id: str) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(ChunkModel).where(ChunkModel.document_id == document_id)
        )
        return int(result.scalar_one())

    async def search_similar(
        self,
        document_id: str,
        query_embedding: list[float],
        *,
        limit: int = 20,
    ) -> list[ScoredChunk]:
        """Nearest chunks by cosine distance; similarity is ``1 - distance``.

        The query vector and the limit travel as bound parameters.
        """
        if not self.supports_vector_search:
            raise VectorSearchUnavailableError(
                f"Vector search requires PostgreSQL with pgvector "
                f"(bound dialect: {self._session.get_bind().dialect.name})"
            )

        distance = ChunkModel.embedding.cosine_distance(query_embedding).label("distance")
        query = (
            select(ChunkModel, distance)
            .where(ChunkModel.document_id == document_id)
            .where(ChunkModel.embedding.is_not(None))
            .order_by(distance.asc(), ChunkModel.chunk_index.asc())
            .limit(limit)
        )

        result = await self._session.execute(query)
        return [
            ScoredChunk(chunk=self._to_domain(model), score=1.0 - float(dist))
            for model, dist in result.all()
        ]

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: ChunkModel) -> Chunk:
        # pgvector returns numpy arrays; JSON variants return lists
        embedding = [float(v) for v in model.embedding] if model.embedding is not None else None
        return Chunk(
            id=model.id,
            document_id=model.document_id,
            chunk_index=model.chunk_index,
            content=model.content,
            content_hash=model.content_hash,
            start_char=model.start_char,
            end_char=model.end_char,
            embedding=embedding,
            created_at=model.created_at,
        )
