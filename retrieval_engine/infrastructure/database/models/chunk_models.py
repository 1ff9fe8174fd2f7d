"""SQLAlchemy ORM model for document chunks with pgvector embeddings."""

import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from retrieval_engine.config import get_settings
from retrieval_engine.infrastructure.database.base import Base

EMBEDDING_DIMENSIONS = get_settings().embedding_dimensions


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class ChunkModel(Base):
    """A text chunk of a document, with an optional vector embedding.

    On PostgreSQL the embedding is a pgvector column with an HNSW cosine
    index; other dialects store it as a JSON array.
    """

    __tablename__ = "document_chunks"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    document_id = Column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)
    start_char = Column(Integer, nullable=False)
    end_char = Column(Integer, nullable=False)
    embedding = Column(
        Vector(EMBEDDING_DIMENSIONS).with_variant(JSON(), "sqlite"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_chunk_document_index"),
        Index(
            "idx_chunks_embedding_hnsw",
            embedding,
            postgresql_using="hnsw",
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )
