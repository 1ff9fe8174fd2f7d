"""Domain entities for document chunks — text fragments with optional vector embeddings."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class ChunkDraft:
    """A chunk as produced by the chunker, before it belongs to a stored document."""

    index: int
    content: str
    content_hash: str
    start_char: int
    end_char: int


@dataclass
class Chunk:
    """A bounded, overlap-linked segment of a document's text.

    Identity is (document_id, chunk_index). Offsets point into the normalized
    source text, so ``len(content) == end_char - start_char``.
    """

    document_id: str
    chunk_index: int
    content: str
    content_hash: str
    start_char: int
    end_char: int
    embedding: list[float] | None = None
    id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_draft(
        cls,
        document_id: str,
        draft: ChunkDraft,
        embedding: list[float] | None = None,
    ) -> "Chunk":
        return cls(
            document_id=document_id,
            chunk_index=draft.index,
            content=draft.content,
            content_hash=draft.content_hash,
            start_char=draft.start_char,
            end_char=draft.end_char,
            embedding=embedding,
        )

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass
class ScoredChunk:
    """A chunk annotated with a query-specific relevance score.

    Query-time only, never persisted. The ordering of a ranked sequence is the
    contract; absolute score values differ between retrieval strategies.
    """

    chunk: Chunk
    score: float

    @property
    def chunk_index(self) -> int:
        return self.chunk.chunk_index

    @property
    def content(self) -> str:
        return self.chunk.content
