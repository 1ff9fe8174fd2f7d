"""In-memory implementations of the application ports, shared by unit tests."""

import uuid
from datetime import datetime

from retrieval_engine.application.interfaces import (
    BlobStorage,
    ChunkRepository,
    DocumentRepository,
    EmbeddingProvider,
    JobRepository,
    StoredBlob,
    TextExtractor,
)
from retrieval_engine.domain.entities import (
    Chunk,
    Document,
    DocumentStatus,
    IngestionJob,
    JobStatus,
    ScoredChunk,
)
from retrieval_engine.domain.entities.document import failure_message
from retrieval_engine.domain.exceptions import (
    BlobNotFoundError,
    EmbeddingProviderError,
    EntityNotFoundError,
    NoExtractableTextError,
    VectorSearchUnavailableError,
)
from retrieval_engine.application.services.scoring import cosine_similarity


# ── Repositories ─────────────────────────────────────────────────────

class FakeDocumentRepository(DocumentRepository):
    def __init__(self):
        self.documents: dict[str, Document] = {}
        self.status_history: list[tuple[str, DocumentStatus]] = []

    async def create(self, document: Document) -> Document:
        if not document.id:
            document.id = str(uuid.uuid4())
        self.documents[document.id] = document
        return document

    async def get_by_id(self, document_id: str) -> Document | None:
        return self.documents.get(document_id)

    async def list_all(self, skip: int = 0, limit: int = 100) -> list[Document]:
        docs = sorted(self.documents.values(), key=lambda d: d.created_at, reverse=True)
        return docs[skip : skip + limit]

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        *,
        error_message: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        document = self.documents.get(document_id)
        if document is None:
            raise EntityNotFoundError("Document", document_id)
        document.status = status
        document.error_message = failure_message(error_message) if status == DocumentStatus.FAILED else None
        if mime_type:
            document.mime_type = mime_type
        self.status_history.append((document_id, status))

    async def delete(self, document_id: str) -> bool:
        return self.documents.pop(document_id, None) is not None


class FakeChunkRepository(ChunkRepository):
    """Keeps chunks per document; enforces the (document_id, chunk_index) key."""

    def __init__(self, *, vector_search: bool = False, fail_on_store: Exception | None = None):
        self.chunks: dict[str, dict[int, Chunk]] = {}
        self.store_calls: list[int] = []
        self.search_calls: list[int] = []
        self._vector_search = vector_search
        self.fail_on_store = fail_on_store
        self.search_error: Exception | None = None

    @property
    def supports_vector_search(self) -> bool:
        return self._vector_search

    async def store_chunks(self, chunks: list[Chunk]) -> None:
        if self.fail_on_store is not None:
            raise self.fail_on_store
        for chunk in chunks:
            by_index = self.chunks.setdefault(chunk.document_id, {})
            if chunk.chunk_index in by_index:
                raise ValueError(f"duplicate chunk {chunk.document_id}/{chunk.chunk_index}")
            if not chunk.id:
                chunk.id = str(uuid.uuid4())
            by_index[chunk.chunk_index] = chunk
        self.store_calls.append(len(chunks))

    async def delete_by_document(self, document_id: str) -> int:
        return len(self.chunks.pop(document_id, {}))

    async def list_by_document(
        self,
        document_id: str,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Chunk]:
        ordered = [c for _, c in sorted(self.chunks.get(document_id, {}).items())]
        end = None if limit is None else offset + limit
        return ordered[offset:end]

    async def count_by_document(self, document_id: str) -> int:
        return len(self.chunks.get(document_id, {}))

    async def search_similar(
        self,
        document_id: str,
        query_embedding: list[float],
        *,
        limit: int = 20,
    ) -> list[ScoredChunk]:
        if not self._vector_search:
            raise VectorSearchUnavailableError("no vector operator")
        if self.search_error is not None:
            raise self.search_error
        self.search_calls.append(limit)
        scored = [
            ScoredChunk(chunk=c, score=cosine_similarity(query_embedding, c.embedding or []))
            for c in self.chunks.get(document_id, {}).values()
        ]
        scored.sort(key=lambda s: -s.score)
        return scored[:limit]


class FakeJobRepository(JobRepository):
    def __init__(self):
        self.jobs: dict[str, IngestionJob] = {}

    async def get_by_id(self, job_id: str) -> IngestionJob | None:
        return self.jobs.get(job_id)

    async def get_due(self, now: datetime, limit: int = 10) -> list[IngestionJob]:
        due = [
            j for j in self.jobs.values()
            if j.status in (JobStatus.WAITING, JobStatus.DELAYED) and j.run_at <= now
        ]
        due.sort(key=lambda j: (j.run_at, j.created_at))
        return due[:limit]

    async def get_active(self, limit: int = 100) -> list[IngestionJob]:
        return [j for j in self.jobs.values() if j.status == JobStatus.ACTIVE][:limit]

    async def create(self, job: IngestionJob) -> IngestionJob:
        if not job.id:
            job.id = str(uuid.uuid4())
        self.jobs[job.id] = job
        return job

    async def update(self, job: IngestionJob) -> IngestionJob:
        if job.id not in self.jobs:
            raise EntityNotFoundError("IngestionJob", job.id)
        self.jobs[job.id] = job
        return job


# ── Collaborators ────────────────────────────────────────────────────

class FakeBlobStorage(BlobStorage):
    """Accepts its own memory:// locators and gs:// references."""

    SCHEMES = ("memory://", "gs://")

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.download_error: Exception | None = None

    async def store(self, content: bytes, filename: str) -> StoredBlob:
        locator = f"memory://{uuid.uuid4().hex}/{filename}"
        self.blobs[locator] = content
        mime_type = "text/plain" if filename.endswith(".txt") else "application/octet-stream"
        return StoredBlob(locator=locator, filename=filename, size=len(content), mime_type=mime_type)

    async def download(self, locator: str) -> bytes:
        if self.download_error is not None:
            raise self.download_error
        if locator not in self.blobs:
            raise BlobNotFoundError(locator)
        return self.blobs[locator]

    async def delete(self, locator: str) -> bool:
        return self.blobs.pop(locator, None) is not None

    def supports(self, locator: str) -> bool:
        return locator.startswith(self.SCHEMES)


class FakeTextExtractor(TextExtractor):
    """Decodes bytes as UTF-8; blank content counts as a scanned document."""

    async def extract(self, content: bytes, mime_type: str) -> str:
        text = content.decode("utf-8")
        if not text.strip():
            raise NoExtractableTextError()
        return text

    def can_extract(self, mime_type: str) -> bool:
        return True


class StaticEmbeddingProvider(EmbeddingProvider):
    """Returns a configured vector, or raises, and counts calls."""

    def __init__(self, vector: list[float] | None = None, *, error: Exception | None = None):
        self.vector = vector or []
        self.error = error
        self.calls: list[str] = []
        self.query_calls: list[str] = []

    @property
    def name(self) -> str:
        return "static"

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)

    async def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)


class KeywordEmbeddingProvider(EmbeddingProvider):
    """Maps text onto a small vocabulary axis per word, padded to ``dimensions``."""

    def __init__(self, vocabulary: list[str], dimensions: int = 128):
        self._vocabulary = vocabulary
        self._dimensions = dimensions

    @property
    def name(self) -> str:
        return "keyword"

    async def embed(self, text: str) -> list[float]:
        lowered = text.lower()
        vector = [1.0 if word in lowered else 0.0 for word in self._vocabulary]
        vector += [0.0] * (self._dimensions - len(vector))
        if not any(vector):
            raise EmbeddingProviderError("keyword", "no known words")
        return vector


# ── Sessions ─────────────────────────────────────────────────────────

class FakeSession:
    """Stands in for an AsyncSession; records commits and rollbacks."""

    def __init__(self, log: list[str]):
        self._log = log

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def commit(self) -> None:
        self._log.append("commit")

    async def rollback(self) -> None:
        self._log.append("rollback")


class FakeSessionFactory:
    def __init__(self):
        self.log: list[str] = []

    def __call__(self) -> FakeSession:
        return FakeSession(self.log)
