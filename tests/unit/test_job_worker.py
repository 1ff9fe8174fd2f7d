"""Unit tests for the job queue, the JobWorker retry policy, and SSE fan-out."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from fakes import (
    FakeBlobStorage,
    FakeChunkRepository,
    FakeDocumentRepository,
    FakeJobRepository,
    FakeSessionFactory,
    FakeTextExtractor,
)
from retrieval_engine.application.services.chunker import TextChunker
from retrieval_engine.application.services.embedding_service import EmbeddingService
from retrieval_engine.application.services.ingestion_service import IngestionService
from retrieval_engine.application.services.job_queue_service import (
    INGEST_DOCUMENT,
    INGESTION_QUEUE,
    REPROCESS_DOCUMENT,
    JobQueueService,
)
from retrieval_engine.application.services.job_worker import INTERRUPTED_REASON, JobWorker
from retrieval_engine.application.services.sse_manager import SSEManager
from retrieval_engine.domain.entities import (
    Backoff,
    BackoffType,
    Document,
    DocumentStatus,
    JobOptions,
    JobStatus,
    SourceKind,
)

IMMEDIATE_RETRY = JobOptions(attempts=3, backoff=Backoff(type=BackoffType.EXPONENTIAL, delay_ms=0))


class RecordingSSEManager(SSEManager):
    def __init__(self):
        super().__init__()
        self.events: list[tuple[str, dict]] = []

    async def broadcast(self, event_type, data):
        self.events.append((event_type, dict(data)))
        await super().broadcast(event_type, data)


class Harness:
    """Wires a JobWorker to in-memory repositories."""

    def __init__(self, *, chunk_repository: FakeChunkRepository | None = None):
        self.documents = FakeDocumentRepository()
        self.chunks = chunk_repository or FakeChunkRepository()
        self.jobs = FakeJobRepository()
        self.storage = FakeBlobStorage()
        self.sessions = FakeSessionFactory()
        self.sse = RecordingSSEManager()
        self.queue = JobQueueService(self.jobs, default_options=IMMEDIATE_RETRY)
        self.worker = JobWorker(
            session_factory=self.sessions,
            job_repository_factory=lambda session: self.jobs,
            document_repository_factory=lambda session: self.documents,
            service_factory=self._build_service,
            sse_manager=self.sse,
        )

    async def _build_service(self, session) -> IngestionService:
        return IngestionService(
            document_repository=self.documents,
            chunk_repository=self.chunks,
            blob_storage=self.storage,
            text_extractor=FakeTextExtractor(),
            embedder=EmbeddingService(),
            chunker=TextChunker(chunk_size=100, overlap=10, soft_boundary=0),
            batch_size=1,
        )

    async def add_document(self, text: str) -> Document:
        stored = await self.storage.store(text.encode("utf-8"), "doc.txt")
        return await self.documents.create(
            Document(source_kind=SourceKind.TEXT, mime_type="text/plain", source_locator=stored.locator)
        )

    async def drain(self, polls: int = 5) -> None:
        for _ in range(polls):
            later = datetime.now(timezone.utc) + timedelta(seconds=1)
            await self.worker.poll_once(later)


# ── Job queue ────────────────────────────────────────────────────────

class TestJobQueueService:
    async def test_enqueue_applies_default_options(self):
        jobs = FakeJobRepository()
        queue = JobQueueService(jobs, default_options=IMMEDIATE_RETRY)

        job = await queue.enqueue(INGEST_DOCUMENT, {"document_id": "d1"})

        assert job.id in jobs.jobs
        assert job.queue_name == INGESTION_QUEUE
        assert job.status == JobStatus.WAITING
        assert job.attempts == 3
        assert job.backoff_delay_ms == 0
        assert job.document_id == "d1"

    async def test_get_job_state(self):
        jobs = FakeJobRepository()
        queue = JobQueueService(jobs)
        job = await queue.enqueue(INGEST_DOCUMENT, {"document_id": "d1"})
        await queue.update_progress(job, 0.5)

        state = await queue.get_job_state(INGESTION_QUEUE, job.id)

        assert state.id == job.id
        assert state.state == JobStatus.WAITING
        assert state.progress == 0.5
        assert state.attempts_made == 0
        assert state.data == {"document_id": "d1"}

    async def test_get_job_state_unknown_job_or_queue(self):
        queue = JobQueueService(FakeJobRepository())
        job = await queue.enqueue(INGEST_DOCUMENT, {"document_id": "d1"})

        assert await queue.get_job_state(INGESTION_QUEUE, "nope") is None
        assert await queue.get_job_state("other-queue", job.id) is None

    async def test_progress_is_clamped(self):
        queue = JobQueueService(FakeJobRepository())
        job = await queue.enqueue(INGEST_DOCUMENT, {"document_id": "d1"})

        await queue.update_progress(job, 1.7)
        assert job.progress == 1.0
        await queue.update_progress(job, -0.2)
        assert job.progress == 0.0


# ── Worker ───────────────────────────────────────────────────────────

class TestJobWorker:
    async def test_successful_job_completes_and_reports_progress(self):
        h = Harness()
        document = await h.add_document("a" * 250)
        job = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})

        processed = await h.worker.poll_once()

        assert processed == 1
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 1.0
        assert job.attempts_made == 1
        assert h.documents.documents[document.id].status == DocumentStatus.READY

        statuses = [data["status"] for _, data in h.sse.events]
        assert statuses[0] == "active"
        assert statuses[-1] == "completed"
        progress = [data["progress"] for _, data in h.sse.events if data["status"] == "active"]
        assert progress == sorted(progress)
        assert "rollback" not in h.sessions.log

    async def test_validation_failure_is_not_retried(self):
        h = Harness()
        document = await h.add_document("   ")
        job = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})

        await h.drain()

        assert job.status == JobStatus.COMPLETED
        assert job.attempts_made == 1
        failed = h.documents.documents[document.id]
        assert failed.status == DocumentStatus.FAILED
        assert failed.error_message

    async def test_transient_failure_retries_until_attempts_exhausted(self):
        h = Harness(chunk_repository=FakeChunkRepository(fail_on_store=ConnectionError("db down")))
        document = await h.add_document("some text")
        job = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})

        await h.worker.poll_once()
        assert job.status == JobStatus.DELAYED
        assert job.attempts_made == 1
        assert job.failed_reason == "db down"

        await h.drain()

        assert job.status == JobStatus.FAILED
        assert job.attempts_made == 3
        assert h.documents.documents[document.id].status == DocumentStatus.FAILED
        assert h.documents.documents[document.id].error_message == "db down"
        assert h.sessions.log.count("rollback") == 3

    async def test_transient_failure_then_success(self):
        chunks = FakeChunkRepository(fail_on_store=ConnectionError("db down"))
        h = Harness(chunk_repository=chunks)
        document = await h.add_document("some text")
        job = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})

        await h.worker.poll_once()
        chunks.fail_on_store = None
        await h.drain()

        assert job.status == JobStatus.COMPLETED
        assert job.attempts_made == 2
        assert h.documents.documents[document.id].status == DocumentStatus.READY

    async def test_missing_document_fails_permanently(self):
        h = Harness()
        job = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": "ghost"})

        await h.drain()

        assert job.status == JobStatus.FAILED
        assert job.attempts_made == 1
        assert "ghost" in job.failed_reason

    async def test_unknown_job_type_fails_permanently(self):
        h = Harness()
        document = await h.add_document("text")
        job = await h.queue.enqueue("mystery", {"document_id": document.id})

        await h.drain()

        assert job.status == JobStatus.FAILED
        assert job.attempts_made == 1
        assert h.documents.documents[document.id].status == DocumentStatus.FAILED

    async def test_reprocess_job_rebuilds_chunks(self):
        h = Harness()
        document = await h.add_document("b" * 250)
        await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})
        await h.drain(1)

        job = await h.queue.enqueue(REPROCESS_DOCUMENT, {"document_id": document.id})
        await h.drain(1)

        assert job.status == JobStatus.COMPLETED
        assert await h.chunks.count_by_document(document.id) == 3

    async def test_jobs_not_yet_due_are_skipped(self):
        h = Harness()
        document = await h.add_document("text")
        job = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})

        processed = await h.worker.poll_once(job.run_at - timedelta(minutes=1))

        assert processed == 0
        assert job.status == JobStatus.WAITING


class TestInterruptedJobRecovery:
    async def _interrupted_job(self, h: Harness, text: str, attempts_made: int):
        document = await h.add_document(text)
        job = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": document.id})
        job.attempts_made = attempts_made
        job.mark_active()
        return document, job

    async def test_active_job_with_attempts_left_is_rescheduled_and_completes(self):
        h = Harness()
        document, job = await self._interrupted_job(h, "some text", attempts_made=0)

        recovered = await h.worker.recover_interrupted()

        assert recovered == 1
        assert job.status == JobStatus.DELAYED
        assert job.attempts_made == 1
        assert job.failed_reason == INTERRUPTED_REASON
        assert h.documents.documents[document.id].status == DocumentStatus.PROCESSING

        await h.drain()

        assert job.status == JobStatus.COMPLETED
        assert h.documents.documents[document.id].status == DocumentStatus.READY

    async def test_active_job_on_last_attempt_fails_its_document(self):
        h = Harness()
        document, job = await self._interrupted_job(h, "some text", attempts_made=2)

        await h.worker.recover_interrupted()

        assert job.status == JobStatus.FAILED
        assert job.attempts_made == 3
        failed = h.documents.documents[document.id]
        assert failed.status == DocumentStatus.FAILED
        assert failed.error_message == INTERRUPTED_REASON
        assert [data["status"] for _, data in h.sse.events] == ["failed"]

    async def test_recovery_runs_once_and_ignores_waiting_jobs(self):
        h = Harness()
        _, job = await self._interrupted_job(h, "some text", attempts_made=0)
        waiting = await h.queue.enqueue(INGEST_DOCUMENT, {"document_id": "other"})

        assert await h.worker.recover_interrupted() == 1
        assert await h.worker.recover_interrupted() == 0
        assert job.status == JobStatus.DELAYED
        assert waiting.status == JobStatus.WAITING

    async def test_start_recovers_interrupted_jobs(self):
        h = Harness()
        _, job = await self._interrupted_job(h, "some text", attempts_made=0)

        await h.worker.start()
        await h.worker.stop()

        assert job.attempts_made >= 1
        assert h.sse.events[0][1]["id"] == job.id
        assert h.sse.events[0][1]["status"] == "delayed"


# ── SSE manager ──────────────────────────────────────────────────────

class TestSSEManager:
    async def test_broadcast_reaches_subscriber(self):
        manager = SSEManager()
        stream = manager.subscribe()
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        assert manager.client_count == 1

        await manager.broadcast("job_update", {"id": "j1", "status": "active"})
        message = await pending

        assert message.startswith("event: job_update\ndata: ")
        assert json.loads(message.split("data: ", 1)[1]) == {"id": "j1", "status": "active"}
        await stream.aclose()

    async def test_lagging_client_is_disconnected(self):
        manager = SSEManager(client_buffer=1)
        stream = manager.subscribe()
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        await manager.broadcast("job_update", {"n": 1})
        await manager.broadcast("job_update", {"n": 2})

        assert manager.client_count == 0
        with pytest.raises(StopAsyncIteration):
            await pending

    async def test_shutdown_ends_streams(self):
        manager = SSEManager()
        stream = manager.subscribe()
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        await manager.shutdown()

        with pytest.raises(StopAsyncIteration):
            await pending
        assert manager.client_count == 0
