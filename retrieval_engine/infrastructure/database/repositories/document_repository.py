"""SQLAlchemy implementation of the DocumentRepository."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from retrieval_engine.application.interfaces import DocumentRepository
from retrieval_engine.domain.entities import Document, DocumentStatus, SourceKind
from retrieval_engine.domain.entities.document import failure_message
from retrieval_engine.domain.exceptions import EntityNotFoundError
from retrieval_engine.infrastructure.database.models.document_models import DocumentModel


class SQLAlchemyDocumentRepository(DocumentRepository):
    """Concrete document repository backed by PostgreSQL (or SQLite) via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, document: Document) -> Document:
        if not document.id:
            document.id = str(uuid.uuid4())

        model = DocumentModel(
            id=document.id,
            title=document.title,
            source_kind=document.source_kind.value,
            source_locator=document.source_locator,
            mime_type=document.mime_type,
            status=document.status.value,
            error_message=document.error_message,
            created_at=document.created_at,
            updated_at=document.updated_at,
        )
        self._session.add(model)
        await self._session.flush()
        return document

    async def get_by_id(self, document_id: str) -> Document | None:
        result = await self._session.execute(
            select(DocumentModel).where(DocumentModel.id == document_id)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_all(self, skip: int = 0, limit: int = 100) -> list[Document]:
        result = await self._session.execute(
            select(DocumentModel)
            .order_by(DocumentModel.created_at.desc(), DocumentModel.id)
            .offset(skip)
            .limit(limit)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        *,
        error_message: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        if status == DocumentStatus.FAILED:
            error_message = failure_message(error_message)
        else:
            error_message = None

        values = {
            "status": status.value,
            "error_message": error_message,
            "updated_at": datetime.now(timezone.utc),
        }
        if mime_type:
            values["mime_type"] = mime_type

        result = await self._session.execute(
            update(DocumentModel)
            .where(DocumentModel.id == document_id)
            .values(**values)
        )
        if result.rowcount == 0:
            raise EntityNotFoundError("Document", document_id)
        await self._session.flush()

    async def delete(self, document_id: str) -> bool:
        result = await self._session.execute(
            delete(DocumentModel).where(DocumentModel.id == document_id)
        )
        await self._session.flush()
        return result.rowcount > 0

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: DocumentModel) -> Document:
        return Document(
            id=model.id,
            title=model.title,
            source_kind=SourceKind(model.source_kind),
            source_locator=model.source_locator,
            mime_type=model.mime_type,
            status=DocumentStatus(model.status),
            error_message=model.error_message,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
