"""SQLAlchemy ORM model for ingested documents."""

import uuid

from sqlalchemy import Column, DateTime, Index, String, Text, func

from retrieval_engine.infrastructure.database.base import Base


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class DocumentModel(Base):
    """A document whose text is chunked, embedded and searched."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    title = Column(String(500), nullable=True)
    source_kind = Column(String(20), nullable=False, index=True)  # "text" | "upload" | "blob"
    source_locator = Column(String(2000), nullable=True)
    mime_type = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="PROCESSING", index=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_documents_created", "created_at"),
    )
