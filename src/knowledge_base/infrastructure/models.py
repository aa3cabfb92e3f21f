"""
Knowledge Base Infrastructure Models
====================================

SQLAlchemy ORM models for the document metadata store.
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base


class KnowledgeDocumentModel(Base):
    """
    Database model for KnowledgeDocument entity.

    vector_prefix is the sanitized filename. Its UNIQUE constraint stops
    two processes from recording documents that share vector IDs.
    """
    __tablename__ = "knowledge_documents"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    vector_prefix: Mapped[str] = mapped_column(String(512), nullable=False, unique=True, index=True)
    chunk_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=lambda: datetime.now(timezone.utc)
    )
