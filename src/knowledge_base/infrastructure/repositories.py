"""
Knowledge Base Infrastructure Repositories
==========================================

SQLAlchemy implementation of the document metadata store.
"""

from datetime import timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core import DocumentConflictException, MetadataStoreException
from src.knowledge_base.application import IDocumentRepository
from src.knowledge_base.domain import DocumentStatus, KnowledgeDocument
from src.knowledge_base.infrastructure.models import KnowledgeDocumentModel


def _to_domain(model: KnowledgeDocumentModel) -> KnowledgeDocument:
    uploaded_at = model.uploaded_at
    # SQLite hands back naive datetimes
    if uploaded_at.tzinfo is None:
        uploaded_at = uploaded_at.replace(tzinfo=timezone.utc)
    return KnowledgeDocument(
        id=str(model.id),
        filename=model.filename,
        chunk_count=model.chunk_count,
        status=DocumentStatus(model.status),
        uploaded_at=uploaded_at
    )


def _parse_id(document_id: str) -> Optional[UUID]:
    try:
        return UUID(document_id)
    except ValueError:
        return None


class SQLAlchemyDocumentRepository(IDocumentRepository):
    """
    SQLAlchemy implementation for knowledge base documents.

    Every write commits immediately so the engine controls the order in
    which the metadata store and the vector index change.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, document: KnowledgeDocument) -> KnowledgeDocument:
        """Insert a record; the store assigns its id."""
        model = KnowledgeDocumentModel(
            id=uuid4(),
            filename=document.filename,
            vector_prefix=document.vector_prefix,
            chunk_count=document.chunk_count,
            status=document.status.value,
            uploaded_at=document.uploaded_at
        )

        try:
            self._session.add(model)
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            existing = await self.find_by_vector_prefix(document.vector_prefix)
            raise DocumentConflictException(
                document.filename,
                document.vector_prefix,
                existing.filename if existing else document.filename
            )
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise MetadataStoreException(
                f"Failed to save document metadata: {e}",
                {"filename": document.filename}
            )

        return _to_domain(model)

    async def get(self, document_id: str) -> Optional[KnowledgeDocument]:
        """Get record by id; malformed ids are simply not found."""
        document_uuid = _parse_id(document_id)
        if document_uuid is None:
            return None

        try:
            model = await self._session.get(
                KnowledgeDocumentModel, document_uuid, populate_existing=True
            )
        except SQLAlchemyError as e:
            raise MetadataStoreException(f"Failed to read document metadata: {e}")
        return _to_domain(model) if model else None

    async def find_by_vector_prefix(self, vector_prefix: str) -> Optional[KnowledgeDocument]:
        stmt = select(KnowledgeDocumentModel).where(
            KnowledgeDocumentModel.vector_prefix == vector_prefix
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise MetadataStoreException(f"Failed to read document metadata: {e}")
        model = result.scalar_one_or_none()
        return _to_domain(model) if model else None

    async def list_all(self) -> List[KnowledgeDocument]:
        """All records, most recent upload first."""
        stmt = select(KnowledgeDocumentModel).order_by(
            KnowledgeDocumentModel.uploaded_at.desc(),
            KnowledgeDocumentModel.filename
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise MetadataStoreException(f"Failed to list document metadata: {e}")
        return [_to_domain(model) for model in result.scalars().all()]

    async def update_status(self, document_id: str, status: DocumentStatus) -> None:
        document_uuid = _parse_id(document_id)
        if document_uuid is None:
            return

        stmt = (
            update(KnowledgeDocumentModel)
            .where(KnowledgeDocumentModel.id == document_uuid)
            .values(status=status.value)
        )
        try:
            await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise MetadataStoreException(
                f"Failed to update document status: {e}",
                {"document_id": document_id}
            )

    async def delete(self, document_id: str) -> None:
        document_uuid = _parse_id(document_id)
        if document_uuid is None:
            return

        stmt = delete(KnowledgeDocumentModel).where(KnowledgeDocumentModel.id == document_uuid)
        try:
            await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise MetadataStoreException(
                f"Failed to delete document metadata: {e}",
                {"document_id": document_id}
            )
