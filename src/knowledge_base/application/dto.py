"""
Knowledge Base Application DTOs
================================

Data Transfer Objects for the Knowledge Base API layer.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from src.knowledge_base.domain import (
    DeletionResult,
    IngestionResult,
    KnowledgeDocument,
    ReconciliationReport,
    RetrievalResult,
)

DocumentStatusStr = Literal["processing", "indexed", "error"]


# ========== Request DTOs ==========

class RetrieveRequest(BaseModel):
    """Request model for context retrieval."""
    query: str = Field(..., min_length=1, description="Text to find relevant passages for")
    top_k: Optional[int] = Field(None, ge=1, le=20, description="Number of passages to return")

    @field_validator("query")
    @classmethod
    def validate_query_length(cls, v: str) -> str:
        """Ensure query is not too long."""
        if len(v) > 2000:
            raise ValueError("Query too long (max 2000 characters)")
        return v


# ========== Response DTOs ==========

class UploadResponse(BaseModel):
    """Response model for document upload."""
    status: DocumentStatusStr
    chunk_count: int
    filename: str
    document_id: Optional[str] = None

    @classmethod
    def from_result(cls, result: IngestionResult) -> "UploadResponse":
        return cls(
            status=result.status.value,
            chunk_count=result.chunk_count,
            filename=result.filename,
            document_id=result.document_id
        )


class DocumentInfo(BaseModel):
    """Document metadata as listed by the API."""
    id: str
    filename: str
    uploaded_at: datetime
    chunk_count: int
    status: DocumentStatusStr

    @classmethod
    def from_domain(cls, document: KnowledgeDocument) -> "DocumentInfo":
        return cls(
            id=document.id,
            filename=document.filename,
            uploaded_at=document.uploaded_at,
            chunk_count=document.chunk_count,
            status=document.status.value
        )


class RelevantChunkInfo(BaseModel):
    """One ranked passage."""
    text: str
    source: str
    score: float


class RetrievalResponse(BaseModel):
    """Response model for context retrieval."""
    relevant_chunks: List[RelevantChunkInfo]
    source_documents: List[str]

    @classmethod
    def from_result(cls, result: RetrievalResult) -> "RetrievalResponse":
        return cls(
            relevant_chunks=[
                RelevantChunkInfo(text=c.text, source=c.source, score=c.score)
                for c in result.relevant_chunks
            ],
            source_documents=list(result.source_documents)
        )


class DeleteResponse(BaseModel):
    """Response model for document deletion."""
    success: bool
    document_id: str
    vectors_deleted: int

    @classmethod
    def from_result(cls, result: DeletionResult) -> "DeleteResponse":
        return cls(
            success=result.success,
            document_id=result.document_id,
            vectors_deleted=result.vectors_deleted
        )


class ReconcileResponse(BaseModel):
    """Response model for a reconciliation sweep."""
    consistent: bool
    repaired: bool
    documents_checked: int
    vectors_checked: int
    incomplete_documents: List[str]
    orphaned_vector_ids: List[str]

    @classmethod
    def from_report(cls, report: ReconciliationReport) -> "ReconcileResponse":
        return cls(
            consistent=report.is_consistent,
            repaired=report.repaired,
            documents_checked=report.documents_checked,
            vectors_checked=report.vectors_checked,
            incomplete_documents=list(report.incomplete_documents),
            orphaned_vector_ids=list(report.orphaned_vector_ids)
        )
