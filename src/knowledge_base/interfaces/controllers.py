"""
Knowledge Base Controllers (API Routes)
=======================================

FastAPI routes for knowledge base endpoints.

Controllers delegate to the KnowledgeBaseService. Role gating happens in
front of this service; these routes assume an authorized caller.
"""

from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, settings as default_settings
from src.core import ValidationException
from src.infrastructure.database import get_session
from src.knowledge_base.application import (
    KnowledgeBaseService,
    RetrieveRequest,
    UploadResponse,
    DocumentInfo,
    RetrievalResponse,
    DeleteResponse,
    ReconcileResponse,
)
from src.knowledge_base.domain import TextChunker
from src.knowledge_base.infrastructure import (
    SQLAlchemyDocumentRepository,
    CompositeTextExtractor,
    EmbeddingProviderAdapter,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/knowledge-base", tags=["Knowledge Base"])


# ========== Example payloads for Swagger ==========

UPLOAD_RESPONSE_EXAMPLE = {
    "status": "indexed",
    "chunk_count": 3,
    "filename": "Guide v1.pdf",
    "document_id": "123e4567-e89b-12d3-a456-426614174000"
}

RETRIEVE_RESPONSE_EXAMPLE = {
    "relevant_chunks": [
        {
            "text": "Refunds are issued to the original payment method within 5 business days.",
            "source": "Refund Policy.pdf",
            "score": 0.87
        }
    ],
    "source_documents": ["Refund Policy.pdf"]
}


# ========== Dependencies ==========

def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or default_settings


def build_knowledge_base_service(request: Request, session: AsyncSession) -> KnowledgeBaseService:
    """Assemble the engine from app state and a request-scoped session."""
    config = get_app_settings(request)
    vector_store = getattr(request.app.state, "vector_store", None)
    llm_client = getattr(request.app.state, "llm_client", None)

    if vector_store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vector store not initialized"
        )
    if llm_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Embedding provider not configured"
        )

    return KnowledgeBaseService(
        documents=SQLAlchemyDocumentRepository(session),
        vector_store=vector_store,
        embedder=EmbeddingProviderAdapter(llm_client, config.embedding_dimension),
        extractor=CompositeTextExtractor.default(),
        namespace=config.kb_namespace,
        chunker=TextChunker(config.chunk_size, config.chunk_overlap),
        batch_size=config.upsert_batch_size,
        embedding_concurrency=config.embedding_concurrency,
        default_top_k=config.top_k_results
    )


async def get_knowledge_base_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> KnowledgeBaseService:
    return build_knowledge_base_service(request, session)


# ========== Route Handlers ==========

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document",
    description="""
    Upload a support document (PDF, TXT or Markdown) for retrieval.

    The document is parsed, chunked, embedded and stored in the vector
    index; a metadata record is written once every vector is stored.

    **Errors**:
    - `400` unreadable or empty file
    - `409` a document with the same (sanitized) filename is already indexed
    - `413` file larger than the configured limit
    """,
    responses={
        201: {
            "description": "Document indexed",
            "content": {"application/json": {"example": UPLOAD_RESPONSE_EXAMPLE}}
        },
        409: {"description": "Document already indexed"}
    }
)
async def upload_document(
    request: Request,
    file: UploadFile = File(..., description="Document to index"),
    service: KnowledgeBaseService = Depends(get_knowledge_base_service)
):
    config = get_app_settings(request)

    if not file.filename:
        raise ValidationException("Uploaded file has no filename")

    # Reads at most one byte past the limit
    data = await file.read(config.max_upload_bytes + 1)
    if not data:
        raise ValidationException("Uploaded file is empty", {"filename": file.filename})
    if len(data) > config.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {config.max_upload_bytes} bytes"
        )

    logger.info(
        "Document upload received",
        extra={"filename": file.filename, "size_bytes": len(data)}
    )

    result = await service.ingest(data, file.filename)
    return UploadResponse.from_result(result)


@router.get(
    "",
    response_model=List[DocumentInfo],
    summary="List documents",
    description="All uploaded documents, most recent upload first."
)
async def list_documents(service: KnowledgeBaseService = Depends(get_knowledge_base_service)):
    documents = await service.list_documents()
    return [DocumentInfo.from_domain(document) for document in documents]


@router.get(
    "/{document_id}",
    response_model=DocumentInfo,
    summary="Get a document",
    responses={404: {"description": "Document not found"}}
)
async def get_document(
    document_id: str,
    service: KnowledgeBaseService = Depends(get_knowledge_base_service)
):
    document = await service.get(document_id)
    return DocumentInfo.from_domain(document)


@router.delete(
    "/{document_id}",
    response_model=DeleteResponse,
    summary="Delete a document",
    description="""
    Remove a document's vectors from the index, then its metadata record.

    If the vector delete fails the metadata record is kept so the delete
    can be retried.
    """,
    responses={404: {"description": "Document not found"}}
)
async def delete_document(
    document_id: str,
    service: KnowledgeBaseService = Depends(get_knowledge_base_service)
):
    result = await service.delete(document_id)
    return DeleteResponse.from_result(result)


@router.post(
    "/retrieve",
    response_model=RetrievalResponse,
    summary="Retrieve relevant passages",
    description="""
    Return the passages most similar to the query, best first, plus the
    distinct source documents they came from.

    Retrieval is best-effort: if the embedding provider or vector index
    fails the response is empty rather than an error.
    """,
    responses={
        200: {
            "description": "Ranked passages",
            "content": {"application/json": {"example": RETRIEVE_RESPONSE_EXAMPLE}}
        }
    }
)
async def retrieve_context(
    payload: RetrieveRequest,
    service: KnowledgeBaseService = Depends(get_knowledge_base_service)
):
    result = await service.retrieve(payload.query, payload.top_k)
    return RetrievalResponse.from_result(result)


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    summary="Reconcile metadata and vectors",
    description="""
    Operator repair job. Finds documents missing vectors and vectors no
    document accounts for. With `repair=true`, incomplete documents are
    marked `error` and orphaned vectors are deleted.
    """
)
async def reconcile(
    repair: bool = Query(False, description="Apply fixes instead of only reporting"),
    service: KnowledgeBaseService = Depends(get_knowledge_base_service)
):
    report = await service.reconcile(repair=repair)
    return ReconcileResponse.from_report(report)


# Export router for inclusion in main app
knowledge_base_router = router
