"""
Knowledge Base Application Layer
================================

Contains:
- Services: ingestion / retrieval / deletion / reconciliation orchestration
- Collaborator interfaces: metadata repository, text extractor, embedder
- DTOs: Data transfer objects for API serialization
"""

from src.knowledge_base.application.dto import (
    RetrieveRequest,
    UploadResponse,
    DocumentInfo,
    RelevantChunkInfo,
    RetrievalResponse,
    DeleteResponse,
    ReconcileResponse,
)
from src.knowledge_base.application.services import (
    KnowledgeBaseService,
    IDocumentRepository,
    ITextExtractor,
    IEmbeddingProvider,
    KeyedLocks,
    prefix_locks,
    batched,
)

__all__ = [
    # DTOs
    "RetrieveRequest",
    "UploadResponse",
    "DocumentInfo",
    "RelevantChunkInfo",
    "RetrievalResponse",
    "DeleteResponse",
    "ReconcileResponse",
    # Services
    "KnowledgeBaseService",
    "KeyedLocks",
    "prefix_locks",
    "batched",
    # Collaborator interfaces
    "IDocumentRepository",
    "ITextExtractor",
    "IEmbeddingProvider",
]
