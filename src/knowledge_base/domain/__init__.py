"""
Knowledge Base Domain Layer
===========================

Contains:
- Entities: KnowledgeDocument, TextChunk, RetrievalResult and friends
- Vector ID convention helpers
- TextChunker

This layer is framework-agnostic and contains pure business logic.
"""

from src.knowledge_base.domain.entities import (
    UNKNOWN_SOURCE,
    DocumentStatus,
    KnowledgeDocument,
    TextChunk,
    RetrievedChunk,
    RetrievalResult,
    IngestionResult,
    DeletionResult,
    ReconciliationReport,
    sanitize_filename,
    build_vector_id,
    build_vector_ids,
    parse_vector_id,
)
from src.knowledge_base.domain.chunker import TextChunker, normalize_text

__all__ = [
    "UNKNOWN_SOURCE",
    "DocumentStatus",
    "KnowledgeDocument",
    "TextChunk",
    "RetrievedChunk",
    "RetrievalResult",
    "IngestionResult",
    "DeletionResult",
    "ReconciliationReport",
    "sanitize_filename",
    "build_vector_id",
    "build_vector_ids",
    "parse_vector_id",
    "TextChunker",
    "normalize_text",
]
