"""
Knowledge Base Infrastructure Layer
===================================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Metadata store implementation
- External: Text extraction and embedding adapters
"""

from src.knowledge_base.infrastructure.models import KnowledgeDocumentModel
from src.knowledge_base.infrastructure.repositories import SQLAlchemyDocumentRepository
from src.knowledge_base.infrastructure.external import (
    PDFTextExtractor,
    PlainTextExtractor,
    CompositeTextExtractor,
    EmbeddingProviderAdapter,
)

__all__ = [
    "KnowledgeDocumentModel",
    "SQLAlchemyDocumentRepository",
    "PDFTextExtractor",
    "PlainTextExtractor",
    "CompositeTextExtractor",
    "EmbeddingProviderAdapter",
]
