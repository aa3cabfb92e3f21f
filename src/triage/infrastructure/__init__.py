"""
Triage Infrastructure Layer
============================

Contains:
- External: adapters for the LLM client and knowledge base retrieval
"""

from src.triage.infrastructure.external import (
    LLMClientAdapter,
    KnowledgeBaseRetriever,
)

__all__ = [
    "LLMClientAdapter",
    "KnowledgeBaseRetriever",
]
