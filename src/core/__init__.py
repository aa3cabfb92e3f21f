"""
Core Module
============

Framework-free pieces every module imports: the exception hierarchy.
"""

from src.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    MetadataStoreException,
    ValidationException,
    ExtractionException,
    ResourceNotFoundException,
    DocumentConflictException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    EmbeddingException,
    VectorStoreException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "MetadataStoreException",
    "ValidationException",
    "ExtractionException",
    "ResourceNotFoundException",
    "DocumentConflictException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "EmbeddingException",
    "VectorStoreException",
]
