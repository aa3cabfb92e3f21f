"""
Core Exceptions
================

Every error the service raises on purpose derives from
`ApplicationException`. Each class pins the HTTP status that the API
exception handler answers with, so services never import FastAPI.
"""

from typing import Optional


class ApplicationException(Exception):
    """Root of the hierarchy: a message plus a details dict for logs."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    status_code = 422


class RepositoryException(ApplicationException):
    pass


class MetadataStoreException(RepositoryException):
    """Read or write failure on the document metadata store."""


class ValidationException(ApplicationException):
    """Caller sent input that can never succeed as given."""

    status_code = 400


class ExtractionException(ValidationException):
    """Document bytes could not be turned into text."""

    def __init__(self, filename: str, reason: str, details: Optional[dict] = None):
        self.filename = filename
        super().__init__(
            f"Could not extract text from '{filename}': {reason}",
            details or {"filename": filename}
        )


class ResourceNotFoundException(ApplicationException):
    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        target = f"{resource_type} with id '{resource_id}'" if resource_id else resource_type
        super().__init__(f"{target} not found", details)


class DocumentConflictException(DomainException):
    """An indexed document already owns the vector prefix of an upload."""

    status_code = 409

    def __init__(
        self,
        filename: str,
        vector_prefix: str,
        existing_filename: str,
        details: Optional[dict] = None
    ):
        self.filename = filename
        self.vector_prefix = vector_prefix
        self.existing_filename = existing_filename
        if filename == existing_filename:
            message = f"Document '{filename}' is already indexed; delete it before re-uploading"
        else:
            message = (
                f"Document '{filename}' collides with indexed document "
                f"'{existing_filename}' (shared vector prefix '{vector_prefix}')"
            )
        super().__init__(message, details or {
            "filename": filename,
            "vector_prefix": vector_prefix,
            "existing_filename": existing_filename,
        })


class ConfigurationException(ApplicationException):
    """Required setting missing or unusable at startup."""


class ExternalServiceException(ApplicationException):
    """A dependency outside the process (LLM, vector index) failed."""

    status_code = 502

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM provider", message, details)


class EmbeddingException(LLMException):
    """Embedding call failed or returned a vector of the wrong size."""


class VectorStoreException(ExternalServiceException):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Vector index", message, details)
