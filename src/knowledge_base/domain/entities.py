"""
Knowledge Base Domain Entities
==============================

Pure Python business objects for document ingestion and retrieval.

Vector IDs are derived from the document filename and chunk position:

    {sanitize_filename(filename)}_chunk_{index}

This convention is the only link between a metadata record and its
vectors, so sanitization must stay stable across releases.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9]")
_VECTOR_ID = re.compile(r"^(?P<prefix>.+)_chunk_(?P<index>\d+)$")

UNKNOWN_SOURCE = "unknown"


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9] with an underscore."""
    return _UNSAFE_ID_CHARS.sub("_", filename)


def build_vector_id(vector_prefix: str, chunk_index: int) -> str:
    return f"{vector_prefix}_chunk_{chunk_index}"


def build_vector_ids(filename: str, chunk_count: int) -> List[str]:
    """All vector IDs owned by a document with chunk_count chunks."""
    prefix = sanitize_filename(filename)
    return [build_vector_id(prefix, i) for i in range(chunk_count)]


def parse_vector_id(vector_id: str) -> Optional[Tuple[str, int]]:
    """Split a vector ID into (prefix, chunk_index); None if it does not follow the convention."""
    match = _VECTOR_ID.match(vector_id)
    if not match:
        return None
    return match.group("prefix"), int(match.group("index"))


class DocumentStatus(str, Enum):
    """Lifecycle state of an uploaded document."""
    PROCESSING = "processing"
    INDEXED = "indexed"
    ERROR = "error"


@dataclass
class KnowledgeDocument:
    """
    Metadata record for an uploaded document.

    id is assigned by the metadata store; None until persisted.
    """
    id: Optional[str]
    filename: str
    chunk_count: int
    status: DocumentStatus = DocumentStatus.INDEXED
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.chunk_count < 0:
            raise ValueError("chunk_count must be >= 0")

    @property
    def vector_prefix(self) -> str:
        return sanitize_filename(self.filename)

    @property
    def vector_ids(self) -> List[str]:
        return build_vector_ids(self.filename, self.chunk_count)


@dataclass(frozen=True)
class TextChunk:
    """
    A segment of normalized document text.

    start/end are offsets into the normalized text of the span the chunk
    was cut from; text is that span with surrounding whitespace trimmed.
    """
    index: int
    text: str
    start: int
    end: int


@dataclass
class RetrievedChunk:
    """A ranked passage returned for a query."""
    text: str
    source: str
    score: float

    @classmethod
    def from_metadata(cls, metadata: Optional[dict], score: Optional[float]) -> "RetrievedChunk":
        """Build from loosely-typed index metadata, defaulting missing fields."""
        metadata = metadata or {}
        text: Any = metadata.get("text")
        source: Any = metadata.get("source")
        return cls(
            text=str(text) if text else "",
            source=str(source) if source else UNKNOWN_SOURCE,
            score=float(score) if score is not None else 0.0
        )


@dataclass
class RetrievalResult:
    """
    Ranked passages for a query plus the distinct sources they came from,
    in order of first appearance.
    """
    relevant_chunks: List[RetrievedChunk] = field(default_factory=list)
    source_documents: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "RetrievalResult":
        return cls()

    @classmethod
    def from_chunks(cls, chunks: List[RetrievedChunk]) -> "RetrievalResult":
        sources = list(dict.fromkeys(chunk.source for chunk in chunks))
        return cls(relevant_chunks=list(chunks), source_documents=sources)

    @property
    def is_empty(self) -> bool:
        return not self.relevant_chunks


@dataclass
class IngestionResult:
    """Outcome of a successful ingestion."""
    status: DocumentStatus
    chunk_count: int
    filename: str
    document_id: Optional[str] = None


@dataclass
class ReconciliationReport:
    """Differences found between the metadata store and the vector index."""
    documents_checked: int = 0
    vectors_checked: int = 0
    incomplete_documents: List[str] = field(default_factory=list)
    orphaned_vector_ids: List[str] = field(default_factory=list)
    repaired: bool = False

    @property
    def is_consistent(self) -> bool:
        return not self.incomplete_documents and not self.orphaned_vector_ids


@dataclass
class DeletionResult:
    """Outcome of a successful cascade delete."""
    document_id: str
    filename: str
    vectors_deleted: int
    success: bool = True
