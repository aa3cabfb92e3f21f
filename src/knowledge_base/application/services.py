"""
Knowledge Base Application Services
====================================

Orchestrates ingestion, retrieval, deletion and reconciliation across the
embedding provider, the vector index and the document metadata store.

No transaction spans the two stores. Ordering keeps failures on the safe
side instead:
- ingestion writes vectors first and metadata last, and deletes the
  vectors again if a later step fails;
- deletion removes vectors first and metadata last, so an interrupted
  delete leaves a metadata record that can be deleted again rather than
  unreachable vectors.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterator, List, Optional, Sequence, TypeVar

from src.core import (
    DocumentConflictException,
    ResourceNotFoundException,
)
from src.infrastructure.vectorstore import IVectorStore, VectorRecord
from src.knowledge_base.domain import (
    DeletionResult,
    DocumentStatus,
    IngestionResult,
    KnowledgeDocument,
    ReconciliationReport,
    RetrievalResult,
    RetrievedChunk,
    TextChunker,
    build_vector_id,
    parse_vector_id,
    sanitize_filename,
)
from src.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

T = TypeVar("T")


# ========== Collaborator Interfaces ==========

class IDocumentRepository(ABC):
    """Interface for the document metadata store."""

    @abstractmethod
    async def add(self, document: KnowledgeDocument) -> KnowledgeDocument:
        """Persist a new record; returns it with its store-assigned id."""

    @abstractmethod
    async def get(self, document_id: str) -> Optional[KnowledgeDocument]:
        """Get a record by id."""

    @abstractmethod
    async def find_by_vector_prefix(self, vector_prefix: str) -> Optional[KnowledgeDocument]:
        """Get the record whose sanitized filename equals vector_prefix."""

    @abstractmethod
    async def list_all(self) -> List[KnowledgeDocument]:
        """All records, most recent upload first."""

    @abstractmethod
    async def update_status(self, document_id: str, status: DocumentStatus) -> None:
        """Change the status of a record."""

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        """Remove a record."""


class ITextExtractor(ABC):
    """Interface for turning uploaded bytes into plain text."""

    @abstractmethod
    async def extract(self, data: bytes, filename: str) -> str:
        """Extract text; raises ExtractionException on malformed input."""


class IEmbeddingProvider(ABC):
    """Interface for text embedding."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed text; raises EmbeddingException on failure."""


# ========== Helpers ==========

def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most size items."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


class KeyedLocks:
    """
    asyncio locks keyed by string, created on demand and dropped once no
    task holds or waits for them.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def is_held(self, key: str) -> bool:
        return key in self._locks


# Shared by every service instance in the process
prefix_locks = KeyedLocks()


# ========== Application Services ==========

class KnowledgeBaseService:
    """
    Knowledge base engine.

    Ingest:   extract -> chunk -> embed -> batched upsert -> metadata write
    Retrieve: embed query -> vector query -> ranked chunks + sources
    Delete:   metadata lookup -> vector delete -> metadata delete
    """

    def __init__(
        self,
        documents: IDocumentRepository,
        vector_store: IVectorStore,
        embedder: IEmbeddingProvider,
        extractor: ITextExtractor,
        namespace: str,
        chunker: Optional[TextChunker] = None,
        batch_size: int = 100,
        embedding_concurrency: int = 4,
        default_top_k: int = 5,
        locks: Optional[KeyedLocks] = None
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if embedding_concurrency < 1:
            raise ValueError("embedding_concurrency must be >= 1")

        self._documents = documents
        self._vector_store = vector_store
        self._embedder = embedder
        self._extractor = extractor
        self._namespace = namespace
        self._chunker = chunker or TextChunker()
        self._batch_size = batch_size
        self._embedding_concurrency = embedding_concurrency
        self._default_top_k = default_top_k
        self._locks = locks or prefix_locks

    # ---------- Ingestion ----------

    async def ingest(self, data: bytes, filename: str) -> IngestionResult:
        """
        Index a document and record its metadata.

        Raises:
            DocumentConflictException: The vector prefix is already owned
            ExtractionException: The bytes could not be read
            EmbeddingException / VectorStoreException: Indexing failed; any
                vectors written for this document have been deleted again
            MetadataStoreException: The metadata write failed; vectors
                have been deleted again
        """
        vector_prefix = sanitize_filename(filename)

        with log_latency(logger, "kb_ingest", filename=filename):
            async with self._locks.hold(vector_prefix):
                await self._ensure_prefix_available(filename, vector_prefix)

                text = await self._extractor.extract(data, filename)
                chunks = self._chunker.chunk(text)
                logger.info(
                    "Document chunked",
                    extra={"filename": filename, "characters": len(text), "chunk_count": len(chunks)}
                )

                embeddings = await self._embed_all([chunk.text for chunk in chunks])
                records = [
                    VectorRecord(
                        id=build_vector_id(vector_prefix, chunk.index),
                        values=embedding,
                        metadata={"source": filename, "text": chunk.text, "chunkIndex": chunk.index}
                    )
                    for chunk, embedding in zip(chunks, embeddings)
                ]

                await self._upsert_all(records, filename)

                try:
                    document = await self._documents.add(KnowledgeDocument(
                        id=None,
                        filename=filename,
                        chunk_count=len(chunks),
                        status=DocumentStatus.INDEXED
                    ))
                except DocumentConflictException:
                    # Another process recorded this prefix first and its
                    # vectors share these IDs, so they must stay.
                    raise
                except Exception:
                    await self._compensate([record.id for record in records], filename, "metadata write failed")
                    raise

        logger.info(
            "Document indexed",
            extra={"filename": filename, "document_id": document.id, "chunk_count": len(chunks)}
        )
        return IngestionResult(
            status=DocumentStatus.INDEXED,
            chunk_count=len(chunks),
            filename=filename,
            document_id=document.id
        )

    async def _ensure_prefix_available(self, filename: str, vector_prefix: str) -> None:
        existing = await self._documents.find_by_vector_prefix(vector_prefix)
        if existing is not None:
            raise DocumentConflictException(filename, vector_prefix, existing.filename)

    async def _embed_all(self, texts: List[str]) -> List[List[float]]:
        """Embed texts with bounded concurrency; results keep input order."""
        if not texts:
            return []

        semaphore = asyncio.Semaphore(self._embedding_concurrency)

        async def embed_one(text: str) -> List[float]:
            async with semaphore:
                return await self._embedder.embed(text)

        tasks = [asyncio.ensure_future(embed_one(text)) for text in texts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def _upsert_all(self, records: List[VectorRecord], filename: str) -> None:
        """Upsert in index order, one batch at a time."""
        for number, batch in enumerate(batched(records, self._batch_size), start=1):
            try:
                await self._vector_store.upsert(list(batch), self._namespace)
            except Exception:
                await self._compensate([record.id for record in records], filename, f"upsert batch {number} failed")
                raise
            logger.debug(
                "Upserted batch",
                extra={"filename": filename, "batch": number, "size": len(batch)}
            )

    async def _compensate(self, vector_ids: List[str], filename: str, reason: str) -> None:
        """Best-effort removal of a failed ingestion's vectors; never raises."""
        if not vector_ids:
            return
        logger.warning(
            "Rolling back vectors",
            extra={"filename": filename, "reason": reason, "vectors": len(vector_ids)}
        )
        try:
            for batch in batched(vector_ids, self._batch_size):
                await self._vector_store.delete_many(list(batch), self._namespace)
        except Exception as e:
            logger.error(
                "Vector rollback failed; run reconciliation to remove orphans",
                extra={"filename": filename, "error": str(e)}
            )

    # ---------- Retrieval ----------

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> RetrievalResult:
        """
        Return the top_k passages most similar to query.

        Provider and index failures are logged and yield an empty result.
        A top_k below 1 is treated as 1.
        """
        top_k = max(1, top_k if top_k is not None else self._default_top_k)
        if not query.strip():
            return RetrievalResult.empty()

        with log_latency(logger, "kb_retrieve", top_k=top_k):
            try:
                vector = await self._embedder.embed(query)
                matches = await self._vector_store.query(vector, top_k, self._namespace)
            except Exception as e:
                logger.error(
                    "Retrieval failed; continuing without context",
                    extra={"error_type": type(e).__name__, "error": str(e)}
                )
                return RetrievalResult.empty()

        chunks = [RetrievedChunk.from_metadata(match.metadata, match.score) for match in matches]
        chunks.sort(key=lambda chunk: chunk.score, reverse=True)
        result = RetrievalResult.from_chunks(chunks[:top_k])

        logger.debug(
            "Retrieved context",
            extra={"chunks": len(result.relevant_chunks), "sources": len(result.source_documents)}
        )
        return result

    # ---------- Deletion ----------

    async def delete(self, document_id: str) -> DeletionResult:
        """
        Delete a document's vectors, then its metadata record.

        Raises:
            ResourceNotFoundException: No such document
            VectorStoreException: Vector delete failed; metadata is kept
            MetadataStoreException: Metadata delete failed after vectors
                were removed; repeating the delete finishes the job
        """
        prefix = (await self.get(document_id)).vector_prefix

        with log_latency(logger, "kb_delete", document_id=document_id):
            async with self._locks.hold(prefix):
                # Read again under the lock: a concurrent delete may have won
                document = await self.get(document_id)
                vector_ids = document.vector_ids
                for batch in batched(vector_ids, self._batch_size):
                    await self._vector_store.delete_many(list(batch), self._namespace)
                await self._documents.delete(document_id)

        logger.info(
            "Document deleted",
            extra={"document_id": document_id, "filename": document.filename, "vectors": len(vector_ids)}
        )
        return DeletionResult(
            document_id=document_id,
            filename=document.filename,
            vectors_deleted=len(vector_ids)
        )

    # ---------- Reads ----------

    async def list_documents(self) -> List[KnowledgeDocument]:
        """All documents, most recent upload first."""
        return await self._documents.list_all()

    async def get(self, document_id: str) -> KnowledgeDocument:
        document = await self._documents.get(document_id)
        if document is None:
            raise ResourceNotFoundException("Document", document_id)
        return document

    # ---------- Reconciliation ----------

    async def reconcile(self, repair: bool = False) -> ReconciliationReport:
        """
        Compare metadata records with the vectors actually in the index.

        Reports documents missing any of their vectors and vectors no
        document accounts for. With repair, incomplete documents are
        marked as error and orphaned vectors are deleted. Prefixes with an
        ingestion or delete in flight in this process are skipped.
        """
        report = ReconciliationReport(repaired=repair)

        with log_latency(logger, "kb_reconcile", repair=repair):
            documents = await self._documents.list_all()
            owners = {document.vector_prefix: document for document in documents}
            report.documents_checked = len(documents)

            for document in documents:
                if self._locks.is_held(document.vector_prefix):
                    continue
                expected = document.vector_ids
                present = set()
                for batch in batched(expected, self._batch_size):
                    present |= await self._vector_store.fetch_existing_ids(list(batch), self._namespace)
                if len(present) < len(expected):
                    report.incomplete_documents.append(document.id)
                    if repair and document.status != DocumentStatus.ERROR:
                        await self._documents.update_status(document.id, DocumentStatus.ERROR)

            vector_ids = await self._vector_store.list_ids(self._namespace)
            report.vectors_checked = len(vector_ids)
            for vector_id in vector_ids:
                parsed = parse_vector_id(vector_id)
                if parsed is None:
                    report.orphaned_vector_ids.append(vector_id)
                    continue
                prefix, index = parsed
                if self._locks.is_held(prefix):
                    continue
                owner = owners.get(prefix)
                if owner is None or index >= owner.chunk_count:
                    report.orphaned_vector_ids.append(vector_id)

            if repair:
                for batch in batched(report.orphaned_vector_ids, self._batch_size):
                    await self._vector_store.delete_many(list(batch), self._namespace)

        logger.info(
            "Reconciliation finished",
            extra={
                "documents_checked": report.documents_checked,
                "vectors_checked": report.vectors_checked,
                "incomplete_documents": len(report.incomplete_documents),
                "orphaned_vectors": len(report.orphaned_vector_ids),
                "repair": repair
            }
        )
        return report
