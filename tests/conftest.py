"""Shared fixtures for the knowledge base service tests."""

import os
import tempfile
from typing import Dict, List, Optional, Set

# Settings are read once at import time, so the environment must be in
# place before anything under src is imported.
_DB_DIR = tempfile.mkdtemp(prefix="kb-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/app.db"
os.environ["VECTOR_STORE_BACKEND"] = "memory"
os.environ["LLM_PROVIDER"] = "mock"
os.environ["EMBEDDING_DIMENSION"] = "32"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core import EmbeddingException, MetadataStoreException, VectorStoreException
from src.infrastructure.database import Base
from src.infrastructure.llm import MockLLMClient
from src.infrastructure.vectorstore import InMemoryVectorStore, VectorMatch, VectorRecord
from src.knowledge_base.application import IEmbeddingProvider, KeyedLocks, KnowledgeBaseService
from src.knowledge_base.domain import KnowledgeDocument, TextChunker
from src.knowledge_base.infrastructure import (
    CompositeTextExtractor,
    EmbeddingProviderAdapter,
    SQLAlchemyDocumentRepository,
)
from src.knowledge_base.infrastructure import models  # noqa: F401  registers the table

NAMESPACE = "test-sops"
DIMENSION = 32


# ========== Fakes ==========

class RecordingVectorStore(InMemoryVectorStore):
    """In-memory index that records calls and can fail on demand."""

    def __init__(
        self,
        fail_on_upsert_batch: Optional[int] = None,
        fail_delete: bool = False,
        fail_query: bool = False
    ):
        super().__init__()
        self.fail_on_upsert_batch = fail_on_upsert_batch
        self.fail_delete = fail_delete
        self.fail_query = fail_query
        self.upsert_batches: List[List[str]] = []
        self.deleted_ids: List[str] = []

    async def upsert(self, records: List[VectorRecord], namespace: str) -> None:
        self.upsert_batches.append([record.id for record in records])
        if self.fail_on_upsert_batch == len(self.upsert_batches):
            raise VectorStoreException("Upsert failed", {"namespace": namespace})
        await super().upsert(records, namespace)

    async def delete_many(self, ids: List[str], namespace: str) -> None:
        if self.fail_delete:
            raise VectorStoreException("Delete failed", {"namespace": namespace})
        self.deleted_ids.extend(ids)
        await super().delete_many(ids, namespace)

    async def query(self, vector: List[float], top_k: int, namespace: str) -> List[VectorMatch]:
        if self.fail_query:
            raise VectorStoreException("Query failed", {"namespace": namespace})
        return await super().query(vector, top_k, namespace)

    def stored_ids(self, namespace: str = NAMESPACE) -> Set[str]:
        return set(self._space(namespace))

    def metadata(self, vector_id: str, namespace: str = NAMESPACE) -> Dict:
        return self._space(namespace)[vector_id][1]


class StaticMatchVectorStore(InMemoryVectorStore):
    """Returns a fixed, unsorted list of matches from every query."""

    def __init__(self, matches: List[VectorMatch]):
        super().__init__()
        self._matches = matches
        self.requested_top_k: Optional[int] = None

    async def query(self, vector: List[float], top_k: int, namespace: str) -> List[VectorMatch]:
        self.requested_top_k = top_k
        return list(self._matches)


class FailingEmbedder(IEmbeddingProvider):
    def __init__(self, fail_after: int = 0):
        self.fail_after = fail_after
        self.calls = 0

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        if self.calls > self.fail_after:
            raise EmbeddingException("Embedding provider unavailable")
        return [1.0] + [0.0] * (DIMENSION - 1)


class FailingAddRepository(SQLAlchemyDocumentRepository):
    async def add(self, document: KnowledgeDocument) -> KnowledgeDocument:
        raise MetadataStoreException("Metadata store unavailable")


class StubDocumentRepository(SQLAlchemyDocumentRepository):
    """Repository that pretends a prefix is free but rejects the insert, as
    when another process wins the race."""

    def __init__(self, session: AsyncSession, conflict_filename: str):
        super().__init__(session)
        self._conflict_filename = conflict_filename

    async def find_by_vector_prefix(self, vector_prefix: str) -> Optional[KnowledgeDocument]:
        return None

    async def add(self, document: KnowledgeDocument) -> KnowledgeDocument:
        await super().add(KnowledgeDocument(id=None, filename=self._conflict_filename, chunk_count=1))
        return await super().add(document)


# ========== Fixtures ==========

@pytest_asyncio.fixture
async def session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as db_session:
        yield db_session

    await engine.dispose()


@pytest.fixture
def repository(session):
    return SQLAlchemyDocumentRepository(session)


@pytest.fixture
def vector_store():
    return RecordingVectorStore()


@pytest.fixture
def embedder():
    return EmbeddingProviderAdapter(MockLLMClient(DIMENSION), DIMENSION)


@pytest.fixture
def make_service(repository, vector_store, embedder):
    """Factory so tests can swap single collaborators."""

    def _make(**overrides) -> KnowledgeBaseService:
        options = dict(
            documents=repository,
            vector_store=vector_store,
            embedder=embedder,
            extractor=CompositeTextExtractor.default(),
            namespace=NAMESPACE,
            chunker=TextChunker(1000, 200),
            batch_size=2,
            embedding_concurrency=3,
            default_top_k=5,
            locks=KeyedLocks(),
        )
        options.update(overrides)
        return KnowledgeBaseService(**options)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def three_chunk_text() -> bytes:
    """2500 characters without breakpoints: three chunks at 1000/200."""
    return ("a" * 2500).encode("utf-8")

