"""
Vector Store Infrastructure
============================

Namespaced vector index implementations for knowledge base storage and
retrieval.

- MilvusVectorStore: Zilliz Cloud (managed Milvus); namespaces map to
  collection partitions.
- InMemoryVectorStore: process-local index for development and tests.

Both follow the Repository pattern behind IVectorStore.
"""

import asyncio
import math
from typing import Dict, List, Optional, Set, Tuple
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pymilvus import MilvusClient

from src.config import settings, Settings, VectorBackend
from src.core import VectorStoreException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Scalar fields stored next to each vector
METADATA_FIELDS = ["source", "text", "chunkIndex"]


@dataclass
class VectorRecord:
    """A vector and its metadata, addressed by a caller-chosen ID."""
    id: str
    values: List[float]
    metadata: dict = field(default_factory=dict)


@dataclass
class VectorMatch:
    """
    Result from vector search.

    metadata is None when the backend returned the hit without its
    scalar fields.
    """
    id: str
    score: float
    metadata: Optional[dict] = None


class IVectorStore(ABC):
    """
    Interface for namespaced vector index operations.

    Namespaces map to Milvus partitions; vector IDs are caller-chosen strings.
    """

    backend: str = "unknown"

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend; idempotent."""

    @abstractmethod
    async def upsert(self, records: List[VectorRecord], namespace: str) -> None:
        """Insert or overwrite records by ID."""

    @abstractmethod
    async def query(
        self,
        vector: List[float],
        top_k: int,
        namespace: str
    ) -> List[VectorMatch]:
        """Return the top_k most similar records, best first."""

    @abstractmethod
    async def delete_many(self, ids: List[str], namespace: str) -> None:
        """Delete records by ID. Unknown IDs are ignored."""

    @abstractmethod
    async def fetch_existing_ids(self, ids: List[str], namespace: str) -> Set[str]:
        """Return the subset of ids present in the namespace."""

    @abstractmethod
    async def list_ids(self, namespace: str) -> List[str]:
        """Return every record ID in the namespace."""

    @abstractmethod
    async def count(self, namespace: str) -> int:
        """Get number of records in the namespace."""


class MilvusVectorStore(IVectorStore):
    """
    Vector index on Zilliz Cloud / Milvus via `MilvusClient`.

    Uses a quick-setup collection with a VARCHAR primary key so records keep
    their deterministic string IDs, cosine similarity (higher is closer),
    and dynamic fields for metadata. pymilvus is synchronous; calls run in a
    worker thread.

    For correct connection, find your cluster's Public Endpoint in the
    Zilliz Cloud Console. It should look like:
    https://inxxxxxxxxxxxxxxxxx.aws-us-west-2.vectordb-uat3.zillizcloud.com
    """

    backend = VectorBackend.MILVUS

    _ID_MAX_LENGTH = 512
    _ITERATOR_BATCH = 1000

    def __init__(
        self,
        collection_name: Optional[str] = None,
        uri: Optional[str] = None,
        api_key: Optional[str] = None,
        dimension: Optional[int] = None
    ):
        self._collection_name = collection_name or settings.milvus_collection_name
        self._uri = uri or settings.zilliz_uri
        self._api_key = api_key or settings.zilliz_api_key
        self._dimension = dimension or settings.embedding_dimension
        self._client: Optional[MilvusClient] = None
        self._partitions: Set[str] = set()
        self._initialized = False

    async def initialize(self) -> None:
        """Connect and create the string-keyed cosine collection if missing."""
        if self._initialized:
            return

        if not self._uri:
            raise VectorStoreException("ZILLIZ_URI not configured")

        try:
            self._client = MilvusClient(uri=self._uri, token=self._api_key)

            if not self._client.has_collection(self._collection_name):
                self._client.create_collection(
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    primary_field_name="id",
                    id_type="string",
                    max_length=self._ID_MAX_LENGTH,
                    vector_field_name="vector",
                    metric_type="COSINE",
                    auto_id=False
                )
                logger.info(
                    "Created Milvus collection",
                    extra={"collection": self._collection_name, "dimension": self._dimension}
                )

            self._initialized = True

        except Exception as e:
            raise VectorStoreException(f"Milvus collection setup failed: {e}")

    async def _ensure_partition(self, namespace: str) -> MilvusClient:
        if not self._initialized:
            await self.initialize()

        client = self._client
        if namespace not in self._partitions:
            exists = await asyncio.to_thread(
                client.has_partition, self._collection_name, namespace
            )
            if not exists:
                await asyncio.to_thread(
                    client.create_partition, self._collection_name, namespace
                )
            self._partitions.add(namespace)
        return client

    async def upsert(self, records: List[VectorRecord], namespace: str) -> None:
        """
        Upsert records into the namespace partition.

        Raises:
            VectorStoreException: If the upsert fails
        """
        if not records:
            return

        try:
            client = await self._ensure_partition(namespace)
            data = [
                {"id": record.id, "vector": record.values, **record.metadata}
                for record in records
            ]
            await asyncio.to_thread(
                client.upsert,
                collection_name=self._collection_name,
                data=data,
                partition_name=namespace
            )
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(
                f"Upsert failed: {str(e)}",
                {"namespace": namespace, "records": len(records)}
            )

    async def query(
        self,
        vector: List[float],
        top_k: int,
        namespace: str
    ) -> List[VectorMatch]:
        """
        Search for the nearest records.

        Raises:
            VectorStoreException: If search fails
        """
        try:
            client = await self._ensure_partition(namespace)
            results = await asyncio.to_thread(
                client.search,
                collection_name=self._collection_name,
                data=[vector],
                limit=top_k,
                output_fields=METADATA_FIELDS,
                partition_names=[namespace]
            )
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Search failed: {str(e)}", {"namespace": namespace})

        matches = []
        if results and len(results) > 0:
            for hit in results[0]:
                entity = hit.get("entity") or None
                matches.append(VectorMatch(
                    id=str(hit.get("id")),
                    score=float(hit.get("distance", 0.0)),
                    metadata=dict(entity) if entity else None
                ))
        return matches

    async def delete_many(self, ids: List[str], namespace: str) -> None:
        """
        Delete records by primary key.

        Raises:
            VectorStoreException: If the delete fails
        """
        if not ids:
            return

        try:
            client = await self._ensure_partition(namespace)
            await asyncio.to_thread(
                client.delete,
                collection_name=self._collection_name,
                ids=list(ids),
                partition_name=namespace
            )
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(
                f"Delete failed: {str(e)}",
                {"namespace": namespace, "ids": len(ids)}
            )

    async def fetch_existing_ids(self, ids: List[str], namespace: str) -> Set[str]:
        if not ids:
            return set()

        try:
            client = await self._ensure_partition(namespace)
            rows = await asyncio.to_thread(
                client.get,
                collection_name=self._collection_name,
                ids=list(ids),
                output_fields=["id"],
                partition_names=[namespace]
            )
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Fetch failed: {str(e)}", {"namespace": namespace})

        return {str(row["id"]) for row in rows}

    async def list_ids(self, namespace: str) -> List[str]:
        try:
            client = await self._ensure_partition(namespace)
            iterator = await asyncio.to_thread(
                client.query_iterator,
                collection_name=self._collection_name,
                batch_size=self._ITERATOR_BATCH,
                filter='id != ""',
                output_fields=["id"],
                partition_names=[namespace]
            )
            ids: List[str] = []
            while True:
                batch = await asyncio.to_thread(iterator.next)
                if not batch:
                    iterator.close()
                    break
                ids.extend(str(row["id"]) for row in batch)
            return ids
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Listing IDs failed: {str(e)}", {"namespace": namespace})

    async def count(self, namespace: str) -> int:
        try:
            client = await self._ensure_partition(namespace)
            res = await asyncio.to_thread(
                client.query,
                collection_name=self._collection_name,
                filter="",
                output_fields=["count(*)"],
                partition_names=[namespace]
            )
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Count failed: {str(e)}", {"namespace": namespace})

        return int(res[0]["count(*)"]) if res else 0


def _cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore(IVectorStore):
    """
    Process-local vector index using brute-force cosine similarity.

    Suitable for development and tests; contents are lost on restart.
    """

    backend = VectorBackend.MEMORY

    def __init__(self) -> None:
        self._namespaces: Dict[str, Dict[str, Tuple[List[float], dict]]] = {}

    def _space(self, namespace: str) -> Dict[str, Tuple[List[float], dict]]:
        return self._namespaces.setdefault(namespace, {})

    async def initialize(self) -> None:
        return None

    async def upsert(self, records: List[VectorRecord], namespace: str) -> None:
        space = self._space(namespace)
        for record in records:
            space[record.id] = (list(record.values), dict(record.metadata))

    async def query(
        self,
        vector: List[float],
        top_k: int,
        namespace: str
    ) -> List[VectorMatch]:
        scored = [
            VectorMatch(id=record_id, score=_cosine_similarity(vector, values), metadata=dict(metadata))
            for record_id, (values, metadata) in self._space(namespace).items()
        ]
        scored.sort(key=lambda match: match.score, reverse=True)
        return scored[:top_k]

    async def delete_many(self, ids: List[str], namespace: str) -> None:
        space = self._space(namespace)
        for record_id in ids:
            space.pop(record_id, None)

    async def fetch_existing_ids(self, ids: List[str], namespace: str) -> Set[str]:
        space = self._space(namespace)
        return {record_id for record_id in ids if record_id in space}

    async def list_ids(self, namespace: str) -> List[str]:
        return list(self._space(namespace))

    async def count(self, namespace: str) -> int:
        return len(self._space(namespace))


def create_vector_store(config: Optional[Settings] = None) -> IVectorStore:
    """Build the vector index selected by configuration."""
    config = config or settings
    if config.vector_store_backend == VectorBackend.MEMORY:
        return InMemoryVectorStore()
    return MilvusVectorStore(
        collection_name=config.milvus_collection_name,
        uri=config.zilliz_uri,
        api_key=config.zilliz_api_key,
        dimension=config.embedding_dimension
    )
