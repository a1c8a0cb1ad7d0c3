"""Qdrant vector database backend."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from ..core.models import VectorRecord
from .base import VectorStore

logger = logging.getLogger(__name__)

NAMESPACE_KEY = "namespace"


class QdrantVectorStore(VectorStore):
    """One collection; namespaces are a keyword payload filter."""

    def __init__(
        self,
        client: QdrantClient,
        collection_name: str = "codespecter",
        upsert_batch_size: int = 50,
    ):
        self.client = client
        self.collection_name = collection_name
        self.upsert_batch_size = upsert_batch_size

    def _filter(self, namespace: str, **conditions: str) -> Filter:
        must = [FieldCondition(key=NAMESPACE_KEY, match=MatchValue(value=namespace))]
        for key, value in conditions.items():
            must.append(FieldCondition(key=key, match=MatchValue(value=value)))
        return Filter(must=must)

    def _collection_exists(self) -> bool:
        return self.client.collection_exists(collection_name=self.collection_name)

    def _get_collection_vector_dim(self) -> Optional[int]:
        if not self._collection_exists():
            return None
        collection_info = self.client.get_collection(collection_name=self.collection_name)
        return collection_info.config.params.vectors.size

    def _ensure_collection(self, vector_dim: int) -> None:
        existing_dim = self._get_collection_vector_dim()
        if existing_dim is not None:
            if existing_dim != vector_dim:
                raise ValueError(
                    f"Collection '{self.collection_name}' exists with dimension {existing_dim}, "
                    f"but records have dimension {vector_dim}. Please delete the collection and re-index."
                )
            return

        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=vector_dim, distance=Distance.COSINE),
        )
        for field in (NAMESPACE_KEY, "path"):
            self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        logger.info(f"Created collection '{self.collection_name}' (dim={vector_dim})")

    def upsert(self, namespace: str, records: List[VectorRecord]) -> None:
        if not records:
            return

        vector_dim = len(records[0].embedding)
        for i, record in enumerate(records):
            if len(record.embedding) != vector_dim:
                raise ValueError(
                    f"Record {i} at {record.path}:{record.line_start} has different dimension: "
                    f"{len(record.embedding)} vs expected {vector_dim}"
                )
        self._ensure_collection(vector_dim=vector_dim)

        points = [
            PointStruct(
                id=record.point_id,
                vector=record.embedding,
                payload=dict(record.metadata, **{NAMESPACE_KEY: namespace}),
            )
            for record in records
        ]

        batch_size = self.upsert_batch_size
        total_batches = (len(points) + batch_size - 1) // batch_size
        logger.info(f"Upserting {len(points)} vectors to namespace {namespace} in {total_batches} batches")

        for i in range(0, len(points), batch_size):
            batch = points[i:i + batch_size]
            batch_num = i // batch_size + 1
            try:
                self.client.upsert(collection_name=self.collection_name, points=batch)
                logger.debug(f"Uploaded batch {batch_num}/{total_batches}")
            except Exception as e:
                raise RuntimeError(
                    f"Failed to upsert batch {batch_num}/{total_batches} "
                    f"(points {i}-{i + len(batch)}) in namespace {namespace}: {e}"
                ) from e

    def delete_by_path(self, namespace: str, path: str) -> None:
        if not self._collection_exists():
            return
        self.client.delete(
            collection_name=self.collection_name,
            points_selector=FilterSelector(filter=self._filter(namespace, path=path)),
        )

    def delete_all(self, namespace: str) -> None:
        if not self._collection_exists():
            return
        self.client.delete(
            collection_name=self.collection_name,
            points_selector=FilterSelector(filter=self._filter(namespace)),
            wait=False,
        )
        logger.info(f"Requested deletion of namespace {namespace}")

    def count(self, namespace: str) -> int:
        if not self._collection_exists():
            return 0
        result = self.client.count(
            collection_name=self.collection_name,
            count_filter=self._filter(namespace),
            exact=True,
        )
        return result.count

    def query(self, namespace: str, embedding: List[float], top_k: int) -> List[str]:
        if not self._collection_exists():
            return []
        results = self.client.query_points(
            collection_name=self.collection_name,
            query=embedding,
            limit=top_k,
            query_filter=self._filter(namespace),
            with_payload=True,
            with_vectors=False,
        )
        return [(point.payload or {}).get("content") or "" for point in results.points]


def make_vector_store(cfg: Dict) -> VectorStore:
    """Create the configured vector store."""
    vector_store_cfg = cfg.get("vector_store", {})
    qdrant_cfg = vector_store_cfg.get("qdrant", {})

    if qdrant_cfg.get("location"):
        client = QdrantClient(location=qdrant_cfg["location"])
    elif qdrant_cfg.get("url"):
        client = QdrantClient(url=qdrant_cfg["url"], api_key=qdrant_cfg.get("api_key"))
    else:
        client = QdrantClient(
            host=qdrant_cfg.get("host", "localhost"),
            port=qdrant_cfg.get("port", 6333),
            api_key=qdrant_cfg.get("api_key"),
        )

    return QdrantVectorStore(
        client=client,
        collection_name=qdrant_cfg.get("collection", "codespecter"),
        upsert_batch_size=int(cfg.get("indexing", {}).get("upsert_batch_size", 50)),
    )
