"""Vector storage backends (Qdrant only)."""

from .base import Namespace, VectorStore
from .qdrant import QdrantVectorStore, make_vector_store

__all__ = [
    "Namespace",
    "VectorStore",
    "QdrantVectorStore",
    "make_vector_store",
]
