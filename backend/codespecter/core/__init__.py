"""Core functionality for codespecter."""

from .models import CodeChunk, Outcome, VectorRecord, record_id_for, truncate_utf8
from .chunking import Chunker, DefaultChunker, chunk_code
from .embeddings import Embedder, RemoteEmbedder, SentenceTransformersEmbedder, make_embedder

__all__ = [
    "CodeChunk",
    "Outcome",
    "VectorRecord",
    "record_id_for",
    "truncate_utf8",
    "Chunker",
    "DefaultChunker",
    "chunk_code",
    "Embedder",
    "RemoteEmbedder",
    "SentenceTransformersEmbedder",
    "make_embedder",
]
