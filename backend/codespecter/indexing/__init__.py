"""Indexing functionality for codespecter."""

from .indexer import build_file_records, embedding_text, index_codebase, make_chunker

__all__ = [
    "build_file_records",
    "embedding_text",
    "index_codebase",
    "make_chunker",
]
