"""Semantic search functionality."""

from __future__ import annotations

import logging
from typing import List

from ..core import Embedder
from ..storage import VectorStore
from .base import Searcher

logger = logging.getLogger(__name__)


class DefaultSearcher(Searcher):

    def __init__(self, vector_store: VectorStore, embedder: Embedder):
        self.vector_store = vector_store
        self.embedder = embedder

    def search(self, query: str, repo_id, top_k: int = 5) -> List[str]:
        if not query or not query.strip():
            return []
        namespace = self.vector_store.namespace(repo_id)
        qv = self.embedder.embed_one(query)
        results = namespace.query(qv, top_k=top_k)
        logger.info(f"Retrieved {len(results)} snippets from namespace {namespace.name}")
        return results


def retrieve_context(
    query: str,
    repo_id,
    vector_store: VectorStore,
    embedder: Embedder,
    top_k: int = 5,
) -> List[str]:
    """Wrapper for DefaultSearcher."""
    searcher = DefaultSearcher(vector_store, embedder)
    return searcher.search(query, repo_id, top_k=top_k)

