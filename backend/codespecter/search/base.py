"""Searcher Interface."""

from __future__ import annotations

from typing import List


class Searcher:
    """Abstract base class for context retrieval."""

    def search(self, query: str, repo_id, top_k: int = 5) -> List[str]:
        """Return code snippets from the repository most relevant to ``query``.

        Args:
            query: Free text (PR summary, comment body, ...)
            repo_id: Repository whose namespace is searched
            top_k: Maximum number of snippets

        Returns:
            Chunk contents, most relevant first
        """
        raise NotImplementedError
