"""Abstract vector storage interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List

from ..core.models import Outcome, VectorRecord

logger = logging.getLogger(__name__)


class VectorStore(ABC):
    """Abstract base class for vector storage backends.

    Every operation takes the namespace (repository id) it is scoped to.
    Callers go through ``namespace()`` rather than these methods directly.
    """

    upsert_batch_size: int = 50

    def namespace(self, name) -> "Namespace":
        """Return a view bound to one repository's partition."""
        return Namespace(self, str(name))

    @abstractmethod
    def upsert(self, namespace: str, records: List[VectorRecord]) -> None:
        """Insert or overwrite records by id."""
        pass

    @abstractmethod
    def delete_by_path(self, namespace: str, path: str) -> None:
        """Delete every record whose path equals ``path``."""
        pass

    @abstractmethod
    def delete_all(self, namespace: str) -> None:
        """Request deletion of the whole namespace (may complete later)."""
        pass

    @abstractmethod
    def count(self, namespace: str) -> int:
        """Current number of records in the namespace."""
        pass

    @abstractmethod
    def query(self, namespace: str, embedding: List[float], top_k: int) -> List[str]:
        """Contents of the nearest records, most similar first."""
        pass


class Namespace:
    """A repository's partition of a vector store."""

    def __init__(self, store: VectorStore, name: str):
        if not name:
            raise ValueError("Namespace name must not be empty")
        self.store = store
        self.name = name

    def upsert(self, records: List[VectorRecord]) -> None:
        if not records:
            return
        self.store.upsert(self.name, records)

    def delete_by_path(self, path: str) -> Outcome[str]:
        """Best-effort: a stale vector only adds noise to top-K search."""
        logger.info(f"Deleting vectors for file: {path} in namespace: {self.name}")
        try:
            self.store.delete_by_path(self.name, path)
        except Exception as e:
            logger.error(f"Failed to delete vectors for {path} in {self.name}: {e}")
            return Outcome.skip(str(e))
        return Outcome.of(path)

    def delete_all(self) -> None:
        self.store.delete_all(self.name)

    def count(self) -> int:
        return self.store.count(self.name)

    def query(self, embedding: List[float], top_k: int = 5) -> List[str]:
        return [c for c in self.store.query(self.name, embedding, top_k) if c]
