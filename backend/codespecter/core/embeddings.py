"""Embedding models for indexing and retrieval."""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class Embedder:
    """Abstract base class for embedding models.

    Embedders make exactly one model call per invocation and never retry;
    retries belong to the workflow step that calls them.
    """

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts into vectors."""
        raise NotImplementedError

    def embed_one(self, text: str) -> List[float]:
        """Embed a single text into a vector."""
        return self.embed([text])[0]


class RemoteEmbedder(Embedder):
    """Embedder calling an OpenAI-compatible /embeddings endpoint."""

    def __init__(
        self,
        model: str,
        api_base: str,
        api_key: Optional[str],
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Embedding API key is not set")
        self.model = model
        self.url = f"{api_base.rstrip('/')}/embeddings"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        response = self.session.post(
            self.url,
            headers=self.headers,
            json={"model": self.model, "input": texts},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json().get("data") or []
        if len(data) != len(texts):
            raise RuntimeError(
                f"Embedding API returned {len(data)} vectors for {len(texts)} inputs"
            )
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in ordered]


class SentenceTransformersEmbedder(Embedder):
    """Embedder using SentenceTransformers library."""

    def __init__(self, model_name: str) -> None:
        from sentence_transformers import SentenceTransformer  # type: ignore
        self.model = SentenceTransformer(model_name)

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed texts using SentenceTransformers model."""
        arr = self.model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        return [row.tolist() for row in arr]


def make_embedder(cfg: Dict) -> Embedder:
    """Create embedder from config.

    Args:
        cfg: Configuration dictionary

    Returns:
        Embedder instance

    Raises:
        ValueError: If the backend is unknown or misconfigured
    """
    emb_cfg = cfg.get("embedding", {})
    backend = str(emb_cfg.get("backend", "remote")).strip().lower()

    if backend == "remote":
        return RemoteEmbedder(
            model=emb_cfg.get("model", "text-embedding-004"),
            api_base=emb_cfg.get("api_base", ""),
            api_key=os.getenv(emb_cfg.get("api_key_env", "GEMINI_API_KEY")),
            timeout=int(emb_cfg.get("timeout", 30)),
        )

    if backend == "sentence_transformers":
        model_name = emb_cfg.get("sentence_transformers_model", "all-MiniLM-L6-v2")
        try:
            return SentenceTransformersEmbedder(model_name)
        except Exception as e:
            raise ValueError(
                "Could not load sentence-transformers. "
                "Install it with: pip install -U sentence-transformers"
            ) from e

    raise ValueError(f"Invalid embedding.backend: {backend!r}")
