"""Collaborators shared by workflow runs."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from ..core import Chunker, Embedder, make_embedder
from ..db import make_engine, make_session_factory
from ..github import GitHubClient
from ..indexing import make_chunker
from ..llm import ChatCompletionsClient, LLMConfig, create_client
from ..prompt import DefaultPromptBuilder, PromptConfig
from ..storage import VectorStore, make_vector_store

logger = logging.getLogger(__name__)


class Services:
    """Everything a workflow body needs besides its event.

    The embedder and the LLM client are created on first use so that an
    app without API keys can still start and serve the non-AI routes.
    """

    def __init__(
        self,
        cfg: Dict,
        session_factory,
        vector_store: VectorStore,
        embedder: Optional[Embedder] = None,
        llm: Optional[ChatCompletionsClient] = None,
        chunker: Optional[Chunker] = None,
        github_factory: Optional[Callable[[str], GitHubClient]] = None,
        prompt_builder: Optional[DefaultPromptBuilder] = None,
    ):
        self.cfg = cfg
        self.session_factory = session_factory
        self.vector_store = vector_store
        self.chunker = chunker or make_chunker(cfg)
        self.github_factory = github_factory or self._default_github_factory
        self._embedder = embedder
        self._llm = llm
        self._prompt_builder = prompt_builder

    def _default_github_factory(self, token: str) -> GitHubClient:
        github_cfg = self.cfg.get("github", {})
        return GitHubClient(
            token,
            api_base=github_cfg.get("api_base", "https://api.github.com"),
            timeout=int(github_cfg.get("timeout", 30)),
        )

    def github(self, token: str) -> GitHubClient:
        return self.github_factory(token)

    @property
    def embedder(self) -> Embedder:
        if self._embedder is None:
            self._embedder = make_embedder(self.cfg)
        return self._embedder

    @property
    def llm(self) -> ChatCompletionsClient:
        if self._llm is None:
            self._llm = create_client(LLMConfig.from_cfg(self.cfg))
        return self._llm

    @property
    def prompt_builder(self) -> DefaultPromptBuilder:
        if self._prompt_builder is None:
            llm_cfg = self.cfg.get("llm", {})
            self._prompt_builder = DefaultPromptBuilder(
                PromptConfig(max_tokens=int(llm_cfg.get("prompt_max_tokens", 60000)))
            )
        return self._prompt_builder


def build_services(cfg: Dict, session_factory=None) -> Services:
    """Wire the configured database, vector store and clients."""
    if session_factory is None:
        session_factory = make_session_factory(make_engine(cfg["database_url"]))
    return Services(cfg=cfg, session_factory=session_factory, vector_store=make_vector_store(cfg))
