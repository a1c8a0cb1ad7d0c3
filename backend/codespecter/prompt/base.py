"""PromptBuilder Interface."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..config.project import ProjectConfig


class PromptBuilder:
    """Abstract base class for prompt building."""

    def build_review_prompt(
        self,
        title: str,
        description: str,
        files: List[Dict[str, str]],
        guidelines: str,
        rag_context: str,
        config: Optional[ProjectConfig] = None,
    ) -> str:
        """Build the pull request review prompt.

        Args:
            title: PR title
            description: PR body
            files: Reviewable files as ``{"filename", "patch"}`` dicts
            guidelines: Concatenated repository guideline documents
            rag_context: Retrieved codebase snippets
            config: Repository configuration, if any

        Returns:
            The prompt text, within the builder's token budget
        """
        raise NotImplementedError

    def build_chat_prompt(
        self,
        pr_title: str,
        path: str,
        diff_snippet: str,
        history: List[Dict[str, str]],
        rag_context: str,
        question: str,
        config: Optional[ProjectConfig] = None,
    ) -> str:
        """Build the prompt answering a question asked in a PR thread."""
        raise NotImplementedError
