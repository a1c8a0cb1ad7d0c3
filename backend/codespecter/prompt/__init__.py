"""Prompt building for reviews and PR chat."""

from .builder import DefaultPromptBuilder, PromptConfig, build_chat_prompt, build_review_prompt, estimate_tokens

__all__ = [
    "DefaultPromptBuilder",
    "PromptConfig",
    "build_chat_prompt",
    "build_review_prompt",
    "estimate_tokens",
]
