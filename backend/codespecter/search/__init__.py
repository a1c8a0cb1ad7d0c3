"""Context retrieval for reviews and chat."""

from .searcher import DefaultSearcher, retrieve_context

__all__ = [
    "DefaultSearcher",
    "retrieve_context",
]
