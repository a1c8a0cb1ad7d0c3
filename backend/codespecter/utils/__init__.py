"""Utility functions for codespecter."""

from .file_utils import (
    batched,
    has_extension,
    looks_binary,
)

__all__ = [
    "batched",
    "has_extension",
    "looks_binary",
]
