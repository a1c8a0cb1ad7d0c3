"""File utility functions."""

from __future__ import annotations

import os
from typing import Iterable, List


def looks_binary(content: str, sample_size: int = 2048) -> bool:
    """Check if decoded file content is binary by looking for null characters."""
    return "\x00" in content[:sample_size]


def has_extension(path: str, extensions: Iterable[str]) -> bool:
    """Case-insensitive extension check, e.g. ``has_extension("A.MD", [".md"])``."""
    ext = os.path.splitext(path)[1].lower()
    return ext in {e.lower() for e in extensions}


def batched(items: List, size: int) -> List[List]:
    """Split a list into consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("Batch size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]
