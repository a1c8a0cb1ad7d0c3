"""Data models for codespecter."""

from __future__ import annotations

import dataclasses
import re
import uuid
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")

CHUNK_KINDS = ("function", "class", "method", "block")

TRUNCATION_MARKER = "...[TRUNCATED]"

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


@dataclasses.dataclass(frozen=True)
class CodeChunk:
    """A contiguous span of a source file selected for embedding."""

    content: str
    line_start: int
    line_end: int
    kind: str = "block"

    @property
    def line_count(self) -> int:
        return self.line_end - self.line_start + 1


@dataclasses.dataclass
class VectorRecord:
    """Represents an embedded chunk as persisted in a repository namespace."""

    id: str
    embedding: List[float]
    repo_id: str
    path: str
    content: str
    line_start: int
    line_end: int
    kind: str

    @property
    def point_id(self) -> str:
        return point_id_for(self.id)

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            "record_id": self.id,
            "repo_id": self.repo_id,
            "path": self.path,
            "content": self.content,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "kind": self.kind,
        }


@dataclasses.dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a best-effort operation: a value, or the reason it was skipped."""

    value: Optional[T] = None
    skipped_reason: Optional[str] = None

    @classmethod
    def of(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def skip(cls, reason: str) -> "Outcome[T]":
        return cls(skipped_reason=reason or "unknown error")

    @property
    def ok(self) -> bool:
        return self.skipped_reason is None


def record_id_for(repo_id: str, path: str, line_start: int) -> str:
    """Deterministic record id; re-indexing the same chunk overwrites it."""
    return f"{repo_id}-{_UNSAFE_ID_CHARS.sub('_', path)}-{line_start}"


def point_id_for(record_id: str) -> str:
    """Qdrant only accepts UUIDs or integers as point ids."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, record_id))


def truncate_utf8(text: str, max_bytes: int) -> str:
    """Cap text at max_bytes of UTF-8, appending the truncation marker."""
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    return raw[:max_bytes].decode("utf-8", errors="ignore") + TRUNCATION_MARKER
