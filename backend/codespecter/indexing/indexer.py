"""Code indexing logic."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..core import Chunker, CodeChunk, DefaultChunker, Embedder, VectorRecord, record_id_for, truncate_utf8
from ..storage import Namespace
from ..utils import looks_binary

logger = logging.getLogger(__name__)

DEFAULT_MAX_METADATA_BYTES = 30000


def embedding_text(path: str, chunk: CodeChunk) -> str:
    """Text sent to the embedder: a location header followed by the code."""
    return (
        f"File: {path}\n"
        f"Type: {chunk.kind}\n"
        f"Lines: {chunk.line_start}-{chunk.line_end}\n\n"
        f"{chunk.content}"
    )


def make_chunker(cfg: Dict) -> Chunker:
    chunking_cfg = cfg.get("chunking", {})
    return DefaultChunker(
        max_bytes=int(chunking_cfg.get("max_bytes", 8000)),
        min_lines=int(chunking_cfg.get("min_lines", 4)),
    )


def build_file_records(
    repo_id,
    path: str,
    content: str,
    chunker: Chunker,
    embedder: Embedder,
    cfg: Optional[Dict] = None,
) -> List[VectorRecord]:
    """Chunk one file and embed every chunk.

    Returns an empty list for files that produce no chunks. Embedding
    errors propagate so the caller can decide whether to skip the file.
    """
    cfg = cfg or {}
    max_bytes = int(cfg.get("indexing", {}).get("max_metadata_bytes", DEFAULT_MAX_METADATA_BYTES))

    if looks_binary(content):
        logger.debug(f"Skipping binary file {path}")
        return []

    chunks = chunker.chunk(content, file_path=path)
    if not chunks:
        return []

    vectors = embedder.embed([embedding_text(path, c) for c in chunks])
    if len(vectors) != len(chunks):
        raise ValueError(f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks of {path}")

    repo_id = str(repo_id)
    records: List[VectorRecord] = []
    for chunk, vector in zip(chunks, vectors):
        records.append(
            VectorRecord(
                id=record_id_for(repo_id, path, chunk.line_start),
                embedding=list(vector),
                repo_id=repo_id,
                path=path,
                content=truncate_utf8(chunk.content, max_bytes),
                line_start=chunk.line_start,
                line_end=chunk.line_end,
                kind=chunk.kind,
            )
        )
    return records


def index_codebase(
    namespace: Namespace,
    files: Iterable[Tuple[str, str]],
    chunker: Chunker,
    embedder: Embedder,
    cfg: Optional[Dict] = None,
) -> int:
    """Index ``(path, content)`` pairs into a namespace.

    A file that fails to chunk or embed is logged and left out; the rest
    of the batch is still written. Returns the number of records upserted.
    """
    records: List[VectorRecord] = []
    for path, content in files:
        try:
            records.extend(build_file_records(namespace.name, path, content, chunker, embedder, cfg))
        except Exception as e:
            logger.error(f"Failed to process file {path}: {e}")

    if records:
        namespace.upsert(records)
        logger.info(f"Indexed {len(records)} chunks into namespace {namespace.name}")
    return len(records)
