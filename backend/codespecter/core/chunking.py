"""Code chunking using tree-sitter definitions, with length-based fallback."""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set

import tree_sitter_language_pack

from .models import CodeChunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 8000
DEFAULT_MIN_LINES = 4

# Preceding siblings inspected when hoisting comments into a chunk
MAX_COMMENT_SIBLINGS = 5

# Supported languages for AST-based chunking
EXT_TO_LANG = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".py": "python",
    ".go": "go",
    ".java": "java",
}

_JS_DEFINITIONS = {
    "function_declaration": "function",
    "generator_function_declaration": "function",
    "method_definition": "method",
    "class_declaration": "class",
    "lexical_declaration": "function",
    "variable_declaration": "function",
}

# Node type -> chunk kind
DEFINITION_KINDS: Dict[str, Dict[str, str]] = {
    "typescript": dict(_JS_DEFINITIONS, abstract_class_declaration="class"),
    "tsx": dict(_JS_DEFINITIONS, abstract_class_declaration="class"),
    "javascript": dict(_JS_DEFINITIONS),
    "python": {
        "function_definition": "function",
        "class_definition": "class",
    },
    "go": {
        "function_declaration": "function",
        "method_declaration": "method",
        "type_declaration": "class",
    },
    "java": {
        "method_declaration": "method",
        "constructor_declaration": "method",
        "class_declaration": "class",
        "interface_declaration": "class",
        "enum_declaration": "class",
    },
}

# const/let/var only count when they hold a function value
DECLARATION_TYPES = {"lexical_declaration", "variable_declaration"}
FUNCTION_VALUE_TYPES = {"arrow_function", "function_expression", "function", "generator_function"}
TOP_LEVEL_TYPES = {"program", "export_statement"}

# Wrappers whose start (and preceding comments) belong to the definition
WRAPPER_TYPES = {"export_statement", "decorated_definition"}

# Process-wide grammar cache
_LANGUAGES: Dict[str, object] = {}
_UNAVAILABLE: Set[str] = set()
_LANGUAGE_LOCK = threading.Lock()


def get_language_for_file(filename: str) -> Optional[str]:
    """Get language name from file extension."""
    _, ext = os.path.splitext(filename)
    return EXT_TO_LANG.get(ext.lower())


def load_language(language: str) -> bool:
    """Load a grammar once per process.

    Returns False when the grammar cannot be loaded; the failure is logged once
    and remembered so later files go straight to length-based chunking.
    """
    if language in _LANGUAGES:
        return True
    if language in _UNAVAILABLE:
        return False
    with _LANGUAGE_LOCK:
        if language in _LANGUAGES:
            return True
        if language in _UNAVAILABLE:
            return False
        try:
            _LANGUAGES[language] = tree_sitter_language_pack.get_language(language)
        except Exception as e:
            logger.warning(f"Grammar for {language} unavailable, using length-based chunking: {e}")
            _UNAVAILABLE.add(language)
            return False
    logger.debug(f"Loaded tree-sitter grammar for {language}")
    return True


@contextmanager
def parsed_tree(text: str, language: str) -> Iterator[object]:
    """Parse text and release the tree and parser when the block exits."""
    parser = tree_sitter_language_pack.get_parser(language)
    tree = parser.parse(text.encode("utf-8"))
    try:
        yield tree
    finally:
        del tree
        del parser


# -----------------------------------------------------------------------------
# Interfaces
# -----------------------------------------------------------------------------

class Chunker:
    """Abstract base class for code chunking."""

    def chunk(self, text: str, file_path: Optional[str] = None) -> List[CodeChunk]:
        """Chunk source text into embeddable spans.

        Args:
            text: File content
            file_path: Path to the file (optional, for language detection)

        Returns:
            List of CodeChunk, in file order
        """
        raise NotImplementedError


class DefaultChunker(Chunker):
    """Definition-level chunks for supported languages, length-based otherwise."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES, min_lines: int = DEFAULT_MIN_LINES):
        self.max_bytes = max_bytes
        self.min_lines = min_lines

    def chunk(self, text: str, file_path: Optional[str] = None) -> List[CodeChunk]:
        if not text:
            return []

        lang_name = get_language_for_file(file_path) if file_path else None
        if lang_name and load_language(lang_name):
            try:
                chunks = chunk_ast(text, lang_name, self.min_lines)
                if chunks:
                    return chunks
                logger.debug(f"No definitions found in {file_path}, using length-based chunking")
            except Exception as e:
                logger.warning(f"AST chunking failed for {file_path}, falling back to length-based: {e}")

        return chunk_lines(text, self.max_bytes)


def chunk_code(
    text: str,
    filename: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
    min_lines: int = DEFAULT_MIN_LINES,
) -> List[CodeChunk]:
    """Chunk a source file (functional wrapper)."""
    chunker = DefaultChunker(max_bytes=max_bytes, min_lines=min_lines)
    return chunker.chunk(text, file_path=filename)


def chunk_ast(text: str, language: str, min_lines: int = DEFAULT_MIN_LINES) -> List[CodeChunk]:
    """Extract one chunk per definition.

    Strategy:
    1. Walk the syntax tree collecting functions, methods, classes and
       top-level declarations bound to a function value
    2. Absorb up to 5 immediately preceding comment siblings
    3. Drop chunks shorter than min_lines, and repeats of a start line

    Args:
        text: Source code text
        language: Language name from EXT_TO_LANG
        min_lines: Minimum lines for a valid chunk

    Returns:
        List of CodeChunk with 1-based inclusive line ranges
    """
    kinds = DEFINITION_KINDS[language]
    lines = text.split("\n")
    chunks: List[CodeChunk] = []
    seen_starts: Set[int] = set()

    with parsed_tree(text, language) as tree:
        for node in _iter_definitions(tree.root_node, kinds):
            anchor = node
            if node.parent is not None and node.parent.type in WRAPPER_TYPES:
                anchor = node.parent

            start_row = _hoist_comments(anchor)
            end_row = node.end_point[0]
            if node.end_point[1] == 0 and end_row > start_row:
                end_row -= 1

            if end_row - start_row + 1 < min_lines:
                continue
            if start_row in seen_starts:
                continue
            seen_starts.add(start_row)

            chunks.append(
                CodeChunk(
                    content="\n".join(lines[start_row:end_row + 1]),
                    line_start=start_row + 1,
                    line_end=end_row + 1,
                    kind=_kind_for(node, kinds),
                )
            )

    logger.debug(f"Created {len(chunks)} {language} chunks")
    return chunks


def chunk_lines(text: str, max_bytes: int = DEFAULT_MAX_BYTES) -> List[CodeChunk]:
    """Length-based chunking for files without a usable grammar.

    Lines are accumulated until the next one would push the chunk past
    max_bytes (UTF-8). Line endings are kept, so joining the chunk contents
    gives back the original text.
    """
    lines = _split_keepends(text)
    chunks: List[CodeChunk] = []
    buf: List[str] = []
    buf_bytes = 0
    start_line = 1

    for lineno, line in enumerate(lines, start=1):
        size = len(line.encode("utf-8"))
        if buf and buf_bytes + size > max_bytes:
            chunks.append(CodeChunk("".join(buf), start_line, lineno - 1, "block"))
            buf = []
            buf_bytes = 0
            start_line = lineno
        buf.append(line)
        buf_bytes += size

    if buf:
        chunks.append(CodeChunk("".join(buf), start_line, len(lines), "block"))
    return chunks


def _split_keepends(text: str) -> List[str]:
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _iter_definitions(root, kinds: Dict[str, str]):
    """Pre-order walk yielding definition nodes, outermost first."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in kinds and _is_definition(node):
            yield node
        stack.extend(reversed(node.named_children))


def _is_definition(node) -> bool:
    if node.type not in DECLARATION_TYPES:
        return True
    if node.parent is None or node.parent.type not in TOP_LEVEL_TYPES:
        return False
    for declarator in node.named_children:
        if declarator.type != "variable_declarator":
            continue
        value = declarator.child_by_field_name("value")
        if value is not None and value.type in FUNCTION_VALUE_TYPES:
            return True
    return False


def _kind_for(node, kinds: Dict[str, str]) -> str:
    kind = kinds.get(node.type, "block")
    if node.type == "function_definition" and _inside_python_class(node):
        return "method"
    return kind


def _inside_python_class(node) -> bool:
    parent = node.parent
    if parent is not None and parent.type == "decorated_definition":
        parent = parent.parent
    return (
        parent is not None
        and parent.type == "block"
        and parent.parent is not None
        and parent.parent.type == "class_definition"
    )


def _hoist_comments(anchor) -> int:
    """Return the start row after absorbing preceding comment siblings."""
    start_row = anchor.start_point[0]
    current = anchor
    for _ in range(MAX_COMMENT_SIBLINGS):
        prev = current.prev_sibling
        if prev is None:
            break
        if _is_comment(prev):
            start_row = prev.start_point[0]
            current = prev
        elif not _node_text(prev).strip():
            current = prev
        else:
            break
    return start_row


def _is_comment(node) -> bool:
    return "comment" in node.type or "doc_string" in node.type or "docstring" in node.type


def _node_text(node) -> str:
    return (node.text or b"").decode("utf-8", errors="replace")
