"""Configuration management for codespecter."""

from __future__ import annotations

import copy
import fnmatch
import os
from typing import Dict, List


DEFAULT_INCLUDE_PATTERNS: List[str] = [
    "*.py", "*.js", "*.ts", "*.tsx", "*.jsx",
    "*.go", "*.java", "*.kt", "*.cs",
    "*.rb", "*.php", "*.rs",
    "*.c", "*.h", "*.cpp", "*.hpp",
    "*.swift", "*.scala", "*.vue", "*.svelte",
    "*.sql", "*.sh",
]

DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    ".git/**",
    "node_modules/**",
    "vendor/**",
    "dist/**",
    "build/**",
    "out/**",
    "coverage/**",
    ".venv/**",
    "venv/**",
    "__pycache__/**",
    "target/**",
    ".next/**",
    ".idea/**",
    ".vscode/**",
    "*.min.js",
    "*.min.css",
    "*.map",
    "*.lock",
    "*.d.ts",
    ".env",
    ".env.*",
]

DEFAULT_CONFIG: Dict = {
    "log_level": "INFO",
    "database_url": "sqlite:///./codespecter.db",
    "chunking": {
        "max_bytes": 8000,
        "min_lines": 4,
    },
    "indexing": {
        "batch_size": 10,
        "upsert_batch_size": 50,
        "max_metadata_bytes": 30000,
        "fetch_workers": 10,
        "include_patterns": DEFAULT_INCLUDE_PATTERNS,
        "exclude_patterns": DEFAULT_EXCLUDE_PATTERNS,
    },
    "embedding": {
        "backend": "remote",
        "model": "text-embedding-004",
        "api_base": "https://generativelanguage.googleapis.com/v1beta/openai",
        "api_key_env": "GEMINI_API_KEY",
        "timeout": 30,
        "sentence_transformers_model": "sentence-transformers/all-MiniLM-L6-v2",
    },
    "llm": {
        "api_base": "https://generativelanguage.googleapis.com/v1beta/openai",
        "api_key_env": "GEMINI_API_KEY",
        "model": "gemini-2.5-flash",
        "max_tokens": 8192,
        "timeout": 120,
        "review_temperature": 0.2,
        "chat_temperature": 0.4,
        "prompt_max_tokens": 60000,
    },
    "search": {"top_k": 5},
    "vector_store": {
        "backend": "qdrant",
        "qdrant": {
            "host": "localhost",
            "port": 6333,
            "url": None,
            "api_key": None,
            "location": None,
            "collection": "codespecter",
        },
    },
    "github": {
        "api_base": "https://api.github.com",
        "timeout": 30,
        "webhook_secret": None,
        "mention": "@codespecter",
        "config_locations": [".github/CODESPECTER.yml", "CODESPECTER.yml"],
        "default_guidelines": [
            "BIGGER_PICTURE.md",
            "guidelines/03-api-development-standards.md",
            "guidelines/12-security-hardening.md",
        ],
        "guideline_extensions": [".md", ".mdx", ".txt", ".rst"],
        "review_ignore_patterns": ["*.lock", "*.min.js", "*.min.css", "*.svg", "*.png",
                                   "*.jpg", "*.json", "*.map", "*.md", "package-lock.json"],
    },
    "deletion": {
        "max_polls": 12,
        "poll_interval_seconds": 5,
    },
    "workflows": {
        "retry_backoff_seconds": 1.0,
        "lease_ttl_seconds": 900,
        "lease_wait_seconds": 600,
        "lease_poll_seconds": 2,
        "index-repo": {"retries": 3},
        "index-changes": {"retries": 3},
        "delete-repo": {"retries": 5},
        "review-pr": {"retries": 2, "concurrency": 4},
        "answer-pr-comment": {"retries": 2, "concurrency": 10},
    },
}


def expand_pattern(pattern: str) -> List[str]:
    """Expand pattern to include both root and nested versions.

    Examples:
        '*.py' -> ['*.py', '**/*.py']
        'venv/**' -> ['venv/**', '**/venv/**']
    """
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return []

    if pattern.startswith("**/"):
        return [pattern]

    if pattern.startswith("*."):
        return [pattern, "**/" + pattern]

    if "/**" in pattern:
        return [pattern, "**/" + pattern]

    return [pattern, "**/" + pattern]


def expand_patterns(patterns: List[str]) -> List[str]:
    """Expand and deduplicate patterns while preserving order."""
    out: List[str] = []
    seen: set[str] = set()
    for p in patterns:
        for ep in expand_pattern(p):
            if ep not in seen:
                seen.add(ep)
                out.append(ep)
    return out


def match_any(path: str, globs: List[str]) -> bool:
    return any(fnmatch.fnmatch(path, g) for g in globs)


def is_indexable_path(path: str, cfg: Dict) -> bool:
    """True when a repository path should be chunked and embedded."""
    include_globs = cfg.get("include_globs") or expand_patterns(
        cfg.get("indexing", {}).get("include_patterns", DEFAULT_INCLUDE_PATTERNS)
    )
    exclude_globs = cfg.get("exclude_globs") or expand_patterns(
        cfg.get("indexing", {}).get("exclude_patterns", DEFAULT_EXCLUDE_PATTERNS)
    )
    if match_any(path, exclude_globs):
        return False
    return match_any(path, include_globs)


def load_config() -> Dict:
    """Load configuration.

    Returns default configuration with environment overrides and expanded
    patterns.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    # Override from environment
    qdrant = config["vector_store"]["qdrant"]
    qdrant["host"] = os.getenv("QDRANT_HOST", qdrant["host"])
    qdrant["port"] = int(os.getenv("QDRANT_PORT", str(qdrant["port"])))
    qdrant["url"] = os.getenv("QDRANT_URL", qdrant["url"])
    qdrant["api_key"] = os.getenv("QDRANT_API_KEY", qdrant["api_key"])
    config["database_url"] = os.getenv("DATABASE_URL", config["database_url"])
    config["log_level"] = os.getenv("LOG_LEVEL", config["log_level"])
    config["github"]["webhook_secret"] = os.getenv(
        "GITHUB_WEBHOOK_SECRET", config["github"]["webhook_secret"]
    )
    config["embedding"]["backend"] = os.getenv("EMBEDDING_BACKEND", config["embedding"]["backend"])

    # Expand patterns
    config["include_globs"] = expand_patterns(config["indexing"]["include_patterns"])
    config["exclude_globs"] = expand_patterns(config["indexing"]["exclude_patterns"])

    return config


def workflow_settings(cfg: Dict, function_id: str) -> Dict:
    """Per-workflow overrides (retries, concurrency)."""
    return dict(cfg.get("workflows", {}).get(function_id, {}))
