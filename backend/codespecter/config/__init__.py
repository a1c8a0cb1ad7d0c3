"""Configuration management for codespecter."""

from .manager import (
    DEFAULT_CONFIG,
    DEFAULT_INCLUDE_PATTERNS,
    DEFAULT_EXCLUDE_PATTERNS,
    load_config,
    expand_pattern,
    expand_patterns,
    is_indexable_path,
    match_any,
    workflow_settings,
)
from .project import ProjectConfig, fetch_project_config, parse_project_config

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_INCLUDE_PATTERNS",
    "DEFAULT_EXCLUDE_PATTERNS",
    "load_config",
    "expand_pattern",
    "expand_patterns",
    "is_indexable_path",
    "match_any",
    "workflow_settings",
    "ProjectConfig",
    "fetch_project_config",
    "parse_project_config",
]
