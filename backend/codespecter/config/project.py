"""Repository-supplied configuration (CODESPECTER.yml)."""

from __future__ import annotations

import logging
from typing import List, Literal, Optional, Sequence

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..errors import GitHubError

logger = logging.getLogger(__name__)

DEFAULT_LOCATIONS = (".github/CODESPECTER.yml", "CODESPECTER.yml")


class ReviewSettings(BaseModel):
    enabled: bool = True
    tone: Literal["professional", "friendly", "critical", "instructional"] = "professional"
    rules: List[str] = Field(default_factory=list)
    ignore: List[str] = Field(default_factory=list)
    guidelines: List[str] = Field(default_factory=list)


class ChatSettings(BaseModel):
    enabled: bool = True
    persona: Optional[str] = None
    instructions: List[str] = Field(default_factory=list)


class ProjectConfig(BaseModel):
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)


def parse_project_config(text: str) -> ProjectConfig:
    """Parse YAML text; an empty document yields the defaults."""
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("CODESPECTER.yml must contain a mapping")
    return ProjectConfig.model_validate(data)


def fetch_project_config(
    gh,
    owner: str,
    repo: str,
    locations: Sequence[str] = DEFAULT_LOCATIONS,
) -> Optional[ProjectConfig]:
    """Load the first config file found, or None to use built-in behaviour."""
    for path in locations:
        try:
            text = gh.get_file_content(owner, repo, path)
        except GitHubError as e:
            # A missing file just means trying the next location
            if not e.not_found:
                logger.error(f"Error fetching config at {path}: {e}")
            continue

        try:
            config = parse_project_config(text)
        except (yaml.YAMLError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring invalid config at {path}: {e}")
            return None

        logger.info(f"Loaded config from {owner}/{repo}:{path}")
        return config

    logger.info(f"No CODESPECTER.yml found in {owner}/{repo}. Using defaults.")
    return None
