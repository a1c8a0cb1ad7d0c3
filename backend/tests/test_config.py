"""Tests for service configuration, repository config files and token lookup."""

import pytest

from codespecter.config import (
    expand_pattern,
    expand_patterns,
    fetch_project_config,
    is_indexable_path,
    load_config,
    parse_project_config,
    workflow_settings,
)
from codespecter.db import Account
from codespecter.errors import CredentialNotFoundError, RepositoryNotConnectedError
from codespecter.github import get_repository_token, get_user_token
from conftest import OWNER, REPO, REPO_ID, TOKEN, USER_ID


def test_expand_pattern():
    assert expand_pattern("*.py") == ["*.py", "**/*.py"]
    assert expand_pattern("venv/**") == ["venv/**", "**/venv/**"]
    assert expand_pattern("**/x") == ["**/x"]
    assert expand_pattern("# comment") == []


def test_expand_patterns_deduplicates_in_order():
    assert expand_patterns(["*.md", "docs/**", "*.md"]) == ["*.md", "**/*.md", "docs/**", "**/docs/**"]


@pytest.mark.parametrize("path, expected", [
    ("src/app.ts", True),
    ("main.py", True),
    ("node_modules/react/index.js", False),
    ("packages/ui/node_modules/x/index.js", False),
    ("dist/app.min.js", False),
    ("types/index.d.ts", False),
    ("README.md", False),
    ("assets/logo.png", False),
])
def test_is_indexable_path(path, expected):
    assert is_indexable_path(path, load_config()) is expected


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("QDRANT_URL", "http://qdrant:6333")
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "s3cret")
    config = load_config()
    assert config["vector_store"]["qdrant"]["url"] == "http://qdrant:6333"
    assert config["github"]["webhook_secret"] == "s3cret"


def test_workflow_settings_are_copies():
    config = load_config()
    settings = workflow_settings(config, "review-pr")
    assert settings == {"retries": 2, "concurrency": 4}
    settings["retries"] = 9
    assert config["workflows"]["review-pr"]["retries"] == 2
    assert workflow_settings(config, "unknown") == {}


def test_parse_full_project_config():
    config = parse_project_config(
        "review:\n"
        "  enabled: true\n"
        "  tone: friendly\n"
        "  rules: [Use async/await]\n"
        "  ignore: ['*.generated.ts']\n"
        "chat:\n"
        "  persona: Mentor\n"
    )
    assert config.review.tone == "friendly"
    assert config.review.rules == ["Use async/await"]
    assert config.review.ignore == ["*.generated.ts"]
    assert config.chat.enabled is True
    assert config.chat.persona == "Mentor"


def test_empty_project_config_uses_defaults():
    config = parse_project_config("")
    assert config.review.enabled is True
    assert config.review.tone == "professional"
    assert config.chat.instructions == []


def test_unknown_tone_is_rejected():
    with pytest.raises(ValueError):
        parse_project_config("review:\n  tone: sarcastic\n")


def test_github_directory_takes_precedence(github):
    github.files[".github/CODESPECTER.yml"] = "review:\n  tone: critical\n"
    github.files["CODESPECTER.yml"] = "review:\n  tone: friendly\n"
    assert fetch_project_config(github, OWNER, REPO).review.tone == "critical"


def test_root_config_is_second_choice(github):
    github.files["CODESPECTER.yml"] = "review:\n  tone: friendly\n"
    assert fetch_project_config(github, OWNER, REPO).review.tone == "friendly"


def test_missing_config_returns_none(github):
    assert fetch_project_config(github, OWNER, REPO) is None


@pytest.mark.parametrize("text", ["review: [unclosed", "- just\n- a list\n", "review:\n  enabled: maybe\n"])
def test_invalid_config_returns_none(github, text):
    github.files[".github/CODESPECTER.yml"] = text
    github.files["CODESPECTER.yml"] = "review:\n  tone: friendly\n"
    assert fetch_project_config(github, OWNER, REPO) is None


def test_token_lookup(session_factory, connected_repo):
    assert get_repository_token(session_factory, REPO_ID) == TOKEN
    assert get_user_token(session_factory, USER_ID) == TOKEN


def test_unknown_repository(session_factory):
    with pytest.raises(RepositoryNotConnectedError):
        get_repository_token(session_factory, 999)


def test_account_without_token(session_factory):
    with session_factory() as db:
        db.add(Account(user_id="u2", provider_id="github", access_token=None))
        db.commit()
    with pytest.raises(CredentialNotFoundError):
        get_user_token(session_factory, "u2")
