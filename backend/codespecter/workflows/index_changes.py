"""Incremental re-indexing on pushes to the default branch."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..config import is_indexable_path
from ..core import Outcome
from ..errors import GitHubError
from ..github import get_repository_token
from ..indexing import build_file_records
from ..utils import batched
from .engine import RunContext, workflow

logger = logging.getLogger(__name__)

ADDED = "added"
MODIFIED = "modified"
REMOVED = "removed"


def partition_changes(commits: List[Dict]) -> Dict[str, List[str]]:
    """Fold the commits of a push, in order, into one final state per path.

    added then modified stays added; removed then added becomes modified;
    a removal always wins over what came before it.
    """
    state: Dict[str, str] = {}
    for commit in commits:
        for path in commit.get("added") or []:
            previous = state.get(path)
            state[path] = MODIFIED if previous in (REMOVED, MODIFIED) else ADDED
        for path in commit.get("modified") or []:
            state[path] = ADDED if state.get(path) == ADDED else MODIFIED
        for path in commit.get("removed") or []:
            state[path] = REMOVED

    changes: Dict[str, List[str]] = {ADDED: [], MODIFIED: [], REMOVED: []}
    for path, final in state.items():
        changes[final].append(path)
    return changes


def is_default_branch_push(data: Dict) -> bool:
    repository = data.get("repository") or {}
    default_branch = repository.get("default_branch")
    return bool(default_branch and data.get("head_commit") and data.get("ref") == f"refs/heads/{default_branch}")


def push_lease(data: Dict) -> Optional[str]:
    if not is_default_branch_push(data):
        return None
    return f"repo:{data['repository']['id']}"


def _owner_login(repository: Dict) -> str:
    owner = repository.get("owner")
    if isinstance(owner, dict):
        return owner.get("login") or owner.get("name")
    return owner


def _reindex_file(services, gh, owner: str, repo: str, ref: str, namespace, path: str,
                  clean_slate: bool) -> Outcome[int]:
    try:
        content = gh.get_file_content(owner, repo, path, ref=ref)
    except GitHubError as e:
        logger.error(f"Failed to fetch {path}@{ref}: {e}")
        return Outcome.skip(str(e))

    # A failed embedding must leave the previous vectors in place
    try:
        records = build_file_records(namespace.name, path, content, services.chunker, services.embedder, services.cfg)
    except Exception as e:
        logger.error(f"Failed to re-index {path}, keeping its previous vectors: {e}")
        return Outcome.skip(str(e))

    if clean_slate:
        deleted = namespace.delete_by_path(path)
        if not deleted.ok:
            logger.warning(f"Stale vectors of {path} may remain: {deleted.skipped_reason}")

    try:
        namespace.upsert(records)
    except Exception as e:
        logger.error(f"Failed to re-index {path}: {e}")
        return Outcome.skip(str(e))
    return Outcome.of(len(records))


def _process_updates(services, gh, owner: str, repo: str, ref: str, repo_id,
                     paths: List[str], modified: List[str]) -> Dict:
    namespace = services.vector_store.namespace(repo_id)
    processed: List[str] = []
    skipped: List[Dict[str, str]] = []
    for path in paths:
        outcome = _reindex_file(services, gh, owner, repo, ref, namespace, path, clean_slate=path in modified)
        if outcome.ok:
            processed.append(path)
        else:
            skipped.append({"path": path, "reason": outcome.skipped_reason})
    return {"processed": processed, "skipped": skipped}


def _delete_removed(services, repo_id, paths: List[str]) -> Dict:
    namespace = services.vector_store.namespace(repo_id)
    deleted: List[str] = []
    skipped: List[Dict[str, str]] = []
    for path in paths:
        outcome = namespace.delete_by_path(path)
        if outcome.ok:
            deleted.append(path)
        else:
            skipped.append({"path": path, "reason": outcome.skipped_reason})
    return {"deleted": deleted, "skipped": skipped}


@workflow("index-changes", "github/push", retries=3, lease_key=push_lease)
def index_changes(ctx: RunContext) -> Dict:
    data = ctx.event.data
    if not is_default_branch_push(data):
        return {
            "success": True,
            "message": "Not a push to the default branch",
            "added": 0,
            "modified": 0,
            "removed": 0,
            "processed": 0,
            "skipped": 0,
        }

    services = ctx.services
    cfg = services.cfg
    repository = data["repository"]
    repo_id = repository["id"]
    owner, repo = _owner_login(repository), repository["name"]
    ref = data["head_commit"]["id"]

    changes = partition_changes(data.get("commits") or [])
    added, modified, removed = changes[ADDED], changes[MODIFIED], changes[REMOVED]
    logger.info(
        f"Push to {owner}/{repo}: {len(added)} added, {len(modified)} modified, {len(removed)} removed"
    )

    token = ctx.step.run("fetch-token", get_repository_token, services.session_factory, repo_id)
    gh = services.github(token)

    if removed:
        ctx.step.run("delete-vectors", _delete_removed, services, repo_id, removed)

    to_process = [p for p in added + modified if is_indexable_path(p, cfg)]
    batch_size = int(cfg.get("indexing", {}).get("batch_size", 10))
    results = []
    for i, batch in enumerate(batched(to_process, batch_size)):
        results.append(
            ctx.step.run(
                f"process-updates-{i * batch_size}",
                _process_updates, services, gh, owner, repo, ref, repo_id, batch, modified,
            )
        )

    return {
        "success": True,
        "added": len(added),
        "modified": len(modified),
        "removed": len(removed),
        "processed": sum(len(r["processed"]) for r in results),
        "skipped": sum(len(r["skipped"]) for r in results),
    }
