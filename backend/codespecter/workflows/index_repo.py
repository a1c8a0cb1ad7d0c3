"""First-time indexing of a repository's default branch."""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from ..config import is_indexable_path
from ..github import get_user_token
from ..indexing import index_codebase
from ..utils import batched
from .engine import RunContext, workflow

logger = logging.getLogger(__name__)


def repository_lease(data: Dict) -> str:
    return f"repo:{data['repoId']}"


def _index_batch(services, gh, owner: str, repo: str, repo_id, paths: List[str]) -> int:
    cfg = services.cfg
    files = gh.fetch_file_content_batch(
        owner, repo, paths, max_workers=int(cfg.get("indexing", {}).get("fetch_workers", 10))
    )
    index_codebase(
        services.vector_store.namespace(repo_id),
        [(f["path"], f["content"]) for f in files],
        services.chunker,
        services.embedder,
        cfg,
    )
    return len(files)


@workflow("index-repo", "repository.indexing", retries=3, lease_key=repository_lease)
def index_repo(ctx: RunContext) -> Dict:
    data = ctx.event.data
    owner, repo, user_id, repo_id = data["owner"], data["repo"], data["userId"], data["repoId"]
    services = ctx.services
    cfg = services.cfg

    token = ctx.step.run("fetch-token", get_user_token, services.session_factory, user_id)
    gh = services.github(token)

    def fetch_file_paths() -> List[str]:
        paths = gh.get_repo_file_paths(owner, repo)
        return [p for p in paths if is_indexable_path(p, cfg)]

    paths = ctx.step.run("fetch-file-paths", fetch_file_paths)
    if not paths:
        return {"success": True, "files_indexed": 0, "message": "Empty repo"}

    batch_size = int(cfg.get("indexing", {}).get("batch_size", 10))
    results: List[Tuple[str, int]] = []
    for i, batch in enumerate(batched(paths, batch_size)):
        step_id = f"index-batch-{i * batch_size}"
        count = ctx.step.run(step_id, _index_batch, services, gh, owner, repo, repo_id, batch)
        results.append((step_id, count))

    files_indexed = sum(count for _, count in results)
    logger.info(f"Indexed {files_indexed}/{len(paths)} files of {owner}/{repo}")
    return {"success": True, "files_indexed": files_indexed}
