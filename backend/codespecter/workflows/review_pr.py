"""AI review of a pull request, posted as a PR comment."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from ..config import ProjectConfig, expand_patterns, fetch_project_config, match_any
from ..errors import GitHubError
from ..github import get_repository_token
from ..search import retrieve_context
from ..utils import has_extension
from .engine import RunContext, workflow

logger = logging.getLogger(__name__)

MAX_PATCH_CHARS = 10000
MAX_SUMMARY_CHARS = 4000


def load_project_config(gh, owner: str, repo: str, cfg: Dict) -> Optional[Dict]:
    """Step body: the repository config as a plain dict, or None."""
    locations = cfg.get("github", {}).get("config_locations") or [".github/CODESPECTER.yml", "CODESPECTER.yml"]
    config = fetch_project_config(gh, owner, repo, locations)
    return config.model_dump() if config else None


def reviewable_files(gh, owner: str, repo: str, pr_number: int, cfg: Dict, ignore: List[str]) -> List[Dict]:
    patterns = list(cfg.get("github", {}).get("review_ignore_patterns", [])) + list(ignore)
    ignore_globs = expand_patterns(patterns)
    files = []
    for f in gh.list_pull_files(owner, repo, pr_number):
        if f.get("status") == "removed" or match_any(f["filename"], ignore_globs):
            continue
        files.append({"filename": f["filename"], "patch": f.get("patch") or "", "status": f.get("status")})
    return files


def fetch_guidelines(gh, owner: str, repo: str, paths: List[str], extensions: List[str], max_workers: int = 10) -> str:
    """Concatenate guideline documents; paths may name files or directories.

    Discovery and download each run in parallel. Anything that cannot be
    found or read is skipped.
    """

    def discover(path: str) -> List[str]:
        try:
            data = gh.get_contents(owner, repo, path)
        except GitHubError as e:
            logger.warning(f"Guideline path not found: {path} ({e})")
            return []
        if isinstance(data, list):
            return [
                item["path"]
                for item in data
                if item.get("type") == "file" and has_extension(item["path"], extensions)
            ]
        return [path]

    if not paths:
        return ""
    workers = max(1, min(max_workers, len(paths)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        discovered = list(pool.map(discover, paths))

    files: List[str] = []
    for found in discovered:
        for path in found:
            if path not in files:
                files.append(path)

    documents = gh.fetch_file_content_batch(owner, repo, files, max_workers=max_workers)
    logger.info(f"Loaded {len(documents)} guideline files for {owner}/{repo}")
    return "".join(f"\n\n--- FILE: {d['path']} ---\n{d['content']}" for d in documents)


def build_review_query(title: str, description: str, files: List[Dict]) -> str:
    """Retrieval query: title and description first, then a bounded patch summary."""
    summaries = [f"File: {f['filename']}\n{f.get('patch') or ''}" for f in files]
    summary = "\n\n".join(s for s in summaries if len(s) < MAX_PATCH_CHARS)[:MAX_SUMMARY_CHARS]
    return (
        f"PR Title: {title}\n"
        f"PR Description: {description or ''}\n\n"
        f"Code Changes Summary:\n{summary}"
    ).strip()


@workflow("review-pr", "pr.review", retries=2, concurrency=4)
def review_pr(ctx: RunContext) -> Dict:
    data = ctx.event.data
    owner, repo, pr_number, repo_id = data["owner"], data["repo"], data["prNumber"], data["repoId"]
    title, description = data.get("title") or "", data.get("description") or ""
    services = ctx.services
    cfg = services.cfg
    github_cfg = cfg.get("github", {})

    token = ctx.step.run("fetch-token", get_repository_token, services.session_factory, repo_id)
    gh = services.github(token)

    raw_config = ctx.step.run("load-config", load_project_config, gh, owner, repo, cfg)
    config = ProjectConfig.model_validate(raw_config) if raw_config else ProjectConfig()
    if not config.review.enabled:
        return {"message": "Review disabled by repository config."}

    files = ctx.step.run("fetch-diff", reviewable_files, gh, owner, repo, pr_number, cfg, config.review.ignore)
    if not files:
        return {"message": "No reviewable files found."}

    guideline_paths = config.review.guidelines or github_cfg.get("default_guidelines", [])
    guidelines = ctx.step.run(
        "fetch-guidelines",
        fetch_guidelines, gh, owner, repo, guideline_paths,
        github_cfg.get("guideline_extensions", [".md"]),
    )

    def fetch_rag_context() -> str:
        query = build_review_query(title, description, files)
        top_k = int(cfg.get("search", {}).get("top_k", 5))
        return "\n\n".join(retrieve_context(query, repo_id, services.vector_store, services.embedder, top_k))

    rag_context = ctx.step.run("fetch-rag-context", fetch_rag_context)

    def analyze_code() -> str:
        prompt = services.prompt_builder.build_review_prompt(title, description, files, guidelines, rag_context, config)
        temperature = float(cfg.get("llm", {}).get("review_temperature", 0.2))
        return services.llm.generate(prompt, temperature=temperature)

    review = ctx.step.run("analyze-code", analyze_code)

    def post_results() -> Dict:
        comment = gh.create_issue_comment(owner, repo, pr_number, review)
        return {"comment_id": comment.get("id")}

    posted = ctx.step.run("post-results", post_results)
    logger.info(f"Posted review on {owner}/{repo}#{pr_number}")
    return {"success": True, "files_reviewed": len(files), "comment_id": posted["comment_id"]}
