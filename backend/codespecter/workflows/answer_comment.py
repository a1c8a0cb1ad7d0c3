"""Answers to questions that mention the bot in a pull request."""

from __future__ import annotations

import logging
import re
from typing import Dict, List

from ..config import ProjectConfig
from ..errors import GitHubError
from ..github import get_repository_token
from ..search import retrieve_context
from .engine import RunContext, workflow
from .review_pr import load_project_config

logger = logging.getLogger(__name__)

GENERAL_SNIPPET = "General PR discussion (no specific line selected)"
GENERAL_PATH = "General context"

REVIEW_REPLY = "review_reply"
ISSUE_COMMENT = "issue_comment"


def fetch_comment_context(gh, owner: str, repo: str, pr_number: int, comment_id: int) -> Dict:
    pr = gh.get_pull(owner, repo, pr_number)
    context = {
        "pr_title": pr.get("title") or "",
        "pr_body": pr.get("body") or "",
        "diff_snippet": GENERAL_SNIPPET,
        "path": GENERAL_PATH,
        "is_review_comment": False,
    }
    try:
        comment = gh.get_review_comment(owner, repo, comment_id)
    except GitHubError as e:
        # Issue comments are not review comments; that is the common case
        logger.debug(f"Comment {comment_id} is not a review comment: {e}")
        return context
    context["is_review_comment"] = True
    if comment.get("diff_hunk"):
        context["diff_snippet"] = comment["diff_hunk"]
        context["path"] = comment.get("path") or GENERAL_PATH
    return context


def fetch_history(gh, owner: str, repo: str, pr_number: int, exclude_id: int) -> List[Dict]:
    """Issue and review comments of the PR, oldest first."""
    comments = gh.list_issue_comments(owner, repo, pr_number) + gh.list_review_comments(owner, repo, pr_number)
    comments.sort(key=lambda c: c.get("created_at") or "")
    return [
        {
            "user": (c.get("user") or {}).get("login") or "unknown",
            "body": c.get("body") or "",
            "created_at": c.get("created_at") or "",
        }
        for c in comments
        if c.get("id") != exclude_id
    ]


def strip_mention(body: str, mention: str) -> str:
    return re.sub(re.escape(mention), "", body, flags=re.IGNORECASE).strip()


def post_reply(gh, owner: str, repo: str, pr_number: int, comment_id: int, body: str,
               is_review_comment: bool) -> Dict:
    """Reply in the review thread, falling back to a PR comment."""
    if is_review_comment:
        try:
            reply = gh.create_review_comment_reply(owner, repo, pr_number, comment_id, body)
            return {"via": REVIEW_REPLY, "comment_id": reply.get("id")}
        except GitHubError as e:
            logger.warning(f"Thread reply to comment {comment_id} failed, posting a PR comment instead: {e}")
    comment = gh.create_issue_comment(owner, repo, pr_number, body)
    return {"via": ISSUE_COMMENT, "comment_id": comment.get("id")}


@workflow("answer-pr-comment", "pr.comment", retries=2, concurrency=10)
def answer_comment(ctx: RunContext) -> Dict:
    data = ctx.event.data
    services = ctx.services
    cfg = services.cfg
    mention = cfg.get("github", {}).get("mention", "@codespecter")
    body = data.get("body") or ""

    if data.get("isBot"):
        return {"message": "Ignored bot comment"}
    if mention.lower() not in body.lower():
        return {"message": "Ignored: No mention"}

    owner, repo, pr_number, repo_id = data["owner"], data["repo"], data["prNumber"], data["repoId"]
    comment_id = data["commentId"]
    logger.info(f"Mentioned in {owner}/{repo}#{pr_number} (comment {comment_id})")

    token = ctx.step.run("fetch-token", get_repository_token, services.session_factory, repo_id)
    gh = services.github(token)

    raw_config = ctx.step.run("load-config", load_project_config, gh, owner, repo, cfg)
    config = ProjectConfig.model_validate(raw_config) if raw_config else ProjectConfig()
    if not config.chat.enabled:
        return {"message": "Chat disabled by repository config."}

    context = ctx.step.run("fetch-context", fetch_comment_context, gh, owner, repo, pr_number, comment_id)
    history = ctx.step.run("fetch-history", fetch_history, gh, owner, repo, pr_number, comment_id)

    def rag_lookup() -> str:
        query = f"Question: {body}. Context: {context['pr_title']}"
        top_k = int(cfg.get("search", {}).get("top_k", 5))
        return "\n\n".join(retrieve_context(query, repo_id, services.vector_store, services.embedder, top_k))

    rag_context = ctx.step.run("rag-lookup", rag_lookup)

    def generate_answer() -> str:
        prompt = services.prompt_builder.build_chat_prompt(
            context["pr_title"],
            context["path"],
            context["diff_snippet"],
            history,
            rag_context,
            strip_mention(body, mention),
            config,
        )
        temperature = float(cfg.get("llm", {}).get("chat_temperature", 0.4))
        return services.llm.generate(prompt, temperature=temperature)

    answer = ctx.step.run("generate-answer", generate_answer)

    posted = ctx.step.run(
        "post-reply",
        post_reply, gh, owner, repo, pr_number, comment_id, answer, context["is_review_comment"],
    )
    return {"success": True, "reply": posted["via"], "comment_id": posted["comment_id"]}
