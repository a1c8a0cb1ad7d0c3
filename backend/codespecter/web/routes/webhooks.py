"""GitHub webhook deliveries mapped to workflow events."""

import hashlib
import hmac
import json
import logging
from typing import Dict, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request

from ...workflows import Engine
from ..schemas import WebhookAccepted
from .events import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")

REVIEW_ACTIONS = ("opened", "synchronize")


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw body."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def _repo_fields(payload: Dict) -> Dict:
    repository = payload["repository"]
    return {
        "owner": repository["owner"]["login"],
        "repo": repository["name"],
        "repoId": repository["id"],
    }


def _is_bot(comment: Dict) -> bool:
    return (comment.get("user") or {}).get("type") == "Bot"


def map_github_event(event_type: str, payload: Dict) -> Optional[Tuple[str, Dict]]:
    """Translate a delivery into ``(event name, event data)``, or None to ignore it."""
    action = payload.get("action")

    if event_type == "pull_request" and action in REVIEW_ACTIONS:
        pr = payload["pull_request"]
        return "pr.review", dict(
            _repo_fields(payload),
            prNumber=pr["number"],
            title=pr.get("title") or "",
            description=pr.get("body") or "",
        )

    if event_type == "push":
        repository = payload["repository"]
        owner = repository.get("owner") or {}
        head = payload.get("head_commit")
        return "github/push", {
            "ref": payload.get("ref"),
            "repository": {
                "id": repository["id"],
                "name": repository["name"],
                "default_branch": repository.get("default_branch"),
                "owner": owner.get("login") or owner.get("name"),
            },
            "commits": [
                {
                    "id": c.get("id"),
                    "added": c.get("added") or [],
                    "modified": c.get("modified") or [],
                    "removed": c.get("removed") or [],
                }
                for c in payload.get("commits") or []
            ],
            "head_commit": {"id": head["id"]} if head else None,
        }

    if event_type == "issue_comment" and action == "created":
        issue = payload["issue"]
        if "pull_request" not in issue:
            return None
        comment = payload["comment"]
        return "pr.comment", dict(
            _repo_fields(payload),
            prNumber=issue["number"],
            commentId=comment["id"],
            body=comment.get("body") or "",
            isBot=_is_bot(comment),
        )

    if event_type == "pull_request_review_comment" and action == "created":
        comment = payload["comment"]
        return "pr.comment", dict(
            _repo_fields(payload),
            prNumber=payload["pull_request"]["number"],
            commentId=comment["id"],
            body=comment.get("body") or "",
            isBot=_is_bot(comment),
        )

    return None


@router.post("/github", response_model=WebhookAccepted)
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_github_event: str = Header(""),
    x_hub_signature_256: Optional[str] = Header(None),
    engine: Engine = Depends(get_engine),
):
    body = await request.body()
    secret = request.app.state.cfg.get("github", {}).get("webhook_secret")
    if secret and not verify_signature(secret, body, x_hub_signature_256):
        raise HTTPException(status_code=401, detail="Invalid signature")

    if x_github_event == "ping":
        return WebhookAccepted(message="pong")

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    try:
        mapped = map_github_event(x_github_event, payload)
    except (KeyError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Malformed {x_github_event} payload: {e}")

    if mapped is None:
        return WebhookAccepted(message=f"Ignored {x_github_event or 'unknown'} event")

    name, data = mapped
    run_ids = engine.dispatch(name, data)
    if run_ids:
        background_tasks.add_task(engine.process, run_ids)
    logger.info(f"Webhook {x_github_event} -> {name} ({len(run_ids)} runs)")
    return WebhookAccepted(event=name, run_ids=run_ids)
