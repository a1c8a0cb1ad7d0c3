"""Removal of a disconnected repository's vectors."""

from __future__ import annotations

import logging
from typing import Dict

from ..errors import DeletionTimeoutError
from .engine import RunContext, workflow

logger = logging.getLogger(__name__)


@workflow("delete-repo", "repo.delete", retries=5)
def delete_repo(ctx: RunContext) -> Dict:
    """Delete the namespace and poll until the store reports it empty.

    Deletion is eventually consistent, so the count is re-checked after
    each durable sleep. Exhausting the polls raises DeletionTimeoutError,
    which restarts the run from the top.
    """
    repo_id = ctx.event.data["repoId"]
    services = ctx.services
    deletion_cfg = services.cfg.get("deletion", {})
    max_polls = int(deletion_cfg.get("max_polls", 12))
    interval = float(deletion_cfg.get("poll_interval_seconds", 5))
    namespace = services.vector_store.namespace(repo_id)

    initial = ctx.step.run("check-initial-count", namespace.count)
    if initial == 0:
        logger.info(f"Namespace {namespace.name} is already empty")
        return {"success": True, "deleted": 0, "polls": 0}

    ctx.step.run("delete-namespace", namespace.delete_all)

    remaining = initial
    for i in range(1, max_polls + 1):
        ctx.step.sleep(f"wait-{i}", interval)
        remaining = ctx.step.run(f"check-count-{i}", namespace.count)
        if remaining == 0:
            logger.info(f"Namespace {namespace.name} deleted after {i} polls")
            return {"success": True, "deleted": initial, "polls": i}
        logger.info(f"Namespace {namespace.name} still has {remaining} vectors (poll {i}/{max_polls})")

    raise DeletionTimeoutError(namespace.name, remaining, max_polls)
