"""Durable workflows triggered by repository and pull request events."""

from .answer_comment import answer_comment
from .context import Services, build_services
from .delete_repo import delete_repo
from .engine import Engine, Event, RunContext, Step, WorkflowFunction, workflow
from .index_changes import index_changes, partition_changes
from .index_repo import index_repo
from .leases import LeaseManager
from .review_pr import review_pr

ALL_WORKFLOWS = [index_repo, index_changes, delete_repo, review_pr, answer_comment]

__all__ = [
    "ALL_WORKFLOWS",
    "Engine",
    "Event",
    "LeaseManager",
    "RunContext",
    "Services",
    "Step",
    "WorkflowFunction",
    "answer_comment",
    "build_services",
    "delete_repo",
    "index_changes",
    "index_repo",
    "partition_changes",
    "review_pr",
    "workflow",
]
