"""Relational persistence: credentials, workflow runs, leases."""

from .database import Base, make_engine, make_session_factory
from .models import Account, Lease, Repository, WorkflowRun, WorkflowStep

__all__ = [
    "Base",
    "make_engine",
    "make_session_factory",
    "Account",
    "Lease",
    "Repository",
    "WorkflowRun",
    "WorkflowStep",
]
