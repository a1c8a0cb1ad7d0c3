"""SQLAlchemy models."""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Account(Base):
    """OAuth account linked to a user; holds the GitHub access token."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    provider_id = Column(String(50), nullable=False, default="github")
    access_token = Column(Text)


class Repository(Base):
    """A GitHub repository connected for reviews and indexing."""

    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, index=True)
    github_id = Column(BigInteger, unique=True, nullable=False, index=True)
    owner = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    webhook_id = Column(BigInteger)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WorkflowRun(Base):
    """One invocation of a workflow function."""

    __tablename__ = "workflow_runs"

    id = Column(String(36), primary_key=True)
    function_id = Column(String(100), nullable=False, index=True)
    event_name = Column(String(100), nullable=False)
    event_data = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, index=True)  # running, completed, failed
    attempts = Column(Integer, default=0)
    result = Column(Text)
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    steps = relationship("WorkflowStep", back_populates="run", cascade="all, delete-orphan")


class WorkflowStep(Base):
    """Memoized output of a named step within a run."""

    __tablename__ = "workflow_steps"
    __table_args__ = (UniqueConstraint("run_id", "name", name="uq_workflow_steps_run_name"),)

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String(36), ForeignKey("workflow_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    output = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    run = relationship("WorkflowRun", back_populates="steps")


class Lease(Base):
    """Mutual-exclusion token, e.g. one per repository."""

    __tablename__ = "leases"

    key = Column(String(255), primary_key=True)
    holder = Column(String(64), nullable=False)
    expires_at = Column(Float, nullable=False)
