"""
Job table backing the SQL queue.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, TIMESTAMP, CheckConstraint, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tenantjobs.infra.database import Base
from tenantjobs.v1.jobs.schemas import JobStatus


class JobRow(Base):
    """
    One job: its target, the metadata written at creation and its state.

    Target and metadata live in the same row so that they are persisted
    atomically and can never be observed apart.
    """

    __tablename__ = "jobs"

    # Target
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Job type identifier"
    )
    method: Mapped[str] = mapped_column(
        Text, nullable=False, default="run", comment="Entry method"
    )
    args: Mapped[list[Any]] = mapped_column(
        JSON, nullable=False, default=list, comment="Positional arguments"
    )
    kwargs: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, comment="Keyword arguments"
    )
    parameters: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Metadata written by creation filters",
    )

    # Job state
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.QUEUED.value,
        comment="Job status: queued|running|succeeded|failed|canceled",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of attempts made"
    )

    # Worker coordination
    locked_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="When job was claimed"
    )
    locked_by: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Worker ID that claimed the job"
    )

    # Results
    result: Mapped[Any | None] = mapped_column(
        JSON, nullable=True, comment="Job result data"
    )
    error_code: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Structured error identifier"
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('queued', 'running', 'succeeded', 'failed', 'canceled')",
            name="jobs_status_check",
        ),
        Index("ix_jobs_status_created_at", "status", "created_at"),
    )

    def is_active(self) -> bool:
        """Check if job is in an active state (queued, running)."""
        return self.status in (JobStatus.QUEUED.value, JobStatus.RUNNING.value)
