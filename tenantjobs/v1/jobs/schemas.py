"""
Job descriptors, outcomes and API schemas.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from tenantjobs.v1.jobs.metadata import MetadataStore


class JobStatus(str, Enum):
    """Job status enumeration."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELED)


class JobTarget(BaseModel):
    """What to run: a registered job type, its entry method and arguments."""

    model_config = ConfigDict(frozen=True)

    job_type: str = Field(..., description="Registered job type name")
    method: str = Field(default="run", description="Entry method on the job class")
    args: tuple[Any, ...] = Field(default=(), description="Positional arguments")
    kwargs: dict[str, Any] = Field(default_factory=dict, description="Keyword arguments")


class JobDescriptor(BaseModel):
    """
    Immutable, serializable record of a job.

    ``attempt`` is assigned by the queue each time the descriptor is handed to
    a dispatcher; it is 0 for a descriptor that has never been fetched.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    target: JobTarget
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    attempt: int = Field(default=0, ge=0)


@dataclass(frozen=True)
class JobOutcome:
    """Result of one execution attempt, handed to after-stages and the queue."""

    status: JobStatus
    result: Any = None
    error: BaseException | None = None
    error_code: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.SUCCEEDED

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error is not None else None

    @classmethod
    def success(cls, result: Any = None) -> "JobOutcome":
        return cls(status=JobStatus.SUCCEEDED, result=result)

    @classmethod
    def failure(cls, error: BaseException, error_code: str) -> "JobOutcome":
        return cls(status=JobStatus.FAILED, error=error, error_code=error_code)

    @classmethod
    def canceled(cls) -> "JobOutcome":
        return cls(status=JobStatus.CANCELED, error_code="CANCELED")


@dataclass(frozen=True)
class JobContext:
    """Read-only snapshot an execution scope is built around."""

    descriptor: JobDescriptor
    metadata: MetadataStore
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class JobRecord(BaseModel):
    """Queue-side view of a job, used for status reporting."""

    id: UUID
    job_type: str
    method: str
    args: list[Any]
    kwargs: dict[str, Any]
    metadata: dict[str, Any]
    status: JobStatus
    attempts: int
    result: Any = None
    error_code: str | None = None
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


class JobEnqueueRequest(BaseModel):
    """Schema for enqueueing jobs via API."""

    type: str = Field(..., description="Job type")
    method: str = Field(default="run", description="Entry method")
    args: list[Any] = Field(default_factory=list, description="Positional arguments")
    kwargs: dict[str, Any] = Field(default_factory=dict, description="Keyword arguments")
    tenant_id: int | None = Field(
        default=None, description="Submit on behalf of another tenant (admin role only)"
    )


class JobEnqueueResponse(BaseModel):
    """Schema for job enqueue response."""

    job_id: UUID
    status: JobStatus
