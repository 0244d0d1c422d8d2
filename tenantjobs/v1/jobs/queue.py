"""
Queue backends.

A queue persists a job descriptor together with its metadata, hands each
queued job to exactly one dispatcher, and records terminal outcomes. Two
implementations are provided: an in-process queue for development and tests,
and a SQL queue that claims rows with ``SELECT ... FOR UPDATE SKIP LOCKED``.
"""

import asyncio
import json
import os
import socket
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantjobs.config.logging import get_logger
from tenantjobs.config.settings import QueueBackend, Settings, get_settings
from tenantjobs.infra.database import get_database
from tenantjobs.v1.core.exceptions import NotFoundError, PersistenceError
from tenantjobs.v1.jobs.metadata import MetadataStore
from tenantjobs.v1.jobs.models import JobRow
from tenantjobs.v1.jobs.schemas import (
    JobDescriptor,
    JobOutcome,
    JobRecord,
    JobStatus,
    JobTarget,
)

logger = get_logger(__name__)


@runtime_checkable
class JobQueue(Protocol):
    """Storage boundary used by the job client and the dispatcher."""

    async def persist(self, descriptor: JobDescriptor, metadata: MetadataStore) -> UUID:
        """Store descriptor and metadata atomically; raise PersistenceError on failure."""
        ...

    async def fetch_next(self) -> JobDescriptor | None:
        """Claim the next queued job, or return None when the queue is empty."""
        ...

    async def get_metadata(self, job_id: UUID) -> MetadataStore:
        """Return the frozen metadata persisted with ``job_id``."""
        ...

    async def mark_terminal(self, job_id: UUID, outcome: JobOutcome) -> None:
        """Record the outcome of an attempt."""
        ...

    async def get(self, job_id: UUID) -> JobRecord | None:
        ...

    async def requeue(self, job_id: UUID) -> bool:
        """Queue a terminal job again under the same id."""
        ...


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def _storable_result(result: Any) -> Any:
    """Results are stored as JSON; anything else is kept as its repr."""
    try:
        json.dumps(result)
    except (TypeError, ValueError):
        return repr(result)
    return result


@dataclass
class _MemoryEntry:
    descriptor: JobDescriptor
    metadata: dict[str, Any]
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    result: Any = None
    error_code: str | None = None
    last_error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryJobQueue:
    """In-process FIFO queue. Not durable; for development and tests."""

    def __init__(self):
        self._entries: dict[UUID, _MemoryEntry] = {}
        self._pending: deque[UUID] = deque()
        self._lock = asyncio.Lock()

    async def persist(self, descriptor: JobDescriptor, metadata: MetadataStore) -> UUID:
        async with self._lock:
            if descriptor.id in self._entries:
                raise PersistenceError(
                    "A job with this id already exists", {"job_id": str(descriptor.id)}
                )
            self._entries[descriptor.id] = _MemoryEntry(
                descriptor=descriptor, metadata=metadata.as_dict()
            )
            self._pending.append(descriptor.id)
        return descriptor.id

    async def fetch_next(self) -> JobDescriptor | None:
        async with self._lock:
            while self._pending:
                job_id = self._pending.popleft()
                entry = self._entries[job_id]
                if entry.status != JobStatus.QUEUED:
                    continue
                entry.status = JobStatus.RUNNING
                entry.attempts += 1
                entry.updated_at = datetime.now(UTC)
                return entry.descriptor.model_copy(update={"attempt": entry.attempts})
        return None

    async def get_metadata(self, job_id: UUID) -> MetadataStore:
        entry = self._entry(job_id)
        return MetadataStore(entry.metadata, frozen=True)

    async def mark_terminal(self, job_id: UUID, outcome: JobOutcome) -> None:
        async with self._lock:
            entry = self._entry(job_id)
            entry.status = outcome.status
            entry.result = _storable_result(outcome.result)
            entry.error_code = outcome.error_code
            entry.last_error = outcome.error_message
            entry.updated_at = datetime.now(UTC)

    async def get(self, job_id: UUID) -> JobRecord | None:
        entry = self._entries.get(job_id)
        if entry is None:
            return None
        target = entry.descriptor.target
        return JobRecord(
            id=job_id,
            job_type=target.job_type,
            method=target.method,
            args=list(target.args),
            kwargs=dict(target.kwargs),
            metadata=dict(entry.metadata),
            status=entry.status,
            attempts=entry.attempts,
            result=entry.result,
            error_code=entry.error_code,
            last_error=entry.last_error,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    async def requeue(self, job_id: UUID) -> bool:
        async with self._lock:
            entry = self._entries.get(job_id)
            if entry is None or not entry.status.is_terminal:
                return False
            entry.status = JobStatus.QUEUED
            entry.updated_at = datetime.now(UTC)
            self._pending.append(job_id)
        return True

    def _entry(self, job_id: UUID) -> _MemoryEntry:
        try:
            return self._entries[job_id]
        except KeyError:
            raise NotFoundError("Job not found", {"job_id": str(job_id)})


class SqlJobQueue:
    """
    SQLAlchemy-backed queue.

    Features:
    - Descriptor and metadata stored in one row, written in one transaction
    - SELECT FOR UPDATE SKIP LOCKED for claiming jobs
    - Same job id reused when a terminal job is requeued
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        worker_id: str | None = None,
    ):
        self.session_factory = session_factory
        self.worker_id = worker_id or default_worker_id()

    async def persist(self, descriptor: JobDescriptor, metadata: MetadataStore) -> UUID:
        target = descriptor.target
        row = JobRow(
            id=descriptor.id,
            type=target.job_type,
            method=target.method,
            args=list(target.args),
            kwargs=dict(target.kwargs),
            parameters=metadata.as_dict(),
            status=JobStatus.QUEUED.value,
            attempts=0,
            created_at=descriptor.created_at,
            updated_at=descriptor.created_at,
        )

        async with self.session_factory() as session:
            try:
                session.add(row)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(
                    "Failed to persist job",
                    job_id=str(descriptor.id),
                    job_type=target.job_type,
                    error=str(e),
                )
                raise PersistenceError(
                    "Job could not be persisted", {"job_id": str(descriptor.id)}
                ) from e

        return descriptor.id

    async def fetch_next(self) -> JobDescriptor | None:
        now = datetime.now(UTC)

        async with self.session_factory() as session:
            result = await session.execute(
                select(JobRow)
                .where(JobRow.status == JobStatus.QUEUED.value)
                .order_by(JobRow.created_at)
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            row = result.scalar_one_or_none()
            if row is None:
                await session.rollback()
                return None

            row.status = JobStatus.RUNNING.value
            row.attempts = row.attempts + 1
            row.locked_at = now
            row.locked_by = self.worker_id
            row.updated_at = now
            await session.commit()

            logger.info(
                "Claimed job",
                worker_id=self.worker_id,
                job_id=str(row.id),
                attempt=row.attempts,
            )
            return _descriptor_from_row(row)

    async def get_metadata(self, job_id: UUID) -> MetadataStore:
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobRow.parameters).where(JobRow.id == job_id)
            )
            parameters = result.scalar_one_or_none()

        if parameters is None:
            raise NotFoundError("Job not found", {"job_id": str(job_id)})
        return MetadataStore(parameters, frozen=True)

    async def mark_terminal(self, job_id: UUID, outcome: JobOutcome) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(JobRow)
                .where(JobRow.id == job_id)
                .values(
                    status=outcome.status.value,
                    result=_storable_result(outcome.result),
                    error_code=outcome.error_code,
                    last_error=outcome.error_message,
                    locked_at=None,
                    locked_by=None,
                    updated_at=datetime.now(UTC),
                )
            )
            await session.commit()

    async def get(self, job_id: UUID) -> JobRecord | None:
        async with self.session_factory() as session:
            row = await session.get(JobRow, job_id)

        if row is None:
            return None
        return JobRecord(
            id=row.id,
            job_type=row.type,
            method=row.method,
            args=list(row.args),
            kwargs=dict(row.kwargs),
            metadata=dict(row.parameters),
            status=JobStatus(row.status),
            attempts=row.attempts,
            result=row.result,
            error_code=row.error_code,
            last_error=row.last_error,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def requeue(self, job_id: UUID) -> bool:
        terminal = [
            JobStatus.SUCCEEDED.value,
            JobStatus.FAILED.value,
            JobStatus.CANCELED.value,
        ]
        async with self.session_factory() as session:
            result = await session.execute(
                update(JobRow)
                .where(JobRow.id == job_id, JobRow.status.in_(terminal))
                .values(
                    status=JobStatus.QUEUED.value,
                    error_code=None,
                    last_error=None,
                    updated_at=datetime.now(UTC),
                )
            )
            await session.commit()

        requeued = result.rowcount > 0
        if requeued:
            logger.info("Job requeued", job_id=str(job_id))
        return requeued


def _descriptor_from_row(row: JobRow) -> JobDescriptor:
    return JobDescriptor(
        id=row.id,
        target=JobTarget(
            job_type=row.type,
            method=row.method,
            args=tuple(row.args),
            kwargs=dict(row.kwargs),
        ),
        created_at=row.created_at,
        attempt=row.attempts,
    )


# Queue instance management
_queue_instance: JobQueue | None = None


def get_queue(settings: Settings = Depends(get_settings)) -> JobQueue:
    """Get or create the global queue for the configured backend."""
    global _queue_instance
    if _queue_instance is None:
        if settings.queue_backend == QueueBackend.SQL:
            _queue_instance = SqlJobQueue(get_database(settings).SessionLocal)
        else:
            _queue_instance = InMemoryJobQueue()
    return _queue_instance


def reset_queue() -> None:
    """Drop the global queue so the next get_queue() builds a new one."""
    global _queue_instance
    _queue_instance = None
