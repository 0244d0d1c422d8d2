import pytest

from tenantjobs.v1.core.exceptions import (
    PersistenceError,
    UnsupportedOperationError,
    ValidationError,
)
from tenantjobs.v1.jobs.client import JobClient
from tenantjobs.v1.jobs.filters import (
    REQUEST_ID_KEY,
    CreatedContext,
    CreatingContext,
    CreationFilter,
)
from tenantjobs.v1.jobs.schemas import JobStatus
from tenantjobs.v1.jobs.tenancy import TENANT_ID_KEY


class RecordingFilter(CreationFilter):
    def __init__(self, events: list):
        self.events = events

    def on_creating(self, context: CreatingContext) -> None:
        self.events.append(("creating", context.metadata.frozen))
        context.set_parameter("Source", "test")

    def on_created(self, context: CreatedContext) -> None:
        self.events.append(("created", context.metadata.frozen))


class LateWriterFilter(CreationFilter):
    def on_created(self, context: CreatedContext) -> None:
        context.metadata.set("Late", 1)


class BrokenQueue:
    async def persist(self, descriptor, metadata):
        raise ConnectionError("database unavailable")


class RejectingQueue:
    async def persist(self, descriptor, metadata):
        raise PersistenceError("duplicate job")


@pytest.mark.asyncio
async def test_submit_persists_job_with_tenant(queue, make_client):
    """Test that submission records the caller's tenant and request id."""
    client = make_client(5, request_id="req-123")

    job_id = await client.submit("tenant_echo", note="hello")

    record = await queue.get(job_id)
    assert record.status == JobStatus.QUEUED
    assert record.job_type == "tenant_echo"
    assert record.kwargs == {"note": "hello"}
    assert record.metadata == {TENANT_ID_KEY: 5, REQUEST_ID_KEY: "req-123"}
    assert record.attempts == 0


@pytest.mark.asyncio
async def test_submit_without_request_id(queue, make_client):
    job_id = await make_client(5).submit("tenant_echo")

    record = await queue.get(job_id)
    assert REQUEST_ID_KEY not in record.metadata


@pytest.mark.asyncio
async def test_filters_run_around_persistence(queue, jobs):
    """Test creation filters see writable then frozen metadata."""
    events = []
    client = JobClient(queue, [RecordingFilter(events)], jobs)

    job_id = await client.submit("tenant_echo")

    assert events == [("creating", False), ("created", True)]
    metadata = await queue.get_metadata(job_id)
    assert metadata["Source"] == "test"


@pytest.mark.asyncio
async def test_metadata_cannot_change_after_persist(queue, jobs):
    client = JobClient(queue, [LateWriterFilter()], jobs)

    with pytest.raises(UnsupportedOperationError):
        await client.submit("tenant_echo")


@pytest.mark.asyncio
async def test_submit_unknown_job_type(make_client):
    """Test that unknown job types are rejected before persisting."""
    with pytest.raises(ValidationError, match="Unknown job type"):
        await make_client(1).submit("missing")


@pytest.mark.asyncio
async def test_submit_unknown_method(make_client):
    with pytest.raises(ValidationError, match="no entry method"):
        await make_client(1).submit("tenant_echo", method="nope")


@pytest.mark.asyncio
async def test_submit_private_method(make_client):
    with pytest.raises(ValidationError):
        await make_client(1).submit("tenant_echo", method="__init__")


@pytest.mark.asyncio
async def test_queue_errors_become_persistence_errors(jobs):
    """Test that unexpected storage failures are reported as PersistenceError."""
    client = JobClient(BrokenQueue(), [], jobs)

    with pytest.raises(PersistenceError) as exc_info:
        await client.submit("tenant_echo")

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_persistence_errors_propagate_unchanged(jobs):
    client = JobClient(RejectingQueue(), [], jobs)

    with pytest.raises(PersistenceError, match="duplicate job"):
        await client.submit("tenant_echo")


@pytest.mark.asyncio
async def test_each_submission_gets_new_id(make_client):
    client = make_client(1)
    first = await client.submit("tenant_echo")
    second = await client.submit("tenant_echo")
    assert first != second
