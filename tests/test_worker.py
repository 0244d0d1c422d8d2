import asyncio

import pytest

from tenantjobs.config.settings import Settings
from tenantjobs.v1.jobs.schemas import JobStatus
from tenantjobs.v1.jobs.worker import JobWorker


class BlockingJob:
    async def run(self) -> None:
        await asyncio.Event().wait()


class FlakyDispatcher:
    """Dispatcher whose first fetch fails."""

    def __init__(self):
        self.fetches = 0

    async def fetch_next(self):
        self.fetches += 1
        if self.fetches == 1:
            raise ConnectionError("queue unavailable")
        return None

    async def execute(self, descriptor):
        raise AssertionError("nothing to execute")


async def wait_for_status(queue, job_ids, status, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        records = [await queue.get(job_id) for job_id in job_ids]
        if all(record.status == status for record in records):
            return records
        await asyncio.sleep(0.01)
    raise AssertionError(f"jobs did not reach {status.value}")


@pytest.mark.asyncio
async def test_worker_processes_jobs(queue, make_client, dispatcher, test_settings):
    """Test that the worker loops drain the queue."""
    job_ids = [await make_client(tenant_id).submit("tenant_echo") for tenant_id in (1, 2, 3)]
    worker = JobWorker(dispatcher, test_settings)

    task = asyncio.create_task(worker.start())
    records = await wait_for_status(queue, job_ids, JobStatus.SUCCEEDED)
    await worker.stop()
    await asyncio.wait_for(task, timeout=2)

    assert [record.result["tenant_id"] for record in records] == [1, 2, 3]
    assert worker.running is False
    assert worker.active_jobs == set()


@pytest.mark.asyncio
async def test_worker_cannot_start_twice(dispatcher, test_settings):
    worker = JobWorker(dispatcher, test_settings)
    task = asyncio.create_task(worker.start())
    await asyncio.sleep(0)

    with pytest.raises(RuntimeError, match="already running"):
        await worker.start()

    await worker.stop()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_worker_survives_unexpected_errors():
    """Test that a loop backs off and keeps polling after an error."""
    dispatcher = FlakyDispatcher()
    settings = Settings(job_concurrency=1, job_poll_interval_ms=10, worker_error_backoff_s=0)
    worker = JobWorker(dispatcher, settings)

    task = asyncio.create_task(worker.start())
    while dispatcher.fetches < 3:
        await asyncio.sleep(0.01)
    await worker.stop()
    await asyncio.wait_for(task, timeout=2)

    assert dispatcher.fetches >= 3


@pytest.mark.asyncio
async def test_stop_cancels_jobs_after_timeout(queue, make_client, jobs, dispatcher):
    """Test that in-flight jobs are cancelled once the grace period is over."""
    jobs.register("blocking", BlockingJob)
    job_id = await make_client(1).submit("blocking")
    settings = Settings(job_concurrency=1, job_poll_interval_ms=10, job_shutdown_timeout_s=0)
    worker = JobWorker(dispatcher, settings)

    task = asyncio.create_task(worker.start())
    await wait_for_status(queue, [job_id], JobStatus.RUNNING)
    while not worker.active_jobs:
        await asyncio.sleep(0.01)
    await worker.stop()

    with pytest.raises(asyncio.CancelledError):
        await task

    record = await queue.get(job_id)
    assert record.status == JobStatus.CANCELED
