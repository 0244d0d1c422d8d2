"""
Worker pool driving the dispatcher.
"""

import asyncio
import os
import socket

from tenantjobs.config.logging import get_logger
from tenantjobs.config.settings import Settings
from tenantjobs.v1.jobs.dispatcher import Dispatcher

logger = get_logger(__name__)


class JobWorker:
    """
    Runs ``job_concurrency`` independent loops over one dispatcher.

    Features:
    - Each loop fetches and executes one job at a time, in its own scope
    - Empty queue polling with a configurable interval
    - Per-job failures never stop a loop; unexpected errors back off
    - Graceful shutdown waiting for in-flight jobs
    """

    def __init__(self, dispatcher: Dispatcher, settings: Settings):
        self.dispatcher = dispatcher
        self.settings = settings
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self.active_jobs: set[str] = set()
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the worker loops and wait until they finish."""
        if self.running:
            raise RuntimeError("Worker is already running")

        self.running = True
        logger.info(
            "Starting job worker",
            worker_id=self.worker_id,
            concurrency=self.settings.job_concurrency,
            poll_interval_ms=self.settings.job_poll_interval_ms,
        )

        self._tasks = [
            asyncio.create_task(self._worker_loop(index))
            for index in range(self.settings.job_concurrency)
        ]
        try:
            await asyncio.gather(*self._tasks)
        finally:
            self.running = False
            self._tasks = []

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Stopping job worker", worker_id=self.worker_id)
        self.running = False

        # Wait for active jobs to complete (with timeout)
        waited = 0.0
        while self.active_jobs and waited < self.settings.job_shutdown_timeout_s:
            await asyncio.sleep(0.1)
            waited += 0.1

        if self.active_jobs:
            logger.warning(
                "Worker stopped with active jobs, cancelling",
                worker_id=self.worker_id,
                active_jobs=len(self.active_jobs),
            )
            for task in self._tasks:
                task.cancel()

    async def _worker_loop(self, index: int) -> None:
        """Fetch and execute jobs until stopped."""
        loop_id = f"{self.worker_id}/{index}"
        while self.running:
            try:
                descriptor = await self.dispatcher.fetch_next()
                if descriptor is None:
                    await asyncio.sleep(self.settings.job_poll_interval_ms / 1000)
                    continue

                job_id = str(descriptor.id)
                self.active_jobs.add(job_id)
                try:
                    await self.dispatcher.execute(descriptor)
                finally:
                    self.active_jobs.discard(job_id)

            except asyncio.CancelledError:
                logger.info("Worker loop cancelled", loop_id=loop_id)
                raise
            except Exception:
                logger.exception("Error in worker loop", loop_id=loop_id)
                await asyncio.sleep(self.settings.worker_error_backoff_s)


# Worker instance management
_worker_instance: JobWorker | None = None


def get_worker(dispatcher: Dispatcher, settings: Settings) -> JobWorker:
    """Get or create the global worker instance."""
    global _worker_instance
    if _worker_instance is None:
        _worker_instance = JobWorker(dispatcher, settings)
    return _worker_instance
