"""
Drives one execution attempt end to end.
"""

import asyncio
import inspect
from collections.abc import Sequence
from typing import Any

from tenantjobs.config.logging import get_logger, job_log_context
from tenantjobs.v1.core.exceptions import JobBodyError, UnresolvedDependencyError
from tenantjobs.v1.core.registries import (
    JobRegistry,
    ProviderRegistry,
    job_registry,
    provider_registry,
)
from tenantjobs.v1.jobs.filters import (
    ExecutionFilter,
    PerformedContext,
    PerformingContext,
)
from tenantjobs.v1.jobs.metadata import MetadataStore
from tenantjobs.v1.jobs.queue import JobQueue
from tenantjobs.v1.jobs.schemas import JobContext, JobDescriptor, JobOutcome
from tenantjobs.v1.jobs.scope import ExecutionScope

logger = get_logger(__name__)


class Dispatcher:
    """
    Fetches persisted jobs and executes them inside isolated scopes.

    Every call to :meth:`execute`:
    - opens its own ExecutionScope around an immutable JobContext snapshot
    - runs execution filters' ``on_performing`` in registration order
    - activates the job class by constructor injection and runs its entry method
    - runs ``on_performed`` in reverse order with the outcome
    - disposes the scope, whatever happened, then reports to the queue

    Failures of a single attempt are returned as a FAILED outcome and never
    raised, so a worker loop survives them.
    """

    def __init__(
        self,
        queue: JobQueue,
        filters: Sequence[ExecutionFilter] = (),
        providers: ProviderRegistry = provider_registry,
        jobs: JobRegistry = job_registry,
    ):
        self.queue = queue
        self.filters = list(filters)
        self.providers = providers
        self.jobs = jobs

    async def fetch_next(self) -> JobDescriptor | None:
        return await self.queue.fetch_next()

    async def run_once(self) -> JobOutcome | None:
        """Execute the next queued job, if any."""
        descriptor = await self.fetch_next()
        if descriptor is None:
            return None
        return await self.execute(descriptor)

    async def execute(self, descriptor: JobDescriptor) -> JobOutcome:
        target = descriptor.target
        with job_log_context(str(descriptor.id), target.job_type, descriptor.attempt):
            metadata = await self.queue.get_metadata(descriptor.id)
            scope = ExecutionScope(self.providers, JobContext(descriptor, metadata))
            entered: list[ExecutionFilter] = []
            cancellation: asyncio.CancelledError | None = None

            logger.info("Job attempt started")
            try:
                try:
                    outcome = await self._perform(descriptor, metadata, scope, entered)
                except asyncio.CancelledError as e:
                    cancellation = e
                    outcome = JobOutcome.canceled()
                    logger.info("Job attempt cancelled")

                outcome = self._performed(descriptor, metadata, scope, entered, outcome)
            finally:
                await scope.dispose()

            await self.queue.mark_terminal(descriptor.id, outcome)

            if outcome.succeeded:
                logger.info("Job attempt succeeded")
            elif cancellation is None:
                logger.error(
                    "Job attempt failed",
                    error_code=outcome.error_code,
                    error=outcome.error_message,
                )

            if cancellation is not None:
                raise cancellation
            return outcome

    async def _perform(
        self,
        descriptor: JobDescriptor,
        metadata: MetadataStore,
        scope: ExecutionScope,
        entered: list[ExecutionFilter],
    ) -> JobOutcome:
        target = descriptor.target

        performing = PerformingContext(descriptor=descriptor, metadata=metadata, scope=scope)
        for execution_filter in self.filters:
            try:
                execution_filter.on_performing(performing)
            except Exception as e:
                logger.exception(
                    "Execution filter failed before job",
                    filter=type(execution_filter).__name__,
                )
                return JobOutcome.failure(e, "EXECUTION_FILTER_ERROR")
            entered.append(execution_filter)

        try:
            if not self.jobs.contains(target.job_type):
                raise UnresolvedDependencyError(target.job_type)
            job = scope.activate(self.jobs.get(target.job_type))
        except UnresolvedDependencyError as e:
            logger.error("Job dependencies could not be resolved", **e.details)
            return JobOutcome.failure(e, "UNRESOLVED_DEPENDENCY")
        except Exception as e:
            # A provider factory or constructor raised while building the job
            logger.exception("Job activation failed")
            return JobOutcome.failure(e, "JOB_ACTIVATION_ERROR")

        try:
            result = await _invoke(getattr(job, target.method), target.args, target.kwargs)
        except Exception as e:
            logger.exception("Job body raised")
            error = JobBodyError(target.job_type, e)
            error.__cause__ = e
            return JobOutcome.failure(error, "JOB_BODY_ERROR")

        return JobOutcome.success(result)

    def _performed(
        self,
        descriptor: JobDescriptor,
        metadata: MetadataStore,
        scope: ExecutionScope,
        entered: list[ExecutionFilter],
        outcome: JobOutcome,
    ) -> JobOutcome:
        for execution_filter in reversed(entered):
            performed = PerformedContext(
                descriptor=descriptor, metadata=metadata, scope=scope, outcome=outcome
            )
            try:
                execution_filter.on_performed(performed)
            except Exception as e:
                logger.exception(
                    "Execution filter failed after job",
                    filter=type(execution_filter).__name__,
                )
                if outcome.succeeded:
                    outcome = JobOutcome.failure(e, "EXECUTION_FILTER_ERROR")
        return outcome


async def _invoke(entry: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
    """Await coroutine entry methods; run plain ones in a worker thread."""
    if inspect.iscoroutinefunction(entry):
        return await entry(*args, **kwargs)
    result = await asyncio.to_thread(entry, *args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
