"""
Job submission.
"""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from tenantjobs.config.logging import get_logger
from tenantjobs.v1.core.exceptions import PersistenceError, ValidationError
from tenantjobs.v1.core.registries import JobRegistry, job_registry
from tenantjobs.v1.jobs.filters import CreatedContext, CreatingContext, CreationFilter
from tenantjobs.v1.jobs.metadata import MetadataStore
from tenantjobs.v1.jobs.queue import JobQueue
from tenantjobs.v1.jobs.schemas import JobDescriptor, JobTarget

logger = get_logger(__name__)


class JobClient:
    """
    Submits jobs through the creation pipeline.

    A client is cheap to build; the HTTP layer builds one per request so that
    its filters can capture request state (tenant, request id).
    """

    def __init__(
        self,
        queue: JobQueue,
        filters: Sequence[CreationFilter] = (),
        jobs: JobRegistry = job_registry,
    ):
        self.queue = queue
        self.filters = list(filters)
        self.jobs = jobs

    async def submit(
        self, job_type: str, *args: Any, method: str = "run", **kwargs: Any
    ) -> UUID:
        """
        Create, annotate and persist a job.

        Args:
            job_type: Name the job class is registered under
            *args, **kwargs: Arguments passed to the entry method
            method: Entry method invoked on the job instance

        Returns:
            The id of the persisted job

        Raises:
            ValidationError: Unknown job type or entry method
            PersistenceError: The queue could not record the job
        """
        self._validate_target(job_type, method)

        descriptor = JobDescriptor(
            target=JobTarget(job_type=job_type, method=method, args=args, kwargs=kwargs)
        )
        metadata = MetadataStore()

        creating = CreatingContext(descriptor=descriptor, metadata=metadata)
        for creation_filter in self.filters:
            creation_filter.on_creating(creating)

        metadata.freeze()
        try:
            job_id = await self.queue.persist(descriptor, metadata)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "Queue failed while persisting job",
                job_id=str(descriptor.id),
                job_type=job_type,
                error=str(e),
            )
            raise PersistenceError(
                "Job could not be persisted", {"job_id": str(descriptor.id)}
            ) from e

        created = CreatedContext(descriptor=descriptor, metadata=metadata)
        for creation_filter in self.filters:
            creation_filter.on_created(created)

        logger.info(
            "Job submitted",
            job_id=str(job_id),
            job_type=job_type,
            metadata=metadata.as_dict(),
        )
        return job_id

    def _validate_target(self, job_type: str, method: str) -> None:
        if not self.jobs.contains(job_type):
            raise ValidationError(
                f"Unknown job type: {job_type}",
                {"job_type": job_type, "registered": self.jobs.list()},
            )
        job_class = self.jobs.get(job_type)
        if method.startswith("_") or not callable(getattr(job_class, method, None)):
            raise ValidationError(
                f"Job type '{job_type}' has no entry method '{method}'",
                {"job_type": job_type, "method": method},
            )
