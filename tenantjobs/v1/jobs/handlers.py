"""
Built-in jobs and job-scoped dependencies.

Jobs are plain classes. Their constructor parameters are resolved from the
execution scope of the attempt, so a job only has to annotate what it needs.
"""

from typing import Any

from tenantjobs.config.logging import get_logger
from tenantjobs.v1.jobs.schemas import JobContext
from tenantjobs.v1.jobs.tenancy import TenantProvider

logger = get_logger(__name__)


class JobInfo:
    """Identity of the job being executed in the current scope."""

    def __init__(self, context: JobContext):
        self.id = str(context.descriptor.id)
        self.name = context.descriptor.target.job_type
        self.attempt = context.descriptor.attempt


class TenantEchoJob:
    """
    Reports the tenant and job it runs for.

    Useful to check that tenant metadata written at submission reaches the
    worker. Payload: an optional ``note`` echoed back in the result.
    """

    def __init__(self, job: JobInfo, tenant_provider: TenantProvider):
        self.job = job
        self.tenant_provider = tenant_provider

    async def run(self, note: str | None = None) -> dict[str, Any]:
        logger.info("Job run", job_name=self.job.name, job_attempt=self.job.attempt)
        logger.info(
            "Tenant for this scope", tenant_id=self.tenant_provider.tenant_id
        )
        return {
            "job_id": self.job.id,
            "job_name": self.job.name,
            "attempt": self.job.attempt,
            "tenant_id": self.tenant_provider.tenant_id,
            "note": note,
        }
