"""
Registers built-in jobs and providers, and assembles the default pipelines.
"""

from tenantjobs.config.logging import get_logger
from tenantjobs.v1.core.registries import (
    JobRegistry,
    ProviderRegistry,
    job_registry,
    provider_registry,
)
from tenantjobs.v1.jobs.filters import (
    CreationFilter,
    ExecutionFilter,
    RequestIdLoggingFilter,
    RequestIdWriterFilter,
)
from tenantjobs.v1.jobs.handlers import JobInfo, TenantEchoJob
from tenantjobs.v1.jobs.tenancy import (
    TenantProvider,
    TenantReaderFilter,
    TenantWriterFilter,
    execution_tenant_factory,
)

logger = get_logger(__name__)


def register_job_handlers(jobs: JobRegistry = job_registry) -> None:
    """Register all built-in jobs with the job registry."""
    jobs.register("tenant_echo", TenantEchoJob)

    logger.info("Job handlers registered", registered_handlers=jobs.list())


def register_default_providers(providers: ProviderRegistry = provider_registry) -> None:
    """Register the job-scoped dependencies every job can ask for."""
    providers.register_provider(TenantProvider, execution_tenant_factory)
    providers.register_class(JobInfo)


def creation_filters(
    tenant_provider: TenantProvider, request_id: str | None = None
) -> list[CreationFilter]:
    """Creation pipeline for one submission."""
    return [TenantWriterFilter(tenant_provider), RequestIdWriterFilter(request_id)]


def execution_filters() -> list[ExecutionFilter]:
    """Execution pipeline; the tenant reader must always be part of it."""
    return [TenantReaderFilter(), RequestIdLoggingFilter()]


# Auto-register when module is imported
register_job_handlers()
register_default_providers()
