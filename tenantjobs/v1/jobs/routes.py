"""
Job API endpoints.

Submitting a job captures the caller's tenant and request id; reading or
requeueing a job is only allowed for the tenant that owns it. Only admins
may submit on behalf of another tenant.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from tenantjobs.config.logging import get_logger
from tenantjobs.v1.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    TenantJobsException,
    create_success_response,
)
from tenantjobs.v1.core.security import Principal, PrincipalDep
from tenantjobs.v1.jobs.client import JobClient
from tenantjobs.v1.jobs.queue import JobQueue, get_queue
from tenantjobs.v1.jobs.registry_init import creation_filters
from tenantjobs.v1.jobs.schemas import JobEnqueueRequest, JobEnqueueResponse, JobStatus
from tenantjobs.v1.jobs.tenancy import TENANT_ID_KEY, RequestTenantProvider

logger = get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=dict, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_job(
    job_request: JobEnqueueRequest,
    request: Request,
    principal: Principal = PrincipalDep,
    queue: JobQueue = Depends(get_queue),
) -> dict[str, Any]:
    """Enqueue a new background job for the caller's tenant."""
    request_id = getattr(request.state, "request_id", None)

    tenant_provider = RequestTenantProvider.from_principal(principal)
    if job_request.tenant_id is not None:
        if job_request.tenant_id != principal.tenant_id and not principal.is_admin:
            raise ForbiddenError(
                "Submitting jobs for another tenant requires the admin role",
                {"tenant_id": job_request.tenant_id},
            )
        tenant_provider.set_tenant(job_request.tenant_id)

    client = JobClient(queue, creation_filters(tenant_provider, request_id))
    job_id = await client.submit(
        job_request.type,
        *job_request.args,
        method=job_request.method,
        **job_request.kwargs,
    )

    logger.info(
        "Job enqueued via API",
        job_id=str(job_id),
        type=job_request.type,
        tenant_id=tenant_provider.tenant_id,
        user_id=principal.user_id,
    )

    response = JobEnqueueResponse(job_id=job_id, status=JobStatus.QUEUED)
    return create_success_response(
        data=response.model_dump(mode="json"), request_id=request_id
    )


@router.get("/{job_id}", response_model=dict)
async def get_job(
    job_id: UUID,
    request: Request,
    principal: Principal = PrincipalDep,
    queue: JobQueue = Depends(get_queue),
) -> dict[str, Any]:
    """Get job state, result and metadata."""
    record = await queue.get(job_id)
    if record is None or record.metadata.get(TENANT_ID_KEY) != principal.tenant_id:
        raise NotFoundError("Job not found", {"job_id": str(job_id)})

    return create_success_response(
        data=record.model_dump(mode="json"),
        request_id=getattr(request.state, "request_id", None),
    )


@router.post("/{job_id}/requeue", response_model=dict)
async def requeue_job(
    job_id: UUID,
    request: Request,
    principal: Principal = PrincipalDep,
    queue: JobQueue = Depends(get_queue),
) -> dict[str, Any]:
    """Run a finished job again under the same id and metadata."""
    record = await queue.get(job_id)
    if record is None or record.metadata.get(TENANT_ID_KEY) != principal.tenant_id:
        raise NotFoundError("Job not found", {"job_id": str(job_id)})

    if not await queue.requeue(job_id):
        raise TenantJobsException(
            "Only finished jobs can be requeued",
            status.HTTP_409_CONFLICT,
            {"job_id": str(job_id), "status": record.status.value},
        )

    logger.info("Job requeued via API", job_id=str(job_id))
    return create_success_response(
        data={"job_id": str(job_id), "status": JobStatus.QUEUED.value},
        request_id=getattr(request.state, "request_id", None),
    )
