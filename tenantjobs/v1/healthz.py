from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel

from tenantjobs.config.settings import Settings, SettingsDep
from tenantjobs.v1.core.exceptions import create_success_response
from tenantjobs.v1.core.registries import job_registry, provider_registry

router = APIRouter()


class JobsHealth(BaseModel):
    """Job engine configuration status."""

    queue_backend: str
    job_types: list[str]
    providers: list[str]


@router.get("/healthz", response_model=dict)
async def health_check(settings: Settings = SettingsDep):
    """Health check endpoint with job engine status."""
    jobs_health = JobsHealth(
        queue_backend=settings.queue_backend.value,
        job_types=[str(name) for name in job_registry.list()],
        providers=[
            getattr(key, "__qualname__", str(key)) for key in provider_registry.list()
        ],
    )

    health_data = {
        "ok": True,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
        "jobs": jobs_health.model_dump(),
    }

    return create_success_response(data=health_data)
