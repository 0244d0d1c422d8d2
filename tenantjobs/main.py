import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from tenantjobs.config.logging import setup_logging
from tenantjobs.config.settings import settings
from tenantjobs.v1.core.exceptions import (
    RequestContextMiddleware,
    TenantJobsException,
    general_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
    tenant_jobs_exception_handler,
)
from tenantjobs.v1.core.registries import job_registry, provider_registry
from tenantjobs.v1.healthz import router as health_router
from tenantjobs.v1.jobs.dispatcher import Dispatcher
from tenantjobs.v1.jobs.queue import get_queue
from tenantjobs.v1.jobs.registry_init import execution_filters
from tenantjobs.v1.jobs.routes import router as jobs_router
from tenantjobs.v1.jobs.worker import get_worker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run a worker inside the API process when configured to."""
    if not settings.embedded_worker:
        yield
        return

    dispatcher = Dispatcher(get_queue(settings), execution_filters())
    worker = get_worker(dispatcher, settings)
    worker_task = asyncio.create_task(worker.start())
    try:
        yield
    finally:
        await worker.stop()
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    # Initialize structured logging
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="Background jobs with tenant-aware execution scopes",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(TenantJobsException, tenant_jobs_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler
    )
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    # Freeze registries in non-development environments to prevent runtime modifications
    if settings.environment != "development":
        job_registry.freeze()
        provider_registry.freeze()

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tenantjobs.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
