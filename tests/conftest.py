from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from tenantjobs.config.settings import Settings
from tenantjobs.main import create_app
from tenantjobs.v1.core.registries import JobRegistry, ProviderRegistry
from tenantjobs.v1.jobs.client import JobClient
from tenantjobs.v1.jobs.dispatcher import Dispatcher
from tenantjobs.v1.jobs.handlers import TenantEchoJob
from tenantjobs.v1.jobs.queue import InMemoryJobQueue, get_queue
from tenantjobs.v1.jobs.registry_init import (
    creation_filters,
    execution_filters,
    register_default_providers,
)
from tenantjobs.v1.jobs.tenancy import RequestTenantProvider, TenantProvider


class Resource:
    """Scoped dependency that records whether it was released."""

    instances: list["Resource"] = []

    def __init__(self):
        self.released = 0
        self.values: list[str] = []
        Resource.instances.append(self)

    def close(self) -> None:
        self.released += 1


class FailingJob:
    def __init__(self, resource: Resource):
        self.resource = resource

    def run(self) -> None:
        raise RuntimeError("boom")


class ResourceJob:
    def __init__(self, resource: Resource, tenant_provider: TenantProvider):
        self.resource = resource
        self.tenant_provider = tenant_provider

    async def run(self, value: str) -> dict:
        self.resource.values.append(value)
        return {"tenant_id": self.tenant_provider.tenant_id, "values": self.resource.values}


@pytest.fixture(autouse=True)
def reset_resources():
    Resource.instances = []
    yield
    Resource.instances = []


@pytest.fixture
def providers() -> ProviderRegistry:
    """Provider registry with the default providers and a test resource."""
    registry = ProviderRegistry()
    register_default_providers(registry)
    registry.register_class(Resource)
    return registry


@pytest.fixture
def jobs() -> JobRegistry:
    registry = JobRegistry()
    registry.register("tenant_echo", TenantEchoJob)
    registry.register("failing", FailingJob)
    registry.register("resource", ResourceJob)
    return registry


@pytest.fixture
def queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def make_client(queue, jobs):
    """Build a job client for a tenant, as the HTTP layer does per request."""

    def _make(tenant_id: int, request_id: str | None = None) -> JobClient:
        provider = RequestTenantProvider(tenant_id)
        return JobClient(queue, creation_filters(provider, request_id), jobs)

    return _make


@pytest.fixture
def dispatcher(queue, providers, jobs) -> Dispatcher:
    return Dispatcher(queue, execution_filters(), providers, jobs)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(job_concurrency=2, job_poll_interval_ms=10, job_shutdown_timeout_s=1)


@pytest.fixture
def app(queue):
    """FastAPI application sharing the test queue."""
    app = create_app()
    app.dependency_overrides[get_queue] = lambda: queue

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def sql_queue() -> AsyncGenerator:
    """SQL queue on a private in-memory SQLite database."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from tenantjobs.infra.database import Base
    from tenantjobs.v1.jobs import models  # noqa: F401
    from tenantjobs.v1.jobs.queue import SqlJobQueue

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield SqlJobQueue(async_sessionmaker(engine, expire_on_commit=False), "test-worker")

    await engine.dispose()
