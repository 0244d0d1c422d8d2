import pytest

from tenantjobs.v1.core.exceptions import (
    TenantAlreadyAssignedError,
    UnsupportedOperationError,
    ValidationError,
)
from tenantjobs.v1.core.registries import ProviderRegistry
from tenantjobs.v1.core.security import Principal
from tenantjobs.v1.jobs.filters import CreatingContext, PerformingContext
from tenantjobs.v1.jobs.metadata import MetadataStore
from tenantjobs.v1.jobs.registry_init import register_default_providers
from tenantjobs.v1.jobs.schemas import JobContext, JobDescriptor, JobTarget
from tenantjobs.v1.jobs.scope import ExecutionScope
from tenantjobs.v1.jobs.tenancy import (
    TENANT_ID_KEY,
    UNASSIGNED_TENANT,
    ExecutionTenantProvider,
    RequestTenantProvider,
    TenantProvider,
    TenantReaderFilter,
    TenantWriterFilter,
)


def make_scope(metadata: MetadataStore) -> tuple[ExecutionScope, PerformingContext]:
    providers = ProviderRegistry()
    register_default_providers(providers)
    descriptor = JobDescriptor(target=JobTarget(job_type="tenant_echo"), attempt=1)
    scope = ExecutionScope(providers, JobContext(descriptor, metadata))
    return scope, PerformingContext(descriptor=descriptor, metadata=metadata, scope=scope)


def test_request_provider_from_principal():
    """Test that the creation-side tenant starts as the caller's tenant."""
    principal = Principal(user_id="alice", tenant_id=12, roles=["user"])
    provider = RequestTenantProvider.from_principal(principal)

    assert provider.tenant_id == 12
    assert isinstance(provider, TenantProvider)


def test_request_provider_allows_one_override():
    provider = RequestTenantProvider(1)
    provider.set_tenant(2)
    assert provider.tenant_id == 2


def test_request_provider_rejects_second_override():
    """Test that the creation-side tenant can only be reassigned once."""
    provider = RequestTenantProvider(1)
    provider.set_tenant(2)

    with pytest.raises(TenantAlreadyAssignedError) as exc_info:
        provider.set_tenant(3)

    assert exc_info.value.status_code == 409
    assert provider.tenant_id == 2


def test_execution_provider_is_read_only():
    """Test that job code cannot change the tenant it runs for."""
    provider = ExecutionTenantProvider(7)

    with pytest.raises(UnsupportedOperationError):
        provider.set_tenant(8)
    assert provider.tenant_id == 7


def test_execution_provider_defaults_when_tenant_missing():
    provider = ExecutionTenantProvider(None)
    assert provider.tenant_id == UNASSIGNED_TENANT


def test_writer_filter_records_tenant():
    """Test that the writer stores the current tenant as metadata."""
    metadata = MetadataStore()
    descriptor = JobDescriptor(target=JobTarget(job_type="tenant_echo"))
    provider = RequestTenantProvider(4)
    provider.set_tenant(9)

    TenantWriterFilter(provider).on_creating(
        CreatingContext(descriptor=descriptor, metadata=metadata)
    )

    assert metadata[TENANT_ID_KEY] == 9


def test_reader_filter_seeds_scope():
    """Test that the reader makes the stored tenant resolvable."""
    scope, context = make_scope(MetadataStore({TENANT_ID_KEY: 42}, frozen=True))

    TenantReaderFilter().on_performing(context)
    provider = scope.resolve(TenantProvider)

    assert isinstance(provider, ExecutionTenantProvider)
    assert provider.tenant_id == 42


def test_reader_filter_accepts_string_tenant():
    scope, context = make_scope(MetadataStore({TENANT_ID_KEY: "42"}, frozen=True))

    TenantReaderFilter().on_performing(context)

    assert scope.resolve(TenantProvider).tenant_id == 42


def test_reader_filter_without_tenant_metadata():
    """Test that jobs without tenant metadata run for the unassigned tenant."""
    scope, context = make_scope(MetadataStore(frozen=True))

    TenantReaderFilter().on_performing(context)

    assert scope.get_seeded(TENANT_ID_KEY) is None
    assert scope.resolve(TenantProvider).tenant_id == UNASSIGNED_TENANT


def test_reader_filter_rejects_malformed_tenant():
    _, context = make_scope(MetadataStore({TENANT_ID_KEY: "acme"}, frozen=True))

    with pytest.raises(ValidationError):
        TenantReaderFilter().on_performing(context)
