"""
Tenant identity on both sides of the queue.

On the creation side the tenant comes from the caller's request and is written
into job metadata by :class:`TenantWriterFilter`. On the execution side
:class:`TenantReaderFilter` copies it from metadata into the attempt's scope,
where :class:`ExecutionTenantProvider` picks it up. The execution-side value is
derived only; it can never be set by job code.
"""

from typing import Protocol, runtime_checkable

from tenantjobs.config.logging import get_logger
from tenantjobs.v1.core.exceptions import (
    TenantAlreadyAssignedError,
    UnsupportedOperationError,
)
from tenantjobs.v1.core.security import Principal
from tenantjobs.v1.jobs.filters import (
    CreatingContext,
    CreationFilter,
    ExecutionFilter,
    PerformingContext,
)
from tenantjobs.v1.jobs.scope import ExecutionScope

logger = get_logger(__name__)

TENANT_ID_KEY = "TenantId"

# Reported when a job carries no tenant metadata (e.g. submitted without a
# TenantWriterFilter). Never a valid tenant.
UNASSIGNED_TENANT = 0


@runtime_checkable
class TenantProvider(Protocol):
    """Access to the tenant the current unit of work belongs to."""

    @property
    def tenant_id(self) -> int:
        ...

    def set_tenant(self, tenant_id: int) -> None:
        ...


class RequestTenantProvider:
    """
    Creation-side tenant, initialised from the request principal.

    ``set_tenant`` may override the request tenant once per submission; a
    second call raises :class:`TenantAlreadyAssignedError`.
    """

    def __init__(self, tenant_id: int):
        self._tenant_id = tenant_id
        self._assigned = False

    @classmethod
    def from_principal(cls, principal: Principal) -> "RequestTenantProvider":
        return cls(principal.tenant_id)

    @property
    def tenant_id(self) -> int:
        return self._tenant_id

    def set_tenant(self, tenant_id: int) -> None:
        if self._assigned:
            raise TenantAlreadyAssignedError(self._tenant_id, tenant_id)
        self._tenant_id = tenant_id
        self._assigned = True


class ExecutionTenantProvider:
    """Execution-side tenant, derived from the value seeded into the scope."""

    def __init__(self, tenant_id: int | None):
        if tenant_id is None:
            logger.warning(
                "Job has no tenant metadata, using unassigned tenant",
                tenant_id=UNASSIGNED_TENANT,
            )
            tenant_id = UNASSIGNED_TENANT
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> int:
        return self._tenant_id

    def set_tenant(self, tenant_id: int) -> None:
        raise UnsupportedOperationError(
            "Tenant cannot be changed while a job is executing",
            {"tenant_id": self._tenant_id, "attempted_tenant_id": tenant_id},
        )


def execution_tenant_factory(scope: ExecutionScope) -> ExecutionTenantProvider:
    return ExecutionTenantProvider(scope.get_seeded(TENANT_ID_KEY))


class TenantWriterFilter(CreationFilter):
    def __init__(self, tenant_provider: TenantProvider):
        self.tenant_provider = tenant_provider

    def on_creating(self, context: CreatingContext) -> None:
        context.set_parameter(TENANT_ID_KEY, self.tenant_provider.tenant_id)


class TenantReaderFilter(ExecutionFilter):
    def on_performing(self, context: PerformingContext) -> None:
        tenant_id = context.metadata.get_as(TENANT_ID_KEY, int)
        if tenant_id is not None:
            context.seed(TENANT_ID_KEY, tenant_id)
