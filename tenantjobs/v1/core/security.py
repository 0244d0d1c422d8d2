from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from tenantjobs.config.settings import AuthMode, settings

ADMIN_ROLE = "admin"
DEFAULT_ROLES = ["user"]


@dataclass
class Principal:
    """Represents the current authenticated user and the tenant they act for."""

    user_id: str
    tenant_id: int
    roles: list[str]
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


async def get_principal(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_tenant_id: str | None = Header(None, alias="X-Tenant-ID"),
    x_roles: str | None = Header(None, alias="X-Roles"),
) -> Principal:
    """
    Dependency injection function to get the current principal.

    Behavior based on AUTH_MODE:
    - none: Returns dev defaults with admin role
    - dev: Extract user, tenant and comma-separated roles from headers;
      callers without X-Roles get the plain user role
    """
    if settings.auth_mode == AuthMode.NONE:
        return Principal(
            user_id=settings.dev_user_id,
            tenant_id=settings.dev_tenant_id,
            roles=[ADMIN_ROLE],
        )
    elif settings.auth_mode == AuthMode.DEV:
        if not x_user_id or not x_tenant_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-User-ID and X-Tenant-ID headers are required in dev auth mode",
            )

        try:
            tenant_id = int(x_tenant_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"X-Tenant-ID must be an integer, got: {x_tenant_id}",
            )

        roles = [role.strip() for role in (x_roles or "").split(",") if role.strip()]
        return Principal(
            user_id=x_user_id, tenant_id=tenant_id, roles=roles or list(DEFAULT_ROLES)
        )
    else:
        raise ValueError(f"Unknown auth mode: {settings.auth_mode}")


# Convenience type alias for dependency injection
PrincipalDep = Depends(get_principal)
