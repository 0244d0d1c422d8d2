import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from tenantjobs.config.logging import add_request_context, get_logger

logger = get_logger(__name__)


class TenantJobsException(Exception):
    """Base exception for the tenant jobs engine."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(TenantJobsException):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class ForbiddenError(TenantJobsException):
    """Raised when the caller lacks the role an operation needs."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class NotFoundError(TenantJobsException):
    """Raised when a resource is not found."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class PersistenceError(TenantJobsException):
    """Raised when a job and its metadata could not be durably recorded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, details)


class UnresolvedDependencyError(TenantJobsException):
    """Raised when a dependency has no provider and no seeded value."""

    def __init__(self, dependency: Any, chain: list[Any] | None = None):
        self.dependency = dependency
        self.chain = list(chain or [])
        path = " -> ".join(_type_name(item) for item in [*self.chain, dependency])
        super().__init__(
            f"Unable to resolve dependency {_type_name(dependency)}",
            details={"dependency": _type_name(dependency), "resolution_path": path},
        )


class UnsupportedOperationError(TenantJobsException):
    """Raised when an operation is not permitted in the current context."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


class TenantAlreadyAssignedError(TenantJobsException):
    """Raised when the creation-side tenant is assigned a second time."""

    def __init__(self, current: int, attempted: int):
        super().__init__(
            "Tenant has already been assigned for this submission",
            status.HTTP_409_CONFLICT,
            {"current_tenant_id": current, "attempted_tenant_id": attempted},
        )


class ScopeDisposedError(TenantJobsException):
    """Raised when an execution scope is used after disposal."""

    def __init__(self, message: str = "Execution scope has been disposed"):
        super().__init__(message)


class JobBodyError(TenantJobsException):
    """Wraps a failure raised by a job's own logic."""

    def __init__(self, job_type: str, error: BaseException):
        self.original = error
        super().__init__(
            f"Job '{job_type}' failed: {error}",
            details={"job_type": job_type, "exception": error.__class__.__name__},
        )


def _type_name(value: Any) -> str:
    if isinstance(value, type):
        return value.__qualname__
    return str(value)


REQUEST_ID_HEADER = "X-Request-ID"


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Error envelope shared by every failing endpoint."""
    return {
        "ok": False,
        "error": {"message": message, "code": status_code, "details": details or {}},
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    return {
        "ok": True,
        "data": data,
        "message": message,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_json(request: Request, status_code: int, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            status_code=status_code,
            message=message,
            details=details,
            request_id=_request_id(request),
        ),
    )


async def tenant_jobs_exception_handler(
    request: Request, exc: TenantJobsException
) -> JSONResponse:
    """Render engine errors; client mistakes are logged as warnings."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application exception",
        exception=exc.__class__.__name__,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )
    return _error_json(request, exc.status_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning("HTTP exception", status_code=exc.status_code, detail=exc.detail)
    return _error_json(request, exc.status_code, str(exc.detail))


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Wrap FastAPI body/path validation failures in the error envelope."""
    errors = jsonable_encoder(exc.errors())
    logger.warning("Request validation failed", errors=errors)
    return _error_json(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request validation failed",
        {"errors": errors},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        exception=exc.__class__.__name__,
        message=str(exc),
        exc_info=True,
    )
    return _error_json(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assigns every request a correlation id.

    A caller-supplied X-Request-ID is kept so that ids can be followed across
    services; the id is echoed in the response and recorded on submitted jobs.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        add_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
