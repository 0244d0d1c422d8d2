"""API Endpoint Wrappers - Type-safe API calls"""

from typing import Any

import httpx

from .base import APIClient
from ..utils.config_manager import config


class TenantJobsClient:
    """High-level client with typed endpoint methods"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        # Use config values if not provided
        api_config = config.load_config().get("api", {})
        final_base_url = base_url or api_config.get("base_url", "http://localhost:8000")
        final_headers = headers or api_config.get("headers", {})

        self.api = APIClient(
            base_url=final_base_url,
            timeout=api_config.get("timeout", 30),
            headers=final_headers,
            transport=transport,
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    # Jobs Endpoints
    def enqueue_job(
        self,
        job_type: str,
        args: list[Any] | None = None,
        kwargs: dict[str, Any] | None = None,
        method: str = "run",
        tenant_id: int | None = None,
    ) -> dict[str, Any]:
        """Submit a job for the configured tenant"""
        body: dict[str, Any] = {
            "type": job_type,
            "method": method,
            "args": args or [],
            "kwargs": kwargs or {},
        }
        if tenant_id is not None:
            body["tenant_id"] = tenant_id
        return self.api.post("/jobs", body)

    def get_job(self, job_id: str) -> dict[str, Any]:
        """Get job state and result"""
        return self.api.get(f"/jobs/{job_id}")

    def requeue_job(self, job_id: str) -> dict[str, Any]:
        """Run a finished job again"""
        return self.api.post(f"/jobs/{job_id}/requeue")
