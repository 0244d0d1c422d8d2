"""Base HTTP Client for the Tenant Jobs API"""

from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class TenantJobsError(Exception):
    """Raised when the API is unreachable or answers with an error envelope"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class APIClient:
    """Thin httpx wrapper that unwraps the API's response envelope"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=f"{self.base_url}/v1",
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request("POST", path, json=json)

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            console.print(f"[red]Connection error: {e}[/red]")
            raise TenantJobsError(f"Connection failed: {e}") from None
        return self._unwrap(response)

    def _unwrap(self, response: httpx.Response) -> dict[str, Any]:
        """Return the envelope's data, or raise with its error message"""
        try:
            body = response.json()
        except ValueError:
            raise TenantJobsError(
                f"Invalid JSON response: {response.status_code}", response.status_code
            ) from None

        if response.status_code < 400 and body.get("ok", True):
            return body.get("data", body)

        error = body.get("error") or {}
        message = error.get("message") or body.get("detail") or "Request failed"
        console.print(Panel(f"[red]{message}[/red]", title=f"API Error {response.status_code}"))
        raise TenantJobsError(
            f"API Error {response.status_code}: {message}", response.status_code
        )
