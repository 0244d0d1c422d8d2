"""Job Commands - submit, inspect and requeue background jobs"""

import json
from typing import Any, Optional

import typer
from rich.console import Console

from ..client.base import TenantJobsError
from ..client.endpoints import TenantJobsClient
from ..utils.formatting import (
    create_job_panel,
    create_metadata_table,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Background job commands")


def _parse_kwargs(pairs: list[str]) -> dict[str, Any]:
    """Parse KEY=VALUE pairs; values are read as JSON when possible"""
    kwargs: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got: {pair}")
        try:
            kwargs[key] = json.loads(raw)
        except json.JSONDecodeError:
            kwargs[key] = raw
    return kwargs


@app.command("enqueue")
def enqueue(
    job_type: str = typer.Argument(..., help="Registered job type, e.g. tenant_echo"),
    kwarg: list[str] = typer.Option(
        [], "--kwarg", "-k", help="Keyword argument as KEY=VALUE (repeatable)"
    ),
    method: str = typer.Option("run", "--method", "-m", help="Entry method"),
    tenant: Optional[int] = typer.Option(
        None, "--tenant", "-t", help="Submit on behalf of this tenant (admin role only)"
    ),
):
    """📨 Submit a job for the configured tenant"""
    try:
        kwargs = _parse_kwargs(kwarg)
        with TenantJobsClient() as client:
            response = client.enqueue_job(
                job_type, kwargs=kwargs, method=method, tenant_id=tenant
            )
        print_success(f"Job queued: {response['job_id']}")
        print_info(f"Follow it with: tenantjobs jobs status {response['job_id']}")

    except TenantJobsError as e:
        print_error(f"Failed to enqueue job: {e}")
        raise typer.Exit(1) from None


@app.command("status")
def status(job_id: str = typer.Argument(..., help="Job ID")):
    """🔎 Show job state, result and metadata"""
    try:
        with TenantJobsClient() as client:
            job = client.get_job(job_id)

        console.print(create_job_panel(job))
        console.print(create_metadata_table(job.get("metadata", {})))

    except TenantJobsError as e:
        print_error(f"Failed to get job: {e}")
        raise typer.Exit(1) from None


@app.command("requeue")
def requeue(job_id: str = typer.Argument(..., help="Job ID")):
    """🔁 Run a finished job again with its original metadata"""
    try:
        with TenantJobsClient() as client:
            client.requeue_job(job_id)
        print_success(f"Job requeued: {job_id}")

    except TenantJobsError as e:
        print_error(f"Failed to requeue job: {e}")
        raise typer.Exit(1) from None
