"""Tenant Jobs CLI - Main Entry Point"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from .client.endpoints import TenantJobsClient
from .commands import config, jobs
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info, print_success

console = Console()

app = typer.Typer(
    name="tenantjobs",
    help="🧰 Tenant Jobs - background jobs with tenant-aware execution",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")
app.add_typer(config.app, name="config")


@app.command()
def status():
    """📊 Check API connectivity and job engine status"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with TenantJobsClient(base_url) as client:
            health = client.health_check()
    except Exception as e:
        print_error(f"Failed to connect: {e}")
        raise typer.Exit(1) from None

    jobs_health = health.get("jobs", {})
    console.print(
        Panel(
            f"🚀 [green]Connected[/green]\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Queue: [magenta]{jobs_health.get('queue_backend', 'unknown')}[/magenta]\n"
            f"• Job types: [blue]{', '.join(jobs_health.get('job_types', [])) or '—'}[/blue]",
            title="System Status",
            border_style="green",
        )
    )


@app.command()
def worker(
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Worker loops (defaults to JOB_CONCURRENCY)"
    ),
):
    """⚙️ Run a job worker against the configured queue"""
    from tenantjobs.config.logging import setup_logging
    from tenantjobs.config.settings import QueueBackend, settings
    from tenantjobs.v1.jobs.dispatcher import Dispatcher
    from tenantjobs.v1.jobs.queue import get_queue
    from tenantjobs.v1.jobs.registry_init import execution_filters
    from tenantjobs.v1.jobs.worker import get_worker

    setup_logging()
    if settings.queue_backend == QueueBackend.MEMORY:
        print_error(
            "The memory queue is private to one process; set QUEUE_BACKEND=sql "
            "or EMBEDDED_WORKER=true on the API instead"
        )
        raise typer.Exit(1)

    worker_settings = settings
    if concurrency is not None:
        worker_settings = settings.model_copy(update={"job_concurrency": concurrency})

    dispatcher = Dispatcher(get_queue(settings), execution_filters())
    job_worker = get_worker(dispatcher, worker_settings)

    print_info(
        f"Starting worker with {worker_settings.job_concurrency} loops (Ctrl+C to stop)"
    )
    try:
        asyncio.run(job_worker.start())
    except KeyboardInterrupt:
        print_success("Worker stopped")


@app.command("init-db")
def init_db():
    """🗄️ Create the jobs table in the configured database"""
    from tenantjobs.config.settings import settings
    from tenantjobs.infra.database import get_database
    from tenantjobs.v1.jobs import models  # noqa: F401

    async def _create() -> None:
        database = get_database(settings)
        try:
            await database.create_all()
        finally:
            await database.close()

    asyncio.run(_create())
    print_success("Database tables created")


if __name__ == "__main__":
    app()
