"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "queued": "blue",
    "running": "yellow",
    "succeeded": "green",
    "failed": "red",
    "canceled": "magenta",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create a panel summarising one job"""
    status = job.get("status", "unknown")
    style = STATUS_STYLES.get(status, "white")

    lines = [
        f"• Type: [cyan]{job.get('job_type', '—')}[/cyan].{job.get('method', 'run')}",
        f"• Status: [{style}]{status}[/{style}]",
        f"• Attempts: [yellow]{job.get('attempts', 0)}[/yellow]",
    ]
    if job.get("error_code"):
        lines.append(f"• Error: [red]{job['error_code']}[/red] {job.get('last_error') or ''}")
    if job.get("result") is not None:
        lines.append(f"• Result: [green]{job['result']}[/green]")

    return Panel(
        "\n".join(lines),
        title=f"Job {job.get('id', '')}",
        border_style=style,
    )


def create_metadata_table(metadata: dict[str, Any]) -> Table:
    """Create a table of the metadata persisted with a job"""
    table = Table(title="Metadata", box=box.ROUNDED)
    table.add_column("Key", justify="left", style="cyan", no_wrap=True)
    table.add_column("Value", justify="left", style="white")

    for key, value in sorted(metadata.items()):
        table.add_row(key, "—" if value is None else str(value))

    return table
