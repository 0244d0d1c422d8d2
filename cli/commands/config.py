"""Configuration Commands - CLI settings management"""

import typer
from rich.console import Console

from ..utils.config_manager import config
from ..utils.formatting import print_error, print_info, print_success

console = Console()
app = typer.Typer(name="config", help="CLI configuration management")


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., 'api.base_url')"),
    value: str = typer.Argument(..., help="Configuration value"),
):
    """⚙️ Set a configuration value"""
    if key == "api.base_url" and not value.startswith(("http://", "https://")):
        print_error("API base URL must start with http:// or https://")
        raise typer.Exit(1)

    if key.endswith(".timeout") and not value.isdigit():
        print_error("Timeout values must be numeric (seconds)")
        raise typer.Exit(1)

    config.set(key, int(value) if key.endswith(".timeout") else value)
    print_success(f"Set {key} = {value}")

    if key == "api.base_url":
        print_info("Test connection with: tenantjobs status")


@app.command("get")
def get_config(key: str = typer.Argument(..., help="Configuration key")):
    """📋 Get a configuration value"""
    value = config.get(key)
    if value is None:
        console.print(f"[yellow]Key '{key}' not found[/yellow]")
        raise typer.Exit(1)
    console.print(f"[cyan]{key}[/cyan] = [yellow]{value}[/yellow]")


@app.command("identity")
def set_identity(
    user_id: str = typer.Argument(..., help="User ID for dev authentication"),
    tenant_id: int = typer.Argument(..., help="Tenant ID jobs are submitted for"),
):
    """🔧 Configure the dev mode identity headers"""
    config.set_identity(user_id, tenant_id)

    print_success("Dev mode identity configured:")
    console.print(f"  User ID: [cyan]{user_id}[/cyan]")
    console.print(f"  Tenant ID: [cyan]{tenant_id}[/cyan]")
    console.print("\n💡 [dim]Make sure your server is running with AUTH_MODE=dev.[/dim]")


@app.command("path")
def show_config_path():
    """📁 Show configuration file path"""
    console.print(f"Configuration file: [cyan]{config.config_file}[/cyan]")
    if not config.config_file.exists():
        console.print("[dim]Configuration file will be created on first change[/dim]")
