"""Main CLI implementation using Typer."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console

from svcadm.cli.commands import (
    backup_services,
    cleanup_services,
    init_config,
    pause_service,
    resume_service,
    setup_services,
    show_config,
    show_logs,
    show_status,
    validate_config,
)
from svcadm.constants import CONFIG_PATH, LOG_FILE
from svcadm.errors import SvcadmError
from svcadm.utils.logging import setup_logging


logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="svcadm",
    help="svcadm - Dependency-ordered service orchestration for development environments",
    add_completion=False,
)

# Console for rich output
console = Console()


@dataclass
class CLIState:
    config_path: Path
    loglevel: str


def _run_cli_command(ctx: typer.Context, handler: Callable[..., Awaitable[bool]], **kwargs: Any):
    """Helper to run an async command handler with error handling."""
    state: CLIState = ctx.obj
    try:
        ok = asyncio.run(handler(state.config_path, **kwargs))
    except SvcadmError as e:
        logger.debug(f"command failed: {e}")
        console.print(f"[red]Error:[/red] {e}")
        logging.shutdown()
        raise typer.Exit(1) from e
    if not ok:
        logging.shutdown()
        raise typer.Exit(1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Path = typer.Option(
        CONFIG_PATH, "--config", "-c", help="Configuration file path"
    ),
    loglevel: str = typer.Option(
        "info", "--loglevel", "-l", help="Log level (debug, info, warn, error, fatal)"
    ),
    log_file: Optional[Path] = typer.Option(
        LOG_FILE, "--log-file", help="Append logs to this file"
    ),
):
    """Global options shared by every command."""
    try:
        setup_logging(loglevel, log_file)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except OSError as e:
        console.print(f"[red]Error:[/red] cannot open log file {log_file}: {e}")
        raise typer.Exit(1) from e
    ctx.obj = CLIState(config_path=config, loglevel=loglevel)


@app.command("setup")
def setup_command(ctx: typer.Context):
    """Start every enabled service in dependency order."""
    _run_cli_command(ctx, setup_services)


@app.command("status")
def status_command(
    ctx: typer.Context,
    table: bool = typer.Option(False, "--table", "-t", help="Render a table"),
):
    """Show the container state of every enabled service."""
    _run_cli_command(ctx, show_status, table=table)


@app.command("cleanup")
def cleanup_command(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip the confirmation prompt"
    ),
):
    """Remove containers, volumes and state of every enabled service. Backups are kept."""
    if not force:
        confirm = typer.confirm("Remove all enabled services and their data?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(ctx, cleanup_services)


@app.command("backup")
def backup_command(ctx: typer.Context):
    """Back up every enabled service with backups enabled."""
    _run_cli_command(ctx, backup_services)


@app.command("logs")
def logs_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Service name"),
    tail: Optional[int] = typer.Option(None, "--tail", "-n", help="Number of lines from the end"),
):
    """Print the container logs of a service."""
    _run_cli_command(ctx, show_logs, name=name, tail=tail)


@app.command("pause")
def pause_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Service name"),
):
    """Stop the container of a service."""
    _run_cli_command(ctx, pause_service, name=name)


@app.command("resume")
def resume_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Service name"),
):
    """Start the stopped container of a service."""
    _run_cli_command(ctx, resume_service, name=name)


# Config subcommands
config_app = typer.Typer(help="Configuration commands")
app.add_typer(config_app, name="config")


@config_app.command("validate")
def config_validate_command(ctx: typer.Context):
    """Validate the configuration and users files."""
    _run_cli_command(ctx, validate_config)


@config_app.command("show")
def config_show_command(ctx: typer.Context):
    """Print the effective configuration."""
    _run_cli_command(ctx, show_config)


@config_app.command("init")
def config_init_command(ctx: typer.Context):
    """Write a default configuration and users file."""
    _run_cli_command(ctx, init_config)


def main():
    """Main entry point for CLI."""
    app()
