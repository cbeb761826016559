"""Command implementations for CLI."""

import logging
from pathlib import Path
from typing import Dict, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from svcadm.core.config import ConfigManager
from svcadm.core.orchestrator import Orchestrator, ServiceOutcome, ServiceResult


logger = logging.getLogger(__name__)

console = Console()

STATE_STYLES = {
    "running": "green",
    "exited": "red",
    "dead": "red",
    "paused": "yellow",
    "restarting": "yellow",
    "created": "yellow",
}

OUTCOME_STYLES = {
    ServiceOutcome.STARTED: "green",
    ServiceOutcome.FAILED: "red",
    ServiceOutcome.SKIPPED: "yellow",
}


def build_orchestrator(config_path: Path) -> Orchestrator:
    return Orchestrator(ConfigManager(config_path))


async def _connected(config_path: Path, with_users: bool = False) -> Orchestrator:
    """Orchestrator with the backend selected. Users are loaded only when provisioning needs them."""
    orchestrator = build_orchestrator(config_path)
    if with_users:
        await orchestrator.config_manager.load()
    else:
        await orchestrator.config_manager.load_config()
    await orchestrator.initialize()
    return orchestrator


def render_start_report(results: Dict[str, ServiceResult]) -> Table:
    table = Table(title="Services")
    table.add_column("Service", style="cyan")
    table.add_column("Outcome")
    table.add_column("Detail", style="dim", max_width=80)
    for name, result in results.items():
        style = OUTCOME_STYLES[result.outcome]
        table.add_row(
            name,
            f"[{style}]{result.outcome.value}[/{style}]",
            str(result.error) if result.error else "",
        )
    return table


async def setup_services(config_path: Path) -> bool:
    """Start every enabled service. False when any service failed or was skipped."""
    orchestrator = await _connected(config_path, with_users=True)
    try:
        results = await orchestrator.start_services()
    finally:
        await orchestrator.close()

    console.print(render_start_report(results))
    failed = [name for name, result in results.items() if not result.ok]
    if failed:
        console.print(f"[red]✗[/red] {len(failed)} service(s) did not start: {', '.join(failed)}")
        return False
    console.print(f"[green]✓[/green] {len(results)} service(s) started")
    return True


async def show_status(config_path: Path, table: bool = False) -> bool:
    """Print ``name: state`` per enabled service, or a table."""
    orchestrator = await _connected(config_path)
    try:
        statuses = await orchestrator.fetch_services_status()
    finally:
        await orchestrator.close()

    if not table:
        for name, state in statuses.items():
            console.print(f"{name}: {state}", highlight=False)
        return True

    output = Table(title="Service Status")
    output.add_column("Service", style="cyan")
    output.add_column("Container")
    output.add_column("State")
    for name, state in statuses.items():
        spec = orchestrator.config.get_service(name)
        style = STATE_STYLES.get(state, "dim")
        output.add_row(name, spec.container.name, f"[{style}]{state}[/{style}]")
    console.print(output)
    return True


async def cleanup_services(config_path: Path) -> bool:
    orchestrator = await _connected(config_path)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Cleaning up services...", total=None)
            report = await orchestrator.cleanup_services()
            progress.update(task, completed=True)
    finally:
        await orchestrator.close()

    failed = [name for name, problems in report.items() if problems]
    if failed:
        console.print(f"[red]✗[/red] Cleanup incomplete for: {', '.join(failed)}")
        return False
    console.print(f"[green]✓[/green] Cleaned up {len(report)} service(s)")
    return True


async def backup_services(config_path: Path) -> bool:
    orchestrator = await _connected(config_path)
    try:
        report = await orchestrator.backup_services()
    finally:
        await orchestrator.close()

    if not report:
        console.print("No service has backups enabled")
        return True
    ok = True
    for name, error in report.items():
        if error is None:
            console.print(f"[green]✓[/green] {name}")
        else:
            ok = False
            console.print(f"[red]✗[/red] {name}: {error}")
    return ok


async def show_logs(config_path: Path, name: str, tail: Optional[int] = None) -> bool:
    orchestrator = await _connected(config_path)
    try:
        logs = await orchestrator.service_logs(name, tail=tail)
    finally:
        await orchestrator.close()
    console.print(logs, end="", markup=False, highlight=False)
    return True


async def pause_service(config_path: Path, name: str) -> bool:
    orchestrator = await _connected(config_path)
    try:
        await orchestrator.pause_service(name)
    finally:
        await orchestrator.close()
    console.print(f"[green]✓[/green] Paused {name}")
    return True


async def resume_service(config_path: Path, name: str) -> bool:
    orchestrator = await _connected(config_path)
    try:
        await orchestrator.resume_service(name)
    finally:
        await orchestrator.close()
    console.print(f"[green]✓[/green] Resumed {name}")
    return True


async def validate_config(config_path: Path) -> bool:
    manager = ConfigManager(config_path)
    config = await manager.load()
    users = manager.users
    console.print("[green]✓[/green] Configuration is valid")
    console.print(f"  Services: {len(config.services)} ({len(config.enabled_services())} enabled)")
    console.print(f"  Admins: {len(users.admins)}")
    console.print(f"  Users: {len(users.users)}")
    return True


async def show_config(config_path: Path) -> bool:
    manager = ConfigManager(config_path)
    await manager.load_config()
    console.print(manager.dump(), end="", markup=False, highlight=False)
    return True


async def init_config(config_path: Path) -> bool:
    manager = ConfigManager(config_path)
    written = await manager.init_config()
    if not written:
        console.print(f"Configuration already present in {manager.config_path.parent}")
    for path in written:
        console.print(f"[green]✓[/green] Wrote {path}")
    return True
