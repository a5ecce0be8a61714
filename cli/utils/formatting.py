"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "running": "blue",
    "completed": "green",
    "failed": "red",
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


def _status(value: str) -> str:
    style = STATUS_STYLES.get(value, "white")
    return f"[{style}]{value}[/{style}]"


def create_jobs_table(jobs: list[dict[str, Any]]) -> Table:
    """Create a formatted table for job records"""
    table = Table(title="Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="right", style="cyan", no_wrap=True)
    table.add_column("Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Attempts", justify="center", style="yellow")
    table.add_column("Scheduled", justify="left", style="white")
    table.add_column("Last Error", justify="left", style="dim")

    for job in jobs:
        last_error = job.get("last_error") or "—"
        if len(last_error) > 40:
            last_error = last_error[:37] + "..."

        table.add_row(
            str(job.get("id", "")),
            job.get("job_type", ""),
            _status(job.get("status", "")),
            f"{job.get('attempts', 0)}/{job.get('max_attempts', 0)}",
            job.get("scheduled_at", "—"),
            last_error,
        )

    return table


def create_stats_panel(stats: dict[str, Any]) -> Panel:
    """Create formatted panel for queue statistics"""
    content = (
        f"• Pending: {_status('pending')} [bold]{stats.get('pending', 0)}[/bold]\n"
        f"• Running: {_status('running')} [bold]{stats.get('running', 0)}[/bold]\n"
        f"• Completed: {_status('completed')} [bold]{stats.get('completed', 0)}[/bold]\n"
        f"• Failed: {_status('failed')} [bold]{stats.get('failed', 0)}[/bold]\n"
        f"• Queue Depth: [cyan]{stats.get('queue_depth', 0)}[/cyan]"
    )

    by_type = stats.get("by_type") or {}
    if by_type:
        content += "\n\n[bold blue]By Type[/bold blue]\n"
        content += "\n".join(
            f"• {job_type}: [cyan]{count}[/cyan]"
            for job_type, count in sorted(by_type.items())
        )

    return Panel(content, title="Queue Statistics", border_style="green")


def display_job(job: dict[str, Any]):
    """Display a single job record"""
    lines = [
        f"• Type: [magenta]{job.get('job_type')}[/magenta]",
        f"• Status: {_status(job.get('status', ''))}",
        f"• Attempts: [yellow]{job.get('attempts')}/{job.get('max_attempts')}[/yellow]",
        f"• Retry Delay: {job.get('retry_delay_seconds')}s",
        f"• Timeout: {job.get('timeout_seconds')}s",
        f"• Scheduled At: {job.get('scheduled_at')}",
        f"• Started At: {job.get('started_at') or '—'}",
        f"• Completed At: {job.get('completed_at') or '—'}",
        f"• Created At: {job.get('created_at')}",
    ]
    if job.get("last_error"):
        lines.append(f"• Last Error: [red]{job['last_error']}[/red]")

    console.print(
        Panel("\n".join(lines), title=f"Job {job.get('id')}", border_style="cyan")
    )
    console.print(Panel(str(job.get("payload", {})), title="Payload"))
