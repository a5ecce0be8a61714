"""Jobs Commands - Queue inspection and manual triggers"""

import json

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import JobQueueClient, JobQueueError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_jobs_table,
    create_stats_panel,
    display_job,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Job queue inspection and control commands")


def _client() -> JobQueueClient:
    return JobQueueClient(config.get("api.base_url"))


@app.command("stats")
def stats():
    """📊 Show queue statistics"""
    try:
        with _client() as client:
            console.print(create_stats_panel(client.stats()))
    except JobQueueError as e:
        print_error(f"Failed to fetch stats: {e}")
        raise typer.Exit(1) from None


@app.command("list")
def list_jobs(
    status: str | None = typer.Option(
        None, "--status", "-s", help="Filter by status"
    ),
    type: str | None = typer.Option(None, "--type", "-t", help="Filter by job type"),
    limit: int | None = typer.Option(
        None, "--limit", "-l", help="Number of jobs to show"
    ),
    offset: int = typer.Option(0, "--offset", "-o", help="Skip first N jobs"),
):
    """📋 List job records, newest first"""
    page_size = limit or int(config.get("display.page_size", 20))

    try:
        with _client() as client:
            data = client.list_jobs(
                status=status, type=type, limit=page_size, offset=offset
            )
    except JobQueueError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None

    jobs = data.get("jobs", [])
    total = data.get("total", len(jobs))

    if not jobs:
        console.print(
            Panel(
                "📭 [yellow]No jobs found![/yellow]\n\n"
                f"• Status: {status or 'any'}\n"
                f"• Type: {type or 'any'}",
                title="Empty Results",
                border_style="yellow",
            )
        )
        return

    console.print(create_jobs_table(jobs))
    console.print(
        f"\n📊 Showing [cyan]{len(jobs)}[/cyan] of [yellow]{total}[/yellow] jobs"
    )
    if offset + page_size < total:
        console.print(f"💡 Use [cyan]--offset {offset + page_size}[/cyan] to see more")


@app.command("show")
def show_job(job_id: int = typer.Argument(..., help="Job ID to show")):
    """🔍 Show a single job record"""
    try:
        with _client() as client:
            display_job(client.get_job(job_id))
    except JobQueueError as e:
        print_error(f"Failed to get job {job_id}: {e}")
        raise typer.Exit(1) from None


@app.command("enqueue")
def enqueue(
    job_type: str = typer.Argument(..., help="Registered job type"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
    delay: int = typer.Option(0, "--delay", "-d", min=0, help="Delay in seconds"),
):
    """➕ Enqueue a job"""
    try:
        payload_data = json.loads(payload)
    except json.JSONDecodeError as e:
        print_error(f"Payload is not valid JSON: {e}")
        raise typer.Exit(1) from None

    if not isinstance(payload_data, dict):
        print_error("Payload must be a JSON object")
        raise typer.Exit(1)

    try:
        with _client() as client:
            result = client.enqueue(job_type, payload_data, delay_seconds=delay)
    except JobQueueError as e:
        print_error(f"Failed to enqueue job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Enqueued {job_type} job {result.get('job_id')}")


@app.command("process")
def process(
    limit: int | None = typer.Option(
        None, "--limit", "-l", min=1, help="Maximum jobs to run"
    ),
):
    """▶️ Process one batch of ready jobs"""
    try:
        with _client() as client:
            result = client.process(limit)
    except JobQueueError as e:
        print_error(f"Failed to process queue: {e}")
        raise typer.Exit(1) from None

    print_success(f"Processed {result.get('processed', 0)} job(s)")


@app.command("reset-stuck")
def reset_stuck():
    """🔁 Recover jobs stuck in running"""
    try:
        with _client() as client:
            result = client.reset_stuck()
    except JobQueueError as e:
        print_error(f"Failed to reset stuck jobs: {e}")
        raise typer.Exit(1) from None

    recovered = result.get("recovered", 0)
    if recovered:
        print_success(f"Recovered {recovered} stuck job(s)")
    else:
        print_info("No stuck jobs found")


@app.command("cleanup")
def cleanup(
    days: int | None = typer.Option(
        None, "--days", min=0, help="Keep terminal jobs newer than this many days"
    ),
):
    """🧹 Delete old completed and failed jobs"""
    try:
        with _client() as client:
            result = client.cleanup(days)
    except JobQueueError as e:
        print_error(f"Failed to clean up jobs: {e}")
        raise typer.Exit(1) from None

    print_success(
        f"Removed {result.get('removed', 0)} job(s) older than "
        f"{result.get('days_to_keep')} day(s)"
    )
