"""Worker Commands - run the dispatcher in-process against the database"""

import asyncio
import signal

import typer
from rich.console import Console

from jobqueue.config.logging import setup_logging
from jobqueue.config.settings import get_settings
from jobqueue.core.registries import job_registry
from jobqueue.infra.database import Database
from jobqueue.jobs import registry_init  # noqa: F401
from jobqueue.jobs.dispatcher import JobDispatcher
from jobqueue.jobs.store import SqlAlchemyJobStore
from jobqueue.jobs.worker import JobWorker

from ..utils.formatting import print_info, print_success

console = Console()
app = typer.Typer(name="worker", help="Run the job worker in this process")


def _build_worker(database: Database) -> JobWorker:
    settings = get_settings()
    store = SqlAlchemyJobStore(database.SessionLocal)
    dispatcher = JobDispatcher(store, job_registry, settings)
    return JobWorker(dispatcher, settings)


async def _run_forever() -> None:
    database = Database(get_settings())
    worker = _build_worker(database)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(
                sig, lambda: asyncio.ensure_future(worker.stop())
            )
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        await worker.start()
    finally:
        await database.close()


async def _run_tick() -> dict[str, int]:
    database = Database(get_settings())
    try:
        return await _build_worker(database).run_once()
    finally:
        await database.close()


async def _init_schema(drop: bool) -> None:
    database = Database(get_settings())
    store = SqlAlchemyJobStore(database.SessionLocal)
    try:
        if drop:
            await store.drop_schema()
        await store.create_schema()
    finally:
        await database.close()


@app.command("run")
def run():
    """🏃 Run the periodic worker loops until interrupted"""
    setup_logging()
    print_info("Starting job worker (Ctrl+C to stop)")
    asyncio.run(_run_forever())
    print_success("Worker stopped")


@app.command("tick")
def tick():
    """⏱️ Recover stuck jobs and process one batch, then exit"""
    setup_logging()
    result = asyncio.run(_run_tick())
    print_success(
        f"Recovered {result['recovered']} stuck job(s), "
        f"processed {result['processed']} job(s)"
    )


@app.command("init-db")
def init_db(
    drop: bool = typer.Option(
        False, "--drop", help="Drop the jobs table first (deletes all jobs)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """🗄️ Create the jobs table without running migrations"""
    if drop and not yes:
        typer.confirm("Drop the jobs table and every job in it?", abort=True)

    setup_logging()
    asyncio.run(_init_schema(drop))
    print_success("Jobs table recreated" if drop else "Jobs table ready")
