from datetime import UTC, datetime, timedelta

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import and_, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from jobqueue.config.settings import Settings, SettingsDep
from jobqueue.core.exceptions import create_success_response
from jobqueue.infra.database import SessionDep
from jobqueue.jobs.models import JobRecord, JobStatus

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    """Queue backlog status."""

    queue_depth: int = 0
    overdue_jobs: int = 0
    running_jobs: int = 0


class HealthResponse(BaseModel):
    """Health response with database and queue status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    queue: QueueHealth | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = SessionDep
):
    """Health check endpoint with database and queue status."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    queue_health = None
    if db_health.connected:
        try:
            queue_health = await _check_queue_health(session, settings)
        except Exception:
            # Missing table or similar; the database itself answered
            queue_health = QueueHealth()

    health = HealthResponse(
        ok=db_health.connected,
        version=settings.version,
        environment=settings.environment,
        timestamp=timestamp,
        database=db_health,
        queue=queue_health,
    )

    return create_success_response(data=health.model_dump())


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_queue_health(
    session: AsyncSession, settings: Settings
) -> QueueHealth:
    """Check backlog size and how far behind the worker is."""

    queue_depth = await session.scalar(
        select(func.count(JobRecord.id)).where(
            JobRecord.status.in_([JobStatus.PENDING.value, JobStatus.RUNNING.value])
        )
    )

    # Ready for longer than one poll interval means no worker picked it up
    overdue_cutoff = datetime.now(UTC) - timedelta(
        seconds=settings.job_poll_interval_s * 2
    )
    overdue_jobs = await session.scalar(
        select(func.count(JobRecord.id)).where(
            and_(
                JobRecord.status == JobStatus.PENDING.value,
                JobRecord.scheduled_at < overdue_cutoff,
            )
        )
    )

    running_jobs = await session.scalar(
        select(func.count(JobRecord.id)).where(
            JobRecord.status == JobStatus.RUNNING.value
        )
    )

    return QueueHealth(
        queue_depth=queue_depth or 0,
        overdue_jobs=overdue_jobs or 0,
        running_jobs=running_jobs or 0,
    )
