"""
Job queue admin API endpoints.

Enqueueing, inspection, and manual triggers for the periodic operations.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from jobqueue.config.settings import Settings, SettingsDep
from jobqueue.core.exceptions import (
    UnknownJobTypeError,
    ValidationError,
    create_success_response,
)
from jobqueue.core.registries import job_registry
from jobqueue.infra.database import Database, get_database
from jobqueue.jobs.dispatcher import JobDispatcher
from jobqueue.jobs.models import JobStatus
from jobqueue.jobs.schemas import (
    CleanupResponse,
    JobEnqueueRequest,
    JobEnqueueResponse,
    JobListResponse,
    JobRecordResponse,
    ProcessQueueResponse,
    QueueStatsResponse,
    ResetStuckResponse,
)
from jobqueue.jobs.store import SqlAlchemyJobStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_store(database: Database = Depends(get_database)) -> SqlAlchemyJobStore:
    """Dependency injection for the job store."""
    return SqlAlchemyJobStore(database.SessionLocal)


def get_dispatcher(
    store: SqlAlchemyJobStore = Depends(get_store),
    settings: Settings = SettingsDep,
) -> JobDispatcher:
    """Dependency injection for the job dispatcher."""
    return JobDispatcher(store, job_registry, settings, clock=store.clock)


@router.post("", response_model=dict, status_code=201)
async def enqueue_job(
    job_request: JobEnqueueRequest,
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Enqueue a registered job type with the given payload."""

    try:
        job_class = dispatcher.registry.get(job_request.type)
    except KeyError:
        raise UnknownJobTypeError(job_request.type) from None

    try:
        job = job_class.deserialize(job_request.payload)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(
            f"Invalid payload for job type {job_request.type}",
            details={"error": str(e)},
        ) from e

    job_id = await dispatcher.dispatch(job, delay_seconds=job_request.delay_seconds)

    logger.info(
        "Job enqueued via API",
        extra={"job_id": job_id, "job_type": job_request.type},
    )

    response = JobEnqueueResponse(job_id=job_id, job_type=job_request.type)
    return create_success_response(data=response.model_dump(mode="json"))


@router.get("", response_model=dict)
async def list_jobs(
    status: JobStatus | None = Query(default=None, description="Filter by status"),
    type: str | None = Query(default=None, description="Filter by job type"),
    limit: int = Query(default=50, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    store: SqlAlchemyJobStore = Depends(get_store),
) -> dict[str, Any]:
    """List job records, newest first."""

    status_value = status.value if status else None
    records = await store.list_records(status_value, type, limit, offset)
    total = await store.count_records(status_value, type)

    response = JobListResponse(
        jobs=[JobRecordResponse.model_validate(record) for record in records],
        total=total,
        limit=limit,
        offset=offset,
    )
    return create_success_response(data=response.model_dump(mode="json"))


@router.get("/stats/overview", response_model=dict)
async def get_job_stats(
    store: SqlAlchemyJobStore = Depends(get_store),
) -> dict[str, Any]:
    """Get record counts by status and by type."""

    counts = await store.stats()
    response = QueueStatsResponse(
        **counts,
        by_type=await store.stats_by_type(),
        queue_depth=counts[JobStatus.PENDING.value] + counts[JobStatus.RUNNING.value],
    )
    return create_success_response(data=response.model_dump())


@router.get("/{job_id}", response_model=dict)
async def get_job(
    job_id: int,
    store: SqlAlchemyJobStore = Depends(get_store),
) -> dict[str, Any]:
    """Get a specific job record by ID."""

    record = await store.find_by_id(job_id)
    if not record:
        raise HTTPException(status_code=404, detail="Job not found")

    response = JobRecordResponse.model_validate(record)
    return create_success_response(data=response.model_dump(mode="json"))


@router.post("/process", response_model=dict)
async def process_queue(
    limit: int | None = Query(default=None, ge=1, le=1000, description="Batch size"),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Run one batch of ready jobs."""

    processed = await dispatcher.process_queue(
        limit or dispatcher.settings.job_process_limit
    )
    return create_success_response(
        data=ProcessQueueResponse(processed=processed).model_dump()
    )


@router.post("/reset-stuck", response_model=dict)
async def reset_stuck(
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Recover running jobs whose timeout has elapsed."""

    recovered = await dispatcher.reset_stuck()
    return create_success_response(
        data=ResetStuckResponse(recovered=recovered).model_dump()
    )


@router.post("/cleanup", response_model=dict)
async def cleanup(
    days_to_keep: int | None = Query(default=None, ge=0, description="Retention"),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Delete completed and failed records older than the retention window."""

    days = (
        days_to_keep
        if days_to_keep is not None
        else dispatcher.settings.job_cleanup_after_days
    )
    removed = await dispatcher.cleanup(days)

    logger.info(
        "Job cleanup via API", extra={"removed": removed, "days_to_keep": days}
    )
    return create_success_response(
        data=CleanupResponse(removed=removed, days_to_keep=days).model_dump()
    )
