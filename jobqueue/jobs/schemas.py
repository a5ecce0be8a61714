"""
Job queue Pydantic schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from jobqueue.jobs.models import JobStatus


class JobRecordResponse(BaseModel):
    """Schema for job record API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_type: str
    payload: dict[str, Any]
    status: JobStatus
    attempts: int
    max_attempts: int
    retry_delay_seconds: int
    timeout_seconds: int
    last_error: str | None = None
    scheduled_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime


class JobListResponse(BaseModel):
    """Schema for job list API response."""

    jobs: list[JobRecordResponse]
    total: int
    limit: int
    offset: int


class QueueStatsResponse(BaseModel):
    """Schema for queue statistics."""

    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    queue_depth: int = 0  # pending + running


class JobEnqueueRequest(BaseModel):
    """Schema for enqueueing jobs via API."""

    type: str = Field(..., description="Registered job type")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job payload")
    delay_seconds: int = Field(
        default=0, ge=0, description="Seconds before the job becomes eligible"
    )


class JobEnqueueResponse(BaseModel):
    """Schema for job enqueue response."""

    job_id: int
    job_type: str
    status: JobStatus = JobStatus.PENDING


class ProcessQueueResponse(BaseModel):
    """Schema for a queue processing pass."""

    processed: int


class ResetStuckResponse(BaseModel):
    recovered: int


class CleanupResponse(BaseModel):
    removed: int
    days_to_keep: int
