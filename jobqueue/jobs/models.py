"""
Job record model and lifecycle state machine.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import JSON, BigInteger, CheckConstraint, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobqueue.infra.database import Base, UTCDateTime


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)


class JobRecord(Base):
    """
    Persisted state of one queued job invocation.

    Transitions::

        pending -> running -> completed
                           -> pending (retry, attempts left)
                           -> failed  (attempts exhausted)

    ``attempts`` is incremented when a record is claimed, so an attempt is
    counted as soon as execution begins.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    job_type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Registered job type identifier"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, comment="Serialized job data"
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="Job status: pending|running|completed|failed",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of attempts started"
    )

    # Retry policy, frozen at dispatch
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    retry_delay_seconds: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60
    )
    timeout_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=300)

    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )

    # Timestamps
    scheduled_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, comment="Earliest time to run job"
    )
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="jobs_status_check",
        ),
        CheckConstraint("attempts >= 0", name="jobs_attempts_check"),
        CheckConstraint("max_attempts >= 1", name="jobs_max_attempts_check"),
        CheckConstraint("retry_delay_seconds >= 0", name="jobs_retry_delay_check"),
        CheckConstraint("timeout_seconds >= 1", name="jobs_timeout_check"),
        Index("ix_jobs_status_scheduled_at", "status", "scheduled_at"),
        Index("ix_jobs_job_type", "job_type"),
    )

    @classmethod
    def create_pending(
        cls,
        job_type: str,
        payload: dict[str, Any],
        *,
        now: datetime,
        scheduled_at: datetime | None = None,
        max_attempts: int = 3,
        retry_delay_seconds: int = 60,
        timeout_seconds: int = 300,
    ) -> "JobRecord":
        """Build a new, unsaved pending record."""
        return cls(
            job_type=job_type,
            payload=dict(payload),
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts,
            retry_delay_seconds=retry_delay_seconds,
            timeout_seconds=timeout_seconds,
            last_error=None,
            scheduled_at=scheduled_at or now,
            started_at=None,
            completed_at=None,
            created_at=now,
        )

    def __repr__(self) -> str:
        return (
            f"<JobRecord id={self.id} type={self.job_type} status={self.status} "
            f"attempts={self.attempts}/{self.max_attempts}>"
        )

    def is_stuck(self, now: datetime) -> bool:
        """Check if a running record has outlived its timeout."""
        if self.status != JobStatus.RUNNING.value or self.started_at is None:
            return False
        return self.started_at + timedelta(seconds=self.timeout_seconds) < now

    def has_attempts_left(self) -> bool:
        return self.attempts < self.max_attempts

    def mark_completed(self, now: datetime) -> None:
        # last_error keeps the most recent failed attempt, if any
        self.status = JobStatus.COMPLETED.value
        self.completed_at = now

    def mark_failed(self, now: datetime, error: str) -> None:
        self.status = JobStatus.FAILED.value
        self.completed_at = now
        self.last_error = error
        self.attempts = min(self.attempts, self.max_attempts)

    def reschedule(self, now: datetime, error: str) -> datetime:
        """Return the record to pending after a failed attempt."""
        next_run = now + timedelta(seconds=self.retry_delay_seconds)
        # scheduled_at never moves backwards
        if self.scheduled_at is not None and next_run < self.scheduled_at:
            next_run = self.scheduled_at

        self.status = JobStatus.PENDING.value
        self.scheduled_at = next_run
        self.started_at = None
        self.last_error = error
        return next_run

    def release_attempt(self) -> None:
        """Undo the claim's attempt when the job never got to run."""
        self.attempts = max(0, self.attempts - 1)
