"""
Job dispatcher: enqueues jobs and drives their execution.

The dispatcher is the only component that changes a record's lifecycle state.
It has no timer of its own; a periodic trigger (``JobWorker`` or cron) calls
``process_queue`` and ``reset_stuck``.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timedelta
from typing import Any

import structlog

from jobqueue.config.settings import Settings
from jobqueue.core.clock import Clock, utc_now
from jobqueue.core.exceptions import (
    JobTimeoutError,
    UnknownJobTypeError,
    ValidationError,
)
from jobqueue.core.registries import JobRegistry
from jobqueue.jobs.base import Job
from jobqueue.jobs.models import JobRecord
from jobqueue.jobs.store import JobStore

logger = logging.getLogger(__name__)


class JobDispatcher:
    """
    Queue front-end and executor.

    Features:
    - Atomic claim before execution, so one record runs in one place at a time
    - Fixed per-job retry delay, frozen into the record at dispatch
    - Optional hard deadline on ``handle()`` using the job's timeout
    - Best-effort ``on_failed`` hook once attempts are exhausted
    """

    def __init__(
        self,
        store: JobStore,
        registry: JobRegistry,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.registry = registry
        self.settings = settings
        self.clock = clock

    async def dispatch(self, job: Job, delay_seconds: int = 0) -> int:
        """
        Queue a job for later execution.

        Args:
            job: Job to run; its type must be registered
            delay_seconds: Seconds to wait before the job becomes eligible

        Returns:
            Id of the new job record
        """
        if delay_seconds < 0:
            raise ValidationError(
                "delay_seconds must not be negative",
                details={"delay_seconds": delay_seconds},
            )
        if job.job_type not in self.registry:
            raise UnknownJobTypeError(job.job_type)

        max_attempts = job.get_max_attempts()
        retry_delay = job.get_retry_delay()
        timeout = job.get_timeout()
        if max_attempts < 1 or retry_delay < 0 or timeout < 1:
            raise ValidationError(
                "Invalid retry policy",
                details={
                    "job_type": job.job_type,
                    "max_attempts": max_attempts,
                    "retry_delay_seconds": retry_delay,
                    "timeout_seconds": timeout,
                },
            )

        now = self.clock()
        scheduled_at = now + timedelta(seconds=delay_seconds)
        record = JobRecord.create_pending(
            job.job_type,
            job.serialize(),
            now=now,
            scheduled_at=scheduled_at,
            max_attempts=max_attempts,
            retry_delay_seconds=retry_delay,
            timeout_seconds=timeout,
        )
        record_id = await self.store.insert(record)

        logger.info(
            "Job dispatched",
            extra={
                "job_id": record_id,
                "job_type": job.job_type,
                "scheduled_at": scheduled_at.isoformat(),
            },
        )
        return record_id

    async def process_queue(self, limit: int = 10) -> int:
        """
        Run up to ``limit`` ready jobs, oldest scheduled first.

        Job failures are absorbed into record state. Store errors propagate.

        Returns:
            Number of records this call claimed and processed
        """
        records = await self.store.find_ready(limit)
        processed = 0

        for record in records:
            if await self._process_record(record):
                processed += 1

        return processed

    async def reset_stuck(self) -> int:
        """Recover running records whose timeout has elapsed."""
        return await self.store.reset_stuck()

    async def get_queue_stats(self) -> dict[str, int]:
        return await self.store.stats()

    async def cleanup(self, days_to_keep: int = 7) -> int:
        """Delete terminal records older than ``days_to_keep`` days."""
        return await self.store.delete_terminal_older_than(days_to_keep)

    async def _process_record(self, candidate: JobRecord) -> bool:
        record = await self.store.claim(candidate.id)
        if record is None:
            logger.debug("Job claimed elsewhere", extra={"job_id": candidate.id})
            return False

        with structlog.contextvars.bound_contextvars(
            job_id=record.id, job_type=record.job_type
        ):
            await self._execute(record)
        return True

    async def _execute(self, record: JobRecord) -> None:
        claimed_at = record.started_at
        logger.debug("Processing job", extra={"attempt": record.attempts})

        try:
            job_class = self.registry.get(record.job_type)
        except KeyError:
            await self._fail_unknown_type(record, claimed_at)
            return

        if record.attempts > record.max_attempts:
            # Stuck recovery already used up the remaining attempts
            error = JobTimeoutError(record.timeout_seconds)
            await self._fail_permanently(record, claimed_at, job_class, None, error)
            return

        job = None
        try:
            job = job_class.deserialize(record.payload)
            await self._run(job, record)
        except Exception as e:
            await self._handle_failure(record, claimed_at, job_class, job, e)
            return

        record.mark_completed(self.clock())
        if await self._write_back(record, claimed_at):
            logger.info("Job completed", extra={"attempts": record.attempts})

    async def _run(self, job: Job, record: JobRecord) -> None:
        if not self.settings.job_enforce_timeout:
            await _call_handle(job)
            return

        try:
            await asyncio.wait_for(_call_handle(job), timeout=record.timeout_seconds)
        except asyncio.TimeoutError:
            raise JobTimeoutError(record.timeout_seconds) from None

    async def _write_back(self, record: JobRecord, claimed_at: datetime) -> bool:
        if await self.store.update_if_owned(record, claimed_at):
            return True

        logger.warning(
            "Job lost ownership, result discarded",
            extra={"outcome": record.status, "claimed_at": claimed_at.isoformat()},
        )
        return False

    async def _handle_failure(
        self,
        record: JobRecord,
        claimed_at: datetime,
        job_class: Any,
        job: Job | None,
        error: Exception,
    ) -> None:
        if record.has_attempts_left():
            next_run = record.reschedule(self.clock(), _describe(error))
            if await self._write_back(record, claimed_at):
                logger.warning(
                    "Job failed, rescheduled",
                    extra={
                        "attempt": record.attempts,
                        "max_attempts": record.max_attempts,
                        "next_run_at": next_run.isoformat(),
                        "error": str(error),
                    },
                )
            return

        await self._fail_permanently(record, claimed_at, job_class, job, error)

    async def _fail_permanently(
        self,
        record: JobRecord,
        claimed_at: datetime,
        job_class: Any,
        job: Job | None,
        error: Exception,
    ) -> None:
        record.mark_failed(self.clock(), _describe(error))
        if not await self._write_back(record, claimed_at):
            return

        logger.error(
            "Job failed permanently",
            extra={"attempts": record.attempts, "error": str(error)},
        )

        # The record is already terminal; nothing in the hook may change that
        try:
            if job is None:
                job = job_class.deserialize(record.payload)
            await _maybe_await(job.on_failed(error))
        except Exception:
            logger.exception("on_failed hook raised")

    async def _fail_unknown_type(self, record: JobRecord, claimed_at: datetime) -> None:
        error = UnknownJobTypeError(record.job_type)
        record.release_attempt()
        record.mark_failed(self.clock(), error.message)
        if await self._write_back(record, claimed_at):
            logger.error(
                "Job type is not registered, marked failed without retry",
                extra={"registered_types": self.registry.list()},
            )


async def _call_handle(job: Job) -> Any:
    # Plain functions run in a thread; a timed-out thread is left to finish
    if inspect.iscoroutinefunction(job.handle):
        return await job.handle()
    return await _maybe_await(await asyncio.to_thread(job.handle))


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def _describe(error: BaseException) -> str:
    message = str(error)
    return message or error.__class__.__name__
