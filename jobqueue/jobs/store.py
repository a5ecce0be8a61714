"""
Durable storage for job records.

The store is a passive persistence boundary: it answers queries and applies
single-record writes, while the dispatcher owns every lifecycle decision.
``claim`` and ``reset_stuck`` are conditional updates so that concurrent
pollers cannot execute the same record twice.
"""

import logging
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import and_, delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobqueue.core.clock import Clock, utc_now
from jobqueue.core.exceptions import RecordNotFoundError
from jobqueue.jobs.models import TERMINAL_STATUSES, JobRecord, JobStatus

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    """Repository contract for job record persistence."""

    async def insert(self, record: JobRecord) -> int:
        """Persist a new record and return its assigned id."""

    async def update(self, record: JobRecord) -> None:
        """Persist the full mutable state of an existing record."""

    async def claim(self, record_id: int) -> JobRecord | None:
        """Atomically move a ready record from pending to running."""

    async def update_if_owned(self, record: JobRecord, claimed_at: datetime) -> bool:
        """Persist a record only while it is still running under the given claim."""

    async def find_ready(self, limit: int) -> list[JobRecord]:
        """Return pending records whose scheduled time has passed, oldest first."""

    async def find_by_id(self, record_id: int) -> JobRecord | None:
        """Fetch a record by id."""

    async def stats(self) -> dict[str, int]:
        """Count records per status."""

    async def delete_terminal_older_than(self, days: int) -> int:
        """Delete completed/failed records finished more than ``days`` ago."""

    async def reset_stuck(self) -> int:
        """Return running records that outlived their timeout to pending."""


class SqlAlchemyJobStore:
    """JobStore backed by an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory
        self.clock = clock

    async def create_schema(self) -> None:
        """Create the jobs table and its indexes if missing."""
        async with self.session_factory() as session:
            conn = await session.connection()
            await conn.run_sync(JobRecord.__table__.create, checkfirst=True)
            await session.commit()

    async def drop_schema(self) -> None:
        """Drop the jobs table."""
        async with self.session_factory() as session:
            conn = await session.connection()
            await conn.run_sync(JobRecord.__table__.drop, checkfirst=True)
            await session.commit()

    async def insert(self, record: JobRecord) -> int:
        record.status = JobStatus.PENDING.value
        if record.created_at is None:
            record.created_at = self.clock()

        async with self.session_factory() as session:
            session.add(record)
            await session.commit()

        return record.id

    async def update(self, record: JobRecord) -> None:
        if record.id is None:
            raise RecordNotFoundError(None)

        async with self.session_factory() as session:
            result = await session.execute(
                update(JobRecord)
                .where(JobRecord.id == record.id)
                .values(
                    status=record.status,
                    attempts=record.attempts,
                    last_error=record.last_error,
                    scheduled_at=record.scheduled_at,
                    started_at=record.started_at,
                    completed_at=record.completed_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise RecordNotFoundError(record.id)
            await session.commit()

    async def update_if_owned(self, record: JobRecord, claimed_at: datetime) -> bool:
        """
        Write back the outcome of an execution.

        Matches only while the record is still running under the claim that
        started at ``claimed_at``. Once stuck recovery has reverted the record,
        or another worker has claimed it again, nothing is written and
        ``False`` is returned.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(JobRecord)
                .where(
                    and_(
                        JobRecord.id == record.id,
                        JobRecord.status == JobStatus.RUNNING.value,
                        JobRecord.started_at == claimed_at,
                    )
                )
                .values(
                    status=record.status,
                    attempts=record.attempts,
                    last_error=record.last_error,
                    scheduled_at=record.scheduled_at,
                    started_at=record.started_at,
                    completed_at=record.completed_at,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        return result.rowcount > 0

    async def claim(self, record_id: int) -> JobRecord | None:
        now = self.clock()

        async with self.session_factory() as session:
            result = await session.execute(
                update(JobRecord)
                .where(
                    and_(
                        JobRecord.id == record_id,
                        JobRecord.status == JobStatus.PENDING.value,
                        JobRecord.scheduled_at <= now,
                    )
                )
                .values(
                    status=JobStatus.RUNNING.value,
                    started_at=now,
                    completed_at=None,
                    attempts=JobRecord.attempts + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                return None

            claimed = await session.scalar(
                select(JobRecord).where(JobRecord.id == record_id)
            )
            await session.commit()

        return claimed

    async def find_ready(self, limit: int) -> list[JobRecord]:
        if limit <= 0:
            return []

        now = self.clock()
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobRecord)
                .where(
                    and_(
                        JobRecord.status == JobStatus.PENDING.value,
                        JobRecord.scheduled_at <= now,
                    )
                )
                .order_by(JobRecord.scheduled_at, JobRecord.id)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def find_by_id(self, record_id: int) -> JobRecord | None:
        async with self.session_factory() as session:
            return await session.get(JobRecord, record_id)

    async def list_records(
        self,
        status: str | None = None,
        job_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[JobRecord]:
        """List records newest first, optionally filtered."""
        query = self._filtered(select(JobRecord), status, job_type)
        query = query.order_by(desc(JobRecord.created_at), desc(JobRecord.id))

        async with self.session_factory() as session:
            result = await session.execute(query.offset(offset).limit(limit))
            return list(result.scalars().all())

    async def count_records(
        self, status: str | None = None, job_type: str | None = None
    ) -> int:
        query = self._filtered(select(func.count(JobRecord.id)), status, job_type)
        async with self.session_factory() as session:
            return (await session.scalar(query)) or 0

    async def stats(self) -> dict[str, int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobRecord.status, func.count(JobRecord.id)).group_by(
                    JobRecord.status
                )
            )
            counts = dict(result.all())

        return {status.value: counts.get(status.value, 0) for status in JobStatus}

    async def stats_by_type(self) -> dict[str, int]:
        """Count records per job type."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobRecord.job_type, func.count(JobRecord.id)).group_by(
                    JobRecord.job_type
                )
            )
            return dict(result.all())

    async def delete_terminal_older_than(self, days: int) -> int:
        if days < 0:
            raise ValueError("days must not be negative")

        cutoff = self.clock() - timedelta(days=days)
        async with self.session_factory() as session:
            result = await session.execute(
                delete(JobRecord)
                .where(
                    and_(
                        JobRecord.status.in_(TERMINAL_STATUSES),
                        JobRecord.completed_at < cutoff,
                    )
                )
                .execution_options(synchronize_session=False)
            )
            deleted_count = result.rowcount
            await session.commit()

        if deleted_count > 0:
            logger.info(
                "Cleaned up old jobs",
                extra={"deleted_count": deleted_count, "retention_days": days},
            )

        return deleted_count

    async def reset_stuck(self) -> int:
        now = self.clock()
        recovered_ids: list[int] = []

        async with self.session_factory() as session:
            # timeout_seconds is at least 1, so younger records cannot be stuck
            candidates = await session.execute(
                select(JobRecord).where(
                    and_(
                        JobRecord.status == JobStatus.RUNNING.value,
                        JobRecord.started_at < now - timedelta(seconds=1),
                    )
                )
            )
            stuck = [record for record in candidates.scalars() if record.is_stuck(now)]

            for record in stuck:
                if await self._revert_stuck(session, record):
                    recovered_ids.append(record.id)

            await session.commit()

        if recovered_ids:
            logger.warning(
                "Recovered stuck jobs",
                extra={
                    "stuck_job_count": len(recovered_ids),
                    "job_ids": recovered_ids,
                },
            )

        return len(recovered_ids)

    async def _revert_stuck(self, session: AsyncSession, record: JobRecord) -> bool:
        # No-op when the record finished or was reclaimed since it was read
        result = await session.execute(
            update(JobRecord)
            .where(
                and_(
                    JobRecord.id == record.id,
                    JobRecord.status == JobStatus.RUNNING.value,
                    JobRecord.started_at == record.started_at,
                )
            )
            .values(
                status=JobStatus.PENDING.value,
                started_at=None,
                attempts=JobRecord.attempts + 1,
                last_error=f"Job timed out after {record.timeout_seconds}s",
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def _filtered(query, status: str | None, job_type: str | None):
        if status:
            query = query.where(JobRecord.status == status)
        if job_type:
            query = query.where(JobRecord.job_type == job_type)
        return query
