import asyncio
import logging
from datetime import timedelta

import pytest

from jobqueue.core.exceptions import RecordNotFoundError
from jobqueue.jobs.models import JobRecord, JobStatus


def new_record(clock, job_type="recording", delay_seconds=0, **policy) -> JobRecord:
    now = clock()
    return JobRecord.create_pending(
        job_type,
        {"value": 1},
        now=now,
        scheduled_at=now + timedelta(seconds=delay_seconds),
        **policy,
    )


@pytest.mark.asyncio
async def test_insert_assigns_unique_ids(store, clock):
    """Test that insert returns distinct ids and stores pending records."""
    first = await store.insert(new_record(clock))
    second = await store.insert(new_record(clock))

    assert first != second

    record = await store.find_by_id(first)
    assert record is not None
    assert record.status == JobStatus.PENDING.value
    assert record.created_at == clock()
    assert record.scheduled_at.tzinfo is not None


@pytest.mark.asyncio
async def test_insert_forces_pending(store, clock):
    record = new_record(clock)
    record.status = JobStatus.COMPLETED.value

    record_id = await store.insert(record)

    assert (await store.find_by_id(record_id)).status == JobStatus.PENDING.value


@pytest.mark.asyncio
async def test_find_by_id_unknown(store):
    assert await store.find_by_id(999) is None


@pytest.mark.asyncio
async def test_update_persists_state(store, clock):
    record_id = await store.insert(new_record(clock))
    record = await store.claim(record_id)

    record.mark_completed(clock.advance(seconds=5))
    await store.update(record)

    stored = await store.find_by_id(record_id)
    assert stored.status == JobStatus.COMPLETED.value
    assert stored.attempts == 1
    assert stored.completed_at == clock()


@pytest.mark.asyncio
async def test_update_unknown_id_raises(store, clock):
    record = new_record(clock)
    record.id = 12345

    with pytest.raises(RecordNotFoundError, match="12345"):
        await store.update(record)


@pytest.mark.asyncio
async def test_update_without_id_raises(store, clock):
    with pytest.raises(RecordNotFoundError):
        await store.update(new_record(clock))


@pytest.mark.asyncio
async def test_update_if_owned_writes_for_current_claim(store, clock):
    record_id = await store.insert(new_record(clock))
    record = await store.claim(record_id)
    claimed_at = record.started_at

    record.mark_completed(clock.advance(seconds=5))
    assert await store.update_if_owned(record, claimed_at) is True

    assert (await store.find_by_id(record_id)).status == JobStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_update_if_owned_ignores_stale_claim(store, clock):
    """A write from an earlier claim cannot touch the record once reclaimed."""
    record_id = await store.insert(new_record(clock, timeout_seconds=60))
    stale = await store.claim(record_id)
    claimed_at = stale.started_at

    clock.advance(seconds=61)
    await store.reset_stuck()
    current = await store.claim(record_id)

    stale.mark_completed(clock())
    assert await store.update_if_owned(stale, claimed_at) is False

    stored = await store.find_by_id(record_id)
    assert stored.status == JobStatus.RUNNING.value
    assert stored.started_at == current.started_at
    assert stored.attempts == 3


@pytest.mark.asyncio
async def test_update_if_owned_ignores_finished_record(store, clock):
    record_id = await store.insert(new_record(clock))
    record = await store.claim(record_id)
    claimed_at = record.started_at

    record.mark_completed(clock())
    assert await store.update_if_owned(record, claimed_at) is True

    record.mark_failed(clock(), "late")
    assert await store.update_if_owned(record, claimed_at) is False
    assert (await store.find_by_id(record_id)).status == JobStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_find_ready_orders_oldest_first(store, clock):
    """Ready records come back ordered by scheduled_at, then id."""
    late = await store.insert(new_record(clock, delay_seconds=20))
    early = await store.insert(new_record(clock, delay_seconds=10))
    now = await store.insert(new_record(clock))

    clock.advance(seconds=30)
    ready = await store.find_ready(10)

    assert [record.id for record in ready] == [now, early, late]


@pytest.mark.asyncio
async def test_find_ready_respects_limit_and_schedule(store, clock):
    for _ in range(3):
        await store.insert(new_record(clock))
    await store.insert(new_record(clock, delay_seconds=3600))

    assert len(await store.find_ready(2)) == 2
    assert len(await store.find_ready(10)) == 3
    assert await store.find_ready(0) == []


@pytest.mark.asyncio
async def test_find_ready_is_idempotent(store, clock):
    await store.insert(new_record(clock))

    first = [record.id for record in await store.find_ready(10)]
    second = [record.id for record in await store.find_ready(10)]

    assert first == second


@pytest.mark.asyncio
async def test_claim_moves_pending_to_running(store, clock):
    record_id = await store.insert(new_record(clock))

    claimed = await store.claim(record_id)

    assert claimed is not None
    assert claimed.status == JobStatus.RUNNING.value
    assert claimed.attempts == 1
    assert claimed.started_at == clock()
    assert claimed.completed_at is None


@pytest.mark.asyncio
async def test_claim_is_single_use(store, clock):
    record_id = await store.insert(new_record(clock))

    assert await store.claim(record_id) is not None
    assert await store.claim(record_id) is None


@pytest.mark.asyncio
async def test_claim_ignores_future_records(store, clock):
    record_id = await store.insert(new_record(clock, delay_seconds=60))

    assert await store.claim(record_id) is None

    clock.advance(seconds=60)
    assert await store.claim(record_id) is not None


@pytest.mark.asyncio
async def test_concurrent_claims_have_one_winner(store, clock):
    """Two pollers racing for the same record: exactly one claim succeeds."""
    record_id = await store.insert(new_record(clock))

    results = await asyncio.gather(store.claim(record_id), store.claim(record_id))

    assert sum(result is not None for result in results) == 1
    assert (await store.find_by_id(record_id)).attempts == 1


@pytest.mark.asyncio
async def test_stats_counts_every_status(store, clock):
    assert await store.stats() == {
        "pending": 0,
        "running": 0,
        "completed": 0,
        "failed": 0,
    }

    await store.insert(new_record(clock))
    running_id = await store.insert(new_record(clock))
    await store.claim(running_id)

    stats = await store.stats()
    assert stats["pending"] == 1
    assert stats["running"] == 1
    assert stats["completed"] == 0


@pytest.mark.asyncio
async def test_stats_by_type(store, clock):
    await store.insert(new_record(clock, job_type="recording"))
    await store.insert(new_record(clock, job_type="recording"))
    await store.insert(new_record(clock, job_type="flaky"))

    assert await store.stats_by_type() == {"recording": 2, "flaky": 1}


@pytest.mark.asyncio
async def test_list_and_count_records_with_filters(store, clock):
    first = await store.insert(new_record(clock, job_type="recording"))
    clock.advance(seconds=1)
    second = await store.insert(new_record(clock, job_type="flaky"))
    clock.advance(seconds=1)
    third = await store.insert(new_record(clock, job_type="recording"))
    await store.claim(third)

    all_records = await store.list_records()
    assert [record.id for record in all_records] == [third, second, first]

    recording = await store.list_records(job_type="recording")
    assert {record.id for record in recording} == {first, third}

    running = await store.list_records(status=JobStatus.RUNNING.value)
    assert [record.id for record in running] == [third]

    page = await store.list_records(limit=1, offset=1)
    assert [record.id for record in page] == [second]

    assert await store.count_records() == 3
    assert await store.count_records(job_type="recording") == 2
    assert await store.count_records(status="pending", job_type="recording") == 1


async def _finish(store, clock, record_id, *, failed=False):
    record = await store.claim(record_id)
    if failed:
        record.mark_failed(clock(), "boom")
    else:
        record.mark_completed(clock())
    await store.update(record)


@pytest.mark.asyncio
async def test_delete_terminal_older_than(store, clock):
    """Only completed/failed records past the cutoff are removed."""
    old_completed = await store.insert(new_record(clock))
    old_failed = await store.insert(new_record(clock))
    old_pending = await store.insert(new_record(clock))
    old_running = await store.insert(new_record(clock))
    await _finish(store, clock, old_completed)
    await _finish(store, clock, old_failed, failed=True)
    await store.claim(old_running)

    clock.advance(days=5)
    recent_completed = await store.insert(new_record(clock))
    await _finish(store, clock, recent_completed)

    clock.advance(days=3)
    removed = await store.delete_terminal_older_than(7)

    assert removed == 2
    assert await store.find_by_id(old_completed) is None
    assert await store.find_by_id(old_failed) is None
    assert await store.find_by_id(old_pending) is not None
    assert await store.find_by_id(old_running) is not None
    assert await store.find_by_id(recent_completed) is not None


@pytest.mark.asyncio
async def test_delete_terminal_rejects_negative_days(store):
    with pytest.raises(ValueError):
        await store.delete_terminal_older_than(-1)


@pytest.mark.asyncio
async def test_reset_stuck_recovers_timed_out_records(store, clock):
    record_id = await store.insert(new_record(clock, timeout_seconds=60))
    await store.claim(record_id)

    clock.advance(seconds=61)
    assert await store.reset_stuck() == 1

    record = await store.find_by_id(record_id)
    assert record.status == JobStatus.PENDING.value
    assert record.started_at is None
    assert record.attempts == 2
    assert record.last_error == "Job timed out after 60s"


@pytest.mark.asyncio
async def test_reset_stuck_leaves_fresh_records_alone(store, clock):
    record_id = await store.insert(new_record(clock, timeout_seconds=60))
    await store.claim(record_id)

    clock.advance(seconds=30)
    assert await store.reset_stuck() == 0

    record = await store.find_by_id(record_id)
    assert record.status == JobStatus.RUNNING.value
    assert record.attempts == 1


@pytest.mark.asyncio
async def test_reset_stuck_is_idempotent(store, clock):
    record_id = await store.insert(new_record(clock, timeout_seconds=5))
    await store.claim(record_id)
    clock.advance(seconds=10)

    assert await store.reset_stuck() == 1
    assert await store.reset_stuck() == 0
    assert (await store.find_by_id(record_id)).attempts == 2


@pytest.mark.asyncio
async def test_reset_stuck_logs_only_recovered_ids(store, clock, caplog, monkeypatch):
    lost_id = await store.insert(new_record(clock, timeout_seconds=5))
    kept_id = await store.insert(new_record(clock, timeout_seconds=5))
    await store.claim(lost_id)
    await store.claim(kept_id)
    clock.advance(seconds=10)

    revert = store._revert_stuck

    async def finished_elsewhere(session, record):
        if record.id == lost_id:
            return False
        return await revert(session, record)

    monkeypatch.setattr(store, "_revert_stuck", finished_elsewhere)

    with caplog.at_level(logging.WARNING, logger="jobqueue.jobs.store"):
        assert await store.reset_stuck() == 1

    [entry] = [r for r in caplog.records if r.getMessage() == "Recovered stuck jobs"]
    assert entry.job_ids == [kept_id]
    assert entry.stuck_job_count == 1


@pytest.mark.asyncio
async def test_create_and_drop_schema(store, clock):
    await store.drop_schema()
    await store.create_schema()
    await store.create_schema()

    record_id = await store.insert(new_record(clock))
    assert await store.find_by_id(record_id) is not None
