"""
Tests for the job scheduling layer.

Tests:
- Next wall-clock occurrence of HH:MM
- Priority then FIFO dispatch order
- Delayed dispatch never runs early
- Duplicate rejection, stats, clean, remove and close
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from mfuse.config.settings import QueueConfig
from mfuse.exceptions import QueueSchedulingError
from mfuse.queue import (
    CompressionJob,
    EmbeddingJob,
    EmbeddingsQueue,
    JobPriority,
    JobStatus,
    VideoCompressionQueue,
    next_occurrence,
    parse_time_of_day,
)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def compression_job(moment_id: str, priority: JobPriority = JobPriority.HIGH) -> CompressionJob:
    return CompressionJob(moment_id=moment_id, video_url=f"file:///videos/{moment_id}.mp4", priority=priority)


def embedding_job(moment_id: str) -> EmbeddingJob:
    return EmbeddingJob(moment_id=moment_id, video_url=f"file:///videos/{moment_id}.mp4", description="d")


# ============================================================================
# Time of day
# ============================================================================

class TestNextOccurrence:

    def test_later_today(self):
        assert next_occurrence("14:30", datetime(2024, 5, 10, 9, 0)) == datetime(2024, 5, 10, 14, 30)

    def test_already_passed_moves_to_tomorrow(self):
        assert next_occurrence("14:30", datetime(2024, 5, 10, 16, 0)) == datetime(2024, 5, 11, 14, 30)

    def test_exact_instant_moves_to_tomorrow(self):
        assert next_occurrence("14:30", datetime(2024, 5, 10, 14, 30)) == datetime(2024, 5, 11, 14, 30)

    def test_month_rollover(self):
        assert next_occurrence("01:00", datetime(2024, 1, 31, 23, 0)) == datetime(2024, 2, 1, 1, 0)

    @pytest.mark.parametrize("value", ["25:00", "12:60", "7pm", "", "12-30"])
    def test_invalid_values(self, value):
        with pytest.raises(QueueSchedulingError):
            parse_time_of_day(value)

    def test_single_digit_hour(self):
        assert parse_time_of_day("9:05") == (9, 5)


# ============================================================================
# Embeddings queue scheduling
# ============================================================================

@pytest.mark.asyncio
async def test_schedule_for_same_day():
    clock = FakeClock(datetime(2024, 5, 10, 9, 0))
    queue = EmbeddingsQueue(QueueConfig(), clock=clock)

    record = await queue.schedule_for(embedding_job("m1"), "14:30")

    assert record.dispatch_at == datetime(2024, 5, 10, 14, 30)
    assert record.job.scheduled_for == datetime(2024, 5, 10, 14, 30)
    assert record.status == JobStatus.DELAYED
    assert record.priority == JobPriority.NORMAL
    assert (await queue.get_stats())["delayed"] == 1
    await queue.close()


@pytest.mark.asyncio
async def test_schedule_for_next_day():
    queue = EmbeddingsQueue(QueueConfig(), clock=FakeClock(datetime(2024, 5, 10, 16, 0)))

    record = await queue.schedule_for(embedding_job("m1"), "14:30")

    assert record.dispatch_at == datetime(2024, 5, 11, 14, 30)
    await queue.close()


@pytest.mark.asyncio
async def test_schedule_for_uses_configured_time():
    queue = EmbeddingsQueue(QueueConfig(embeddings_schedule_time="03:15"),
                            clock=FakeClock(datetime(2024, 5, 10, 9, 0)))

    record = await queue.schedule_for(embedding_job("m1"))

    assert record.dispatch_at == datetime(2024, 5, 11, 3, 15)
    await queue.close()


@pytest.mark.asyncio
async def test_schedule_for_rejects_bad_time():
    queue = EmbeddingsQueue(QueueConfig())
    with pytest.raises(QueueSchedulingError):
        await queue.schedule_for(embedding_job("m1"), "noon")
    assert (await queue.get_stats())["total"] == 0


@pytest.mark.asyncio
async def test_compression_schedule_for_keeps_job_priority():
    queue = VideoCompressionQueue(QueueConfig(), clock=FakeClock(datetime(2024, 5, 10, 23, 30)))

    record = await queue.schedule_for(compression_job("m1"), "02:00")

    assert record.dispatch_at == datetime(2024, 5, 11, 2, 0)
    assert record.status == JobStatus.DELAYED
    assert record.priority == JobPriority.HIGH
    await queue.close()


@pytest.mark.asyncio
async def test_delayed_job_never_runs_early():
    started = []

    async def handler(job):
        started.append(datetime.now())

    queue = EmbeddingsQueue(QueueConfig(), handler=handler)
    queue.start()
    dispatch_at = datetime.now() + timedelta(milliseconds=150)

    record = await queue.enqueue_at(embedding_job("m1"), dispatch_at)
    await asyncio.sleep(0.05)
    assert started == []
    assert record.status == JobStatus.DELAYED

    for _ in range(50):
        if record.status == JobStatus.COMPLETED:
            break
        await asyncio.sleep(0.02)

    assert record.status == JobStatus.COMPLETED
    assert started[0] >= dispatch_at
    await queue.close()


# ============================================================================
# Dispatch order
# ============================================================================

@pytest.mark.asyncio
async def test_priority_then_fifo_order():
    order = []

    async def handler(job):
        order.append(job.moment_id)

    queue = VideoCompressionQueue(QueueConfig(compression_workers=1))
    await queue.add_job(compression_job("low", JobPriority.LOW))
    await queue.add_job(compression_job("normal-1", JobPriority.NORMAL))
    await queue.add_job(compression_job("high-1"))
    await queue.add_job(compression_job("normal-2", JobPriority.NORMAL))
    await queue.add_job(compression_job("high-2"))

    queue.start(handler)
    await asyncio.wait_for(queue.join(), timeout=2)

    assert order == ["high-1", "high-2", "normal-1", "normal-2", "low"]
    await queue.close()


@pytest.mark.asyncio
async def test_explicit_priority_overrides_job_default():
    queue = VideoCompressionQueue(QueueConfig())
    record = await queue.enqueue(compression_job("m1"), JobPriority.LOW)
    assert record.priority == JobPriority.LOW
    await queue.close()


@pytest.mark.asyncio
async def test_multiple_workers_drain_queue():
    active, peak = 0, 0

    async def handler(job):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.02)
        active -= 1

    queue = VideoCompressionQueue(QueueConfig(compression_workers=3), handler=handler)
    for i in range(6):
        await queue.add_job(compression_job(f"m{i}"))
    queue.start()
    await asyncio.wait_for(queue.join(), timeout=2)

    assert peak == 3
    assert (await queue.get_stats())["completed"] == 6
    await queue.close()


# ============================================================================
# Bookkeeping
# ============================================================================

@pytest.mark.asyncio
async def test_duplicate_job_is_rejected_until_finished():
    async def handler(job):
        return "ok"

    queue = VideoCompressionQueue(QueueConfig(), handler=handler)
    await queue.add_job(compression_job("m1"))
    with pytest.raises(QueueSchedulingError):
        await queue.add_job(compression_job("m1"))

    queue.start()
    await asyncio.wait_for(queue.join(), timeout=2)

    record = await queue.add_job(compression_job("m1"))
    assert record.status == JobStatus.WAITING
    await queue.close()


@pytest.mark.asyncio
async def test_failed_job_is_recorded():
    async def handler(job):
        raise RuntimeError("ffmpeg exited with 1")

    queue = VideoCompressionQueue(QueueConfig(), handler=handler)
    await queue.add_job(compression_job("m1"))
    queue.start()
    await asyncio.wait_for(queue.join(), timeout=2)

    record = await queue.get_job("m1")
    assert record.status == JobStatus.FAILED
    assert "ffmpeg exited with 1" in record.error
    assert record.attempts == 1
    assert await queue.get_stats() == {
        "waiting": 0, "delayed": 0, "active": 0, "completed": 0, "failed": 1, "total": 1,
    }
    await queue.close()


@pytest.mark.asyncio
async def test_clean_uses_longer_grace_for_failures():
    clock = FakeClock(datetime(2024, 5, 10, 9, 0))

    async def handler(job):
        if job.moment_id == "bad":
            raise RuntimeError("nope")

    queue = VideoCompressionQueue(QueueConfig(clean_grace_seconds=3600), handler=handler, clock=clock)
    await queue.add_job(compression_job("good"))
    await queue.add_job(compression_job("bad"))
    queue.start()
    await asyncio.wait_for(queue.join(), timeout=2)

    clock.advance(hours=2)
    assert await queue.clean() == 1
    assert await queue.get_job("good") is None
    assert (await queue.get_job("bad")).status == JobStatus.FAILED

    clock.advance(hours=6)
    assert await queue.clean() == 1
    assert (await queue.get_stats())["total"] == 0
    await queue.close()


@pytest.mark.asyncio
async def test_removed_job_is_not_dispatched():
    seen = []

    async def handler(job):
        seen.append(job.moment_id)

    queue = VideoCompressionQueue(QueueConfig(), handler=handler)
    await queue.add_job(compression_job("keep"))
    await queue.add_job(compression_job("drop"))

    assert await queue.remove_job("drop") is True
    assert await queue.remove_job("missing") is False

    queue.start()
    await asyncio.wait_for(queue.join(), timeout=2)
    assert seen == ["keep"]
    await queue.close()


@pytest.mark.asyncio
async def test_remove_cancels_scheduled_job():
    queue = EmbeddingsQueue(QueueConfig(), clock=FakeClock(datetime(2024, 5, 10, 9, 0)))
    await queue.schedule_for(embedding_job("m1"), "14:30")

    assert await queue.remove_job("m1") is True
    assert await queue.get_job("m1") is None
    await queue.close()


@pytest.mark.asyncio
async def test_closed_queue_rejects_jobs():
    queue = VideoCompressionQueue(QueueConfig())
    await queue.close()
    with pytest.raises(QueueSchedulingError):
        await queue.add_job(compression_job("m1"))


def test_start_requires_handler():
    queue = VideoCompressionQueue(QueueConfig())
    with pytest.raises(QueueSchedulingError):
        queue.start()
